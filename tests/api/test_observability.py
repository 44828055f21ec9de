"""Tests for application metrics."""

from api.observability import AppMetrics, get_app_metrics


class TestAppMetrics:
    def test_instruments(self):
        """Every instrument on AppMetrics is one the handlers record to."""
        assert set(vars(AppMetrics())) == {
            "user_signups",
            "user_logins",
            "auth_failures",
            "permission_denials",
            "entities_created",
            "cascade_deletions",
        }

    def test_shared_instance(self):
        assert get_app_metrics() is get_app_metrics()
