"""Tests for the access evaluator."""

import pytest
from bson import ObjectId

from api.access import (
    Action,
    Actor,
    Resource,
    Role,
    can_perform,
    can_view_group,
    can_view_notebook,
    note_visibility_filter,
    notebook_visibility_filter,
    parse_roles,
    require,
)
from api.errors import AuthorizationError

OWNER = ObjectId()
OTHER = ObjectId()

ALL_RESOURCES = list(Resource)


class TestAdmin:
    """Admins are permitted everything."""

    @pytest.mark.parametrize("action", list(Action))
    @pytest.mark.parametrize("resource", ALL_RESOURCES)
    def test_admin_always_permitted(self, action, resource):
        assert can_perform({Role.ADMIN}, action, resource, OWNER, OTHER, visibility="private")


class TestNotes:
    """Note permissions."""

    def test_private_note_readable_by_creator_only(self):
        assert can_perform(
            {Role.CONTRIBUTOR}, Action.READ, Resource.NOTE, OWNER, OWNER, visibility="private"
        )
        assert not can_perform(
            {Role.CONTRIBUTOR}, Action.READ, Resource.NOTE, OWNER, OTHER, visibility="private"
        )

    @pytest.mark.parametrize("view_type", ["public", "shared"])
    def test_public_and_shared_notes_readable_by_anyone(self, view_type):
        assert can_perform(
            {Role.CONTRIBUTOR}, Action.READ, Resource.NOTE, OWNER, OTHER, visibility=view_type
        )

    def test_editor_reads_private_note_of_others_denied(self):
        assert not can_perform(
            {Role.EDITOR, Role.LEAD_EDITOR},
            Action.READ,
            Resource.NOTE,
            OWNER,
            OTHER,
            visibility="private",
        )

    @pytest.mark.parametrize("action", [Action.UPDATE, Action.DELETE])
    def test_contributor_cannot_modify_others_note(self, action):
        assert not can_perform({Role.CONTRIBUTOR}, action, Resource.NOTE, OWNER, OTHER)

    @pytest.mark.parametrize("action", [Action.UPDATE, Action.DELETE])
    def test_creator_can_modify_own_note(self, action):
        assert can_perform({Role.CONTRIBUTOR}, action, Resource.NOTE, OWNER, OWNER)

    @pytest.mark.parametrize("role", [Role.EDITOR, Role.LEAD_EDITOR])
    @pytest.mark.parametrize("resource", [Resource.NOTE, Resource.COMMENT, Resource.TAG])
    def test_editors_moderate_content(self, role, resource):
        assert can_perform({role}, Action.UPDATE, resource, OWNER, OTHER)
        assert can_perform({role}, Action.DELETE, resource, OWNER, OTHER)

    def test_editor_cannot_modify_others_notebook(self):
        assert not can_perform({Role.EDITOR}, Action.UPDATE, Resource.NOTEBOOK, OWNER, OTHER)

    def test_lead_editor_can_modify_any_notebook(self):
        assert can_perform({Role.LEAD_EDITOR}, Action.DELETE, Resource.NOTEBOOK, OWNER, OTHER)

    def test_string_and_object_ids_compare_equal(self):
        assert can_perform({Role.CONTRIBUTOR}, Action.UPDATE, Resource.NOTE, OWNER, str(OWNER))

    def test_missing_owner_is_never_ownership(self):
        assert not can_perform({Role.CONTRIBUTOR}, Action.DELETE, Resource.ATTACHMENT, None, None)


class TestCreate:
    @pytest.mark.parametrize(
        "resource",
        [Resource.NOTE, Resource.NOTEBOOK, Resource.TAG, Resource.COMMENT, Resource.ATTACHMENT],
    )
    def test_contributor_creates_content(self, resource):
        assert can_perform({Role.CONTRIBUTOR}, Action.CREATE, resource, None, OTHER)

    def test_group_creation_requires_lead_editor(self):
        assert not can_perform({Role.CONTRIBUTOR}, Action.CREATE, Resource.GROUP, None, OTHER)
        assert not can_perform({Role.EDITOR}, Action.CREATE, Resource.GROUP, None, OTHER)
        assert can_perform({Role.LEAD_EDITOR}, Action.CREATE, Resource.GROUP, None, OTHER)


class TestGroups:
    def test_lead_editor_modifies_own_group(self):
        assert can_perform({Role.LEAD_EDITOR}, Action.UPDATE, Resource.GROUP, OWNER, OWNER)

    def test_lead_editor_cannot_modify_others_group(self):
        assert not can_perform({Role.LEAD_EDITOR}, Action.DELETE, Resource.GROUP, OWNER, OTHER)

    def test_demoted_lead_editor_loses_own_group(self):
        assert not can_perform({Role.CONTRIBUTOR}, Action.UPDATE, Resource.GROUP, OWNER, OWNER)

    def test_group_read_needs_membership(self):
        assert not can_perform({Role.CONTRIBUTOR}, Action.READ, Resource.GROUP, OWNER, OTHER)
        assert can_perform(
            {Role.CONTRIBUTOR}, Action.READ, Resource.GROUP, OWNER, OTHER, granted=True
        )
        assert can_perform({Role.LEAD_EDITOR}, Action.READ, Resource.GROUP, OWNER, OTHER)


class TestNotebooks:
    def test_notebook_read_needs_owner_or_group(self):
        assert not can_perform({Role.EDITOR}, Action.READ, Resource.NOTEBOOK, OWNER, OTHER)
        assert can_perform({Role.CONTRIBUTOR}, Action.READ, Resource.NOTEBOOK, OWNER, OWNER)
        assert can_perform(
            {Role.CONTRIBUTOR}, Action.READ, Resource.NOTEBOOK, OWNER, OTHER, granted=True
        )

    def test_lead_editor_reads_any_notebook(self):
        assert can_perform({Role.LEAD_EDITOR}, Action.READ, Resource.NOTEBOOK, OWNER, OTHER)


class TestUsers:
    def test_user_reads_self(self):
        assert can_perform({Role.CONTRIBUTOR}, Action.READ, Resource.USER, OWNER, OWNER)

    def test_lead_editor_reads_other_users(self):
        assert can_perform({Role.LEAD_EDITOR}, Action.READ, Resource.USER, OWNER, OTHER)
        assert not can_perform({Role.EDITOR}, Action.READ, Resource.USER, OWNER, OTHER)

    def test_only_self_updates(self):
        assert can_perform({Role.CONTRIBUTOR}, Action.UPDATE, Resource.USER, OWNER, OWNER)
        assert not can_perform({Role.LEAD_EDITOR}, Action.UPDATE, Resource.USER, OWNER, OTHER)

    def test_self_delete_denied(self):
        assert not can_perform({Role.LEAD_EDITOR}, Action.DELETE, Resource.USER, OWNER, OWNER)

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_profiles_reserved_to_admins(self, action):
        assert not can_perform(
            {Role.LEAD_EDITOR, Role.EDITOR}, action, Resource.ADMIN_PROFILE, OWNER, OWNER
        )


class TestHelpers:
    def test_parse_roles_ignores_unknown(self):
        assert parse_roles(["Editor", "Overlord"]) == frozenset({Role.EDITOR})
        assert parse_roles(None) == frozenset()

    def test_require_raises_authorization_error(self):
        actor = Actor(id=OTHER, roles=frozenset({Role.CONTRIBUTOR}))
        with pytest.raises(AuthorizationError) as excinfo:
            require(actor, Action.DELETE, Resource.NOTE, OWNER, "nope")
        assert excinfo.value.status_code == 403
        assert excinfo.value.message == "nope"

    def test_actor_from_user_document(self):
        actor = Actor.from_user({"_id": OWNER, "roles": ["Admin", "Editor"]})
        assert actor.is_admin
        assert actor.has_any(Role.EDITOR)
        assert not actor.has_any(Role.LEAD_EDITOR)

    def test_note_filter_for_admin_is_unrestricted(self):
        assert note_visibility_filter(Actor(id=OWNER, roles=frozenset({Role.ADMIN}))) == {}

    def test_note_filter_for_contributor(self):
        query = note_visibility_filter(Actor(id=OWNER, roles=frozenset({Role.CONTRIBUTOR})))
        assert {"creator": OWNER} in query["$or"]

    def test_notebook_filter_uses_groups(self):
        group_id = ObjectId()
        actor = Actor(id=OWNER, roles=frozenset({Role.CONTRIBUTOR}))
        query = notebook_visibility_filter(actor, [group_id])
        assert {"accessible_groups": {"$in": [group_id]}} in query["$or"]

    def test_notebook_visible_through_group(self):
        group_id = ObjectId()
        actor = Actor(id=OTHER, roles=frozenset({Role.CONTRIBUTOR}))
        notebook = {"owner": OWNER, "accessible_groups": [group_id]}
        assert can_view_notebook(actor, notebook, [group_id])
        assert not can_view_notebook(actor, notebook, [ObjectId()])

    def test_group_visible_to_members(self):
        actor = Actor(id=OTHER, roles=frozenset({Role.CONTRIBUTOR}))
        assert can_view_group(actor, {"lead_editor": OWNER, "members": [OTHER]})
        assert not can_view_group(actor, {"lead_editor": OWNER, "members": []})
