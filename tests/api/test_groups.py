"""Tests for group endpoints."""

from bson import ObjectId


def create_notebook(api_client, user, name="Shared"):
    response = api_client.post(
        "/api/notebooks", json={"notebook_name": name}, headers=user["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()["notebook"]


def create_group(api_client, user, **fields):
    payload = {"group_name": "Team", **fields}
    response = api_client.post("/api/groups", json=payload, headers=user["headers"])
    assert response.status_code == 201, response.text
    return response.json()["group"]


def group_ids_of(api_client, user, notebook_id):
    response = api_client.get(f"/api/notebooks/{notebook_id}", headers=user["headers"])
    return [g["id"] for g in response.json()["notebook"]["accessible_groups"]]


class TestGroupEndpoints:
    def test_contributor_cannot_create_group(self, api_client, make_user):
        user = make_user()

        response = api_client.post(
            "/api/groups", json={"group_name": "Team"}, headers=user["headers"]
        )

        assert response.status_code == 403

    def test_lead_editor_creates_group(self, api_client, make_user):
        lead = make_user("Lead Editor")
        member = make_user()

        group = create_group(api_client, lead, member_ids=[member["id"]])

        assert group["group_id"].startswith("GROUP_")
        assert group["lead_editor"]["id"] == lead["id"]
        assert [m["id"] for m in group["members"]] == [member["id"]]

    def test_unknown_member_rejected(self, api_client, make_user):
        lead = make_user("Lead Editor")

        response = api_client.post(
            "/api/groups",
            json={"group_name": "Team", "member_ids": [str(ObjectId())]},
            headers=lead["headers"],
        )

        assert response.status_code == 404

    def test_notebook_access_follows_group(self, api_client, make_user):
        """Adding and removing a notebook updates both reference lists."""
        lead = make_user("Lead Editor")
        notebook = create_notebook(api_client, lead)

        group = create_group(api_client, lead, notebook_ids=[notebook["id"]])
        assert [nb["id"] for nb in group["accessible_notebooks"]] == [notebook["id"]]
        assert group_ids_of(api_client, lead, notebook["id"]) == [group["id"]]

        response = api_client.put(
            f"/api/groups/{group['id']}", json={"notebook_ids": []}, headers=lead["headers"]
        )
        assert response.status_code == 200
        assert response.json()["group"]["accessible_notebooks"] == []
        assert group_ids_of(api_client, lead, notebook["id"]) == []

    def test_move_group_between_notebooks(self, api_client, make_user):
        lead = make_user("Lead Editor")
        first = create_notebook(api_client, lead, "A")
        second = create_notebook(api_client, lead, "B")
        group = create_group(api_client, lead, notebook_ids=[first["id"]])

        response = api_client.put(
            f"/api/groups/{group['id']}",
            json={"notebook_ids": [second["id"]]},
            headers=lead["headers"],
        )

        assert response.status_code == 200
        notebooks = response.json()["group"]["accessible_notebooks"]
        assert [nb["id"] for nb in notebooks] == [second["id"]]
        assert group_ids_of(api_client, lead, first["id"]) == []
        assert group_ids_of(api_client, lead, second["id"]) == [group["id"]]

    def test_member_sees_group_notebook(self, api_client, make_user):
        lead = make_user("Lead Editor")
        owner = make_user()
        member = make_user()
        outsider = make_user()
        notebook = create_notebook(api_client, owner)
        create_group(
            api_client, lead, member_ids=[member["id"]], notebook_ids=[notebook["id"]]
        )

        listed = api_client.get("/api/notebooks", headers=member["headers"]).json()["notebooks"]
        assert notebook["id"] in {nb["id"] for nb in listed}
        member_view = api_client.get(f"/api/notebooks/{notebook['id']}", headers=member["headers"])
        assert member_view.status_code == 200
        outsider_view = api_client.get(
            f"/api/notebooks/{notebook['id']}", headers=outsider["headers"]
        )
        assert outsider_view.status_code == 403

    def test_other_lead_editor_cannot_update(self, api_client, make_user):
        lead = make_user("Lead Editor")
        rival = make_user("Lead Editor")
        group = create_group(api_client, lead)

        response = api_client.put(
            f"/api/groups/{group['id']}", json={"group_name": "Mine"}, headers=rival["headers"]
        )

        assert response.status_code == 403

    def test_add_and_remove_member(self, api_client, make_user):
        lead = make_user("Lead Editor")
        member = make_user()
        group = create_group(api_client, lead)

        added = api_client.post(
            f"/api/groups/{group['id']}/members",
            json={"user_id": member["id"]},
            headers=lead["headers"],
        )
        assert [m["id"] for m in added.json()["group"]["members"]] == [member["id"]]

        member_view = api_client.get(f"/api/groups/{group['id']}", headers=member["headers"])
        assert member_view.status_code == 200

        removed = api_client.delete(
            f"/api/groups/{group['id']}/members/{member['id']}", headers=lead["headers"]
        )
        assert removed.json()["group"]["members"] == []
        member_view = api_client.get(f"/api/groups/{group['id']}", headers=member["headers"])
        assert member_view.status_code == 403

    def test_delete_group_revokes_notebook_access(self, api_client, make_user, mongo_available):
        lead = make_user("Lead Editor")
        notebook = create_notebook(api_client, lead)
        group = create_group(api_client, lead, notebook_ids=[notebook["id"]])
        api_client.post(
            "/api/attachments",
            json={
                "parent_type": "Group",
                "parent_id": group["id"],
                "file_name": "charter.md",
                "file_type": "text/markdown",
                "url": "https://files.example.com/charter.md",
            },
            headers=lead["headers"],
        )

        response = api_client.delete(f"/api/groups/{group['id']}", headers=lead["headers"])

        assert response.status_code == 200
        assert group_ids_of(api_client, lead, notebook["id"]) == []
        attachments = mongo_available.attachments
        assert attachments.count_documents({"parent_id": ObjectId(group["id"])}) == 0
