"""Tests for notebook endpoints."""

from bson import ObjectId


def create_notebook(api_client, user, name="Notebook", parent=None):
    payload = {"notebook_name": name}
    if parent:
        payload["parent_notebook_id"] = parent
    response = api_client.post("/api/notebooks", json=payload, headers=user["headers"])
    assert response.status_code == 201, response.text
    return response.json()["notebook"]


def create_note(api_client, user, **fields):
    response = api_client.post(
        "/api/notes", json={"title": "Note", **fields}, headers=user["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()["note"]


class TestNotebookEndpoints:
    def test_create_notebook(self, api_client, make_user):
        user = make_user()

        notebook = create_notebook(api_client, user, "Research")

        assert notebook["notebook_name"] == "Research"
        assert notebook["notebook_id"].startswith("NOTEBOOK_")
        assert notebook["owner"]["id"] == user["id"]
        assert notebook["parent_notebook"] is None

    def test_create_nested_notebook(self, api_client, make_user):
        user = make_user()
        parent = create_notebook(api_client, user, "Parent")

        child = create_notebook(api_client, user, "Child", parent=parent["id"])

        assert child["parent_notebook"]["id"] == parent["id"]

    def test_create_with_unknown_parent(self, api_client, make_user):
        user = make_user()

        response = api_client.post(
            "/api/notebooks",
            json={"notebook_name": "x", "parent_notebook_id": str(ObjectId())},
            headers=user["headers"],
        )

        assert response.status_code == 404

    def test_other_user_cannot_see_notebook(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        notebook = create_notebook(api_client, owner)

        response = api_client.get(f"/api/notebooks/{notebook['id']}", headers=other["headers"])
        listed = api_client.get("/api/notebooks", headers=other["headers"]).json()["notebooks"]

        assert response.status_code == 403
        assert notebook["id"] not in {n["id"] for n in listed}

    def test_contributor_cannot_rename_others_notebook(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        notebook = create_notebook(api_client, owner)

        response = api_client.put(
            f"/api/notebooks/{notebook['id']}",
            json={"notebook_name": "Hijacked"},
            headers=other["headers"],
        )

        assert response.status_code == 403

    def test_lead_editor_can_rename_any_notebook(self, api_client, make_user):
        owner = make_user()
        lead = make_user("Lead Editor")
        notebook = create_notebook(api_client, owner)

        response = api_client.put(
            f"/api/notebooks/{notebook['id']}",
            json={"notebook_name": "Renamed"},
            headers=lead["headers"],
        )

        assert response.status_code == 200
        assert response.json()["notebook"]["notebook_name"] == "Renamed"


class TestNotebookHierarchy:
    def test_cannot_nest_under_descendant(self, api_client, make_user):
        user = make_user()
        root = create_notebook(api_client, user, "Root")
        child = create_notebook(api_client, user, "Child", parent=root["id"])
        grandchild = create_notebook(api_client, user, "Grandchild", parent=child["id"])

        for target in (root["id"], grandchild["id"]):
            response = api_client.put(
                f"/api/notebooks/{root['id']}",
                json={"parent_notebook_id": target},
                headers=user["headers"],
            )
            assert response.status_code == 400

    def test_null_parent_moves_to_top_level(self, api_client, make_user):
        user = make_user()
        parent = create_notebook(api_client, user, "Parent")
        child = create_notebook(api_client, user, "Child", parent=parent["id"])

        response = api_client.put(
            f"/api/notebooks/{child['id']}",
            json={"parent_notebook_id": None},
            headers=user["headers"],
        )

        assert response.status_code == 200
        assert response.json()["notebook"]["parent_notebook"] is None

    def test_delete_reparents_children(self, api_client, make_user):
        user = make_user()
        root = create_notebook(api_client, user, "Root")
        middle = create_notebook(api_client, user, "Middle", parent=root["id"])
        leaf = create_notebook(api_client, user, "Leaf", parent=middle["id"])

        response = api_client.delete(f"/api/notebooks/{middle['id']}", headers=user["headers"])
        assert response.status_code == 200

        leaf_view = api_client.get(f"/api/notebooks/{leaf['id']}", headers=user["headers"])
        assert leaf_view.json()["notebook"]["parent_notebook"]["id"] == root["id"]


class TestNotebookNotes:
    def test_add_note_links_both_sides(self, api_client, make_user):
        user = make_user()
        notebook = create_notebook(api_client, user)
        note = create_note(api_client, user)

        response = api_client.post(
            f"/api/notebooks/{notebook['id']}/notes",
            json={"note_id": note["id"]},
            headers=user["headers"],
        )

        assert response.status_code == 200
        assert [n["id"] for n in response.json()["notebook"]["notes"]] == [note["id"]]
        note_view = api_client.get(f"/api/notes/{note['id']}", headers=user["headers"]).json()
        assert [nb["id"] for nb in note_view["note"]["notebooks"]] == [notebook["id"]]

    def test_remove_note_keeps_note(self, api_client, make_user):
        user = make_user()
        notebook = create_notebook(api_client, user)
        note = create_note(api_client, user, notebook_ids=[notebook["id"]])

        response = api_client.delete(
            f"/api/notebooks/{notebook['id']}/notes/{note['id']}", headers=user["headers"]
        )

        assert response.status_code == 200
        assert response.json()["notebook"]["notes"] == []
        note_view = api_client.get(f"/api/notes/{note['id']}", headers=user["headers"])
        assert note_view.status_code == 200
        assert note_view.json()["note"]["notebooks"] == []

    def test_delete_notebook_keeps_notes(self, api_client, make_user):
        user = make_user()
        notebook = create_notebook(api_client, user)
        note = create_note(api_client, user, notebook_ids=[notebook["id"]])

        api_client.delete(f"/api/notebooks/{notebook['id']}", headers=user["headers"])

        note_view = api_client.get(f"/api/notes/{note['id']}", headers=user["headers"])
        assert note_view.status_code == 200
        assert note_view.json()["note"]["notebooks"] == []

    def test_cannot_file_note_in_others_notebook(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        notebook = create_notebook(api_client, owner)

        response = api_client.post(
            "/api/notes",
            json={"title": "sneaky", "notebook_ids": [notebook["id"]]},
            headers=other["headers"],
        )

        assert response.status_code == 403
