"""Tests for attachment endpoints."""

from bson import ObjectId


def attachment_payload(parent_type, parent_id, name="file.pdf"):
    return {
        "parent_type": parent_type,
        "parent_id": parent_id,
        "file_name": name,
        "file_type": "application/pdf",
        "url": f"https://files.example.com/{name}",
        "file_size": 1024,
    }


def create_note(api_client, user, view_type="private"):
    response = api_client.post(
        "/api/notes", json={"title": "Note", "view_type": view_type}, headers=user["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()["note"]


class TestAttachmentEndpoints:
    def test_attach_to_note(self, api_client, make_user):
        user = make_user()
        note = create_note(api_client, user)

        response = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", note["id"]),
            headers=user["headers"],
        )

        assert response.status_code == 201
        attachment = response.json()["attachment"]
        assert attachment["attachment_id"].startswith("ATTACH_")
        assert attachment["parent"] == {"parent_type": "Note", "id": note["id"]}
        assert attachment["uploaded_by"] == user["id"]

        note_view = api_client.get(f"/api/notes/{note['id']}", headers=user["headers"]).json()
        assert [a["id"] for a in note_view["note"]["attachments"]] == [attachment["id"]]

    def test_unknown_parent(self, api_client, make_user):
        user = make_user()

        response = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", str(ObjectId())),
            headers=user["headers"],
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Note not found"

    def test_invalid_parent_type(self, api_client, make_user):
        user = make_user()

        response = api_client.post(
            "/api/attachments",
            json=attachment_payload("Notebook", str(ObjectId())),
            headers=user["headers"],
        )

        assert response.status_code == 400

    def test_cannot_attach_to_private_note_of_others(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        note = create_note(api_client, owner)

        response = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", note["id"]),
            headers=other["headers"],
        )

        assert response.status_code == 403

    def test_list_by_parent(self, api_client, make_user):
        user = make_user()
        note = create_note(api_client, user)
        created = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", note["id"]),
            headers=user["headers"],
        ).json()["attachment"]

        response = api_client.get(
            "/api/attachments",
            params={"parent_type": "Note", "parent_id": note["id"]},
            headers=user["headers"],
        )

        assert response.status_code == 200
        assert [a["id"] for a in response.json()["attachments"]] == [created["id"]]

    def test_get_hidden_with_private_parent(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        note = create_note(api_client, owner)
        attachment = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", note["id"]),
            headers=owner["headers"],
        ).json()["attachment"]

        response = api_client.get(f"/api/attachments/{attachment['id']}", headers=other["headers"])

        assert response.status_code == 403

    def test_delete_by_uploader_only(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        note = create_note(api_client, owner, view_type="public")
        attachment = api_client.post(
            "/api/attachments",
            json=attachment_payload("Note", note["id"]),
            headers=owner["headers"],
        ).json()["attachment"]

        denied = api_client.delete(f"/api/attachments/{attachment['id']}", headers=other["headers"])
        allowed = api_client.delete(
            f"/api/attachments/{attachment['id']}", headers=owner["headers"]
        )

        assert denied.status_code == 403
        assert allowed.status_code == 200
        note_view = api_client.get(f"/api/notes/{note['id']}", headers=owner["headers"]).json()
        assert note_view["note"]["attachments"] == []
