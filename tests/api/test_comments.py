"""Tests for comment endpoints."""

from bson import ObjectId


def create_note(api_client, user, view_type="public"):
    response = api_client.post(
        "/api/notes", json={"title": "Note", "view_type": view_type}, headers=user["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()["note"]


def create_comment(api_client, user, note_id, text="Nice note"):
    response = api_client.post(
        "/api/comments", json={"note_id": note_id, "comment_text": text}, headers=user["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()["comment"]


class TestCommentEndpoints:
    def test_comment_on_public_note(self, api_client, make_user):
        owner = make_user()
        reader = make_user()
        note = create_note(api_client, owner)

        comment = create_comment(api_client, reader, note["id"])

        assert comment["comment_id"].startswith("COMMENT_")
        assert comment["user"]["id"] == reader["id"]
        assert comment["note"]["id"] == note["id"]

        note_view = api_client.get(f"/api/notes/{note['id']}", headers=owner["headers"]).json()
        assert [c["id"] for c in note_view["note"]["comments"]] == [comment["id"]]

    def test_cannot_comment_on_private_note_of_others(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        note = create_note(api_client, owner, view_type="private")

        response = api_client.post(
            "/api/comments",
            json={"note_id": note["id"], "comment_text": "hi"},
            headers=other["headers"],
        )

        assert response.status_code == 403

    def test_list_comments_for_note(self, api_client, make_user):
        user = make_user()
        note = create_note(api_client, user)
        first = create_comment(api_client, user, note["id"], "first")
        second = create_comment(api_client, user, note["id"], "second")

        response = api_client.get(
            "/api/comments", params={"note_id": note["id"]}, headers=user["headers"]
        )

        assert response.status_code == 200
        assert {c["id"] for c in response.json()["comments"]} == {first["id"], second["id"]}

    def test_list_hides_comments_on_private_notes(self, api_client, make_user):
        owner = make_user()
        other = make_user()
        note = create_note(api_client, owner, view_type="private")
        comment = create_comment(api_client, owner, note["id"])

        response = api_client.get("/api/comments", headers=other["headers"])

        assert comment["id"] not in {c["id"] for c in response.json()["comments"]}

    def test_only_author_or_editor_edits(self, api_client, make_user):
        owner = make_user()
        author = make_user()
        other = make_user()
        editor = make_user("Editor")
        note = create_note(api_client, owner)
        comment = create_comment(api_client, author, note["id"])

        denied = api_client.put(
            f"/api/comments/{comment['id']}", json={"comment_text": "x"}, headers=other["headers"]
        )
        by_author = api_client.put(
            f"/api/comments/{comment['id']}",
            json={"comment_text": "edited"},
            headers=author["headers"],
        )
        by_editor = api_client.put(
            f"/api/comments/{comment['id']}",
            json={"comment_text": "moderated"},
            headers=editor["headers"],
        )

        assert denied.status_code == 403
        assert by_author.json()["comment"]["comment_text"] == "edited"
        assert by_editor.json()["comment"]["comment_text"] == "moderated"

    def test_delete_comment_detaches_from_note(self, api_client, make_user, mongo_available):
        user = make_user()
        note = create_note(api_client, user)
        comment = create_comment(api_client, user, note["id"])
        api_client.post(
            "/api/attachments",
            json={
                "parent_type": "Comment",
                "parent_id": comment["id"],
                "file_name": "c.txt",
                "file_type": "text/plain",
                "url": "https://files.example.com/c.txt",
            },
            headers=user["headers"],
        )

        response = api_client.delete(f"/api/comments/{comment['id']}", headers=user["headers"])

        assert response.status_code == 200
        note_view = api_client.get(f"/api/notes/{note['id']}", headers=user["headers"]).json()
        assert note_view["note"]["comments"] == []
        assert (
            mongo_available.attachments.count_documents({"parent_id": ObjectId(comment["id"])})
            == 0
        )
