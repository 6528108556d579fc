"""
tests/test_comments_routes.py -- Integration tests for the /comments endpoints.

Coverage:
  - listing a post's comments; 404 "No post found" for unknown posts
  - create: auth required, author from the session, missing fields, unknown post
  - update/delete: a missing comment is 404 even for a non-author (load, then
    authorize), non-authors get 403 with no mutation
"""

from __future__ import annotations

from conftest import Harness


def test_list_comments(harness: Harness) -> None:
    uid = harness.create_user("a@b.com")
    post_id = harness.create_post(uid)
    harness.create_comment(post_id, uid, "one")
    harness.create_comment(post_id, uid, "two")

    resp = harness.client.get(f"/comments/post/{post_id}")
    assert resp.status_code == 200
    assert [c["content"] for c in resp.json()] == ["one", "two"]

    missing = harness.client.get("/comments/post/999")
    assert missing.status_code == 404
    assert missing.json()["message"] == "No post found"


class TestCreate:
    def test_requires_authentication(self, harness: Harness) -> None:
        resp = harness.client.post("/comments", json={"postId": 1, "content": "hi"})
        assert resp.status_code == 401

    def test_author_comes_from_session(self, harness: Harness) -> None:
        author = harness.create_user("a@b.com")
        commenter = harness.create_user("c@d.com")
        post_id = harness.create_post(author)

        resp = harness.client.post(
            "/comments",
            json={"postId": post_id, "content": "hi", "authorId": author},
            headers=harness.auth_headers(commenter),
        )

        assert resp.status_code == 200
        assert resp.json()["author_id"] == commenter
        assert resp.json()["author"]["email"] == "c@d.com"

    def test_missing_field(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        resp = harness.client.post("/comments", json={"content": "hi"}, headers=harness.auth_headers(uid))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Missing required field"

    def test_unknown_post(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        resp = harness.client.post(
            "/comments", json={"postId": 999, "content": "hi"}, headers=harness.auth_headers(uid)
        )
        assert resp.status_code == 404


class TestMutate:
    def test_update_by_author(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        comment_id = harness.create_comment(harness.create_post(uid), uid, "before")
        resp = harness.client.put(
            f"/comments/{comment_id}", json={"content": "after"}, headers=harness.auth_headers(uid)
        )
        assert resp.status_code == 200
        assert harness.blog.get_comment(comment_id).content == "after"

    def test_update_missing_comment_is_404_for_anyone(self, harness: Harness) -> None:
        """Regression: the comment must be loaded before the ownership check runs."""
        uid = harness.create_user("a@b.com")
        resp = harness.client.put("/comments/999", json={"content": "x"}, headers=harness.auth_headers(uid))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Comment not found"

    def test_non_author_cannot_update_or_delete(self, harness: Harness) -> None:
        author = harness.create_user("a@b.com")
        intruder = harness.create_user("c@d.com")
        comment_id = harness.create_comment(harness.create_post(author), author, "mine")
        headers = harness.auth_headers(intruder)

        put = harness.client.put(f"/comments/{comment_id}", json={"content": "theirs"}, headers=headers)
        assert put.status_code == 403
        assert put.json()["message"] == "You are not authorized to update this comment"

        delete = harness.client.delete(f"/comments/{comment_id}", headers=headers)
        assert delete.status_code == 403
        assert delete.json()["message"] == "You are not authorized to delete this comment"

        assert harness.blog.get_comment(comment_id).content == "mine"

    def test_delete_by_author(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        comment_id = harness.create_comment(harness.create_post(uid), uid)
        assert harness.client.delete(f"/comments/{comment_id}", headers=harness.auth_headers(uid)).status_code == 200
        assert harness.blog.get_comment(comment_id) is None
        assert harness.client.delete(f"/comments/{comment_id}", headers=harness.auth_headers(uid)).status_code == 404
