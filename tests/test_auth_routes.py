"""
tests/test_auth_routes.py -- Integration tests for the /auth endpoints.

Runs the real ASGI stack (middleware, exception handlers, routers) against
isolated in-memory stores via the harness fixture.

Coverage:
  - register: 200 body shape, no credential fields, validation messages, duplicates
  - login: the documented example flow, 400 vs 401 asymmetry, cookie attributes
  - checkAuthentication: 401 without a session, 404 once the user is gone
  - logout: 200 then 400 on the second call
  - password change: 401 / 403 / 400 paths, success, old password rejected after
"""

from __future__ import annotations

from conftest import PASSWORD, Harness, cookie_header

from core.config import get_settings


def _register(harness: Harness, email: str = "a@b.com", password: str = PASSWORD):
    return harness.client.post("/auth/register", json={"email": email, "password": password})


def _login(harness: Harness, email: str = "a@b.com", password: str = PASSWORD):
    return harness.client.post("/auth/login", json={"email": email, "password": password})


class TestRegister:
    def test_success_strips_password(self, harness: Harness) -> None:
        resp = _register(harness)
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "User created successfully"
        assert body["user"]["email"] == "a@b.com"
        assert body["user"]["avatar"] == "avatar.png"
        assert "password" not in body["user"]
        assert "hashed_password" not in body["user"]

    def test_duplicate_email_yields_one_user(self, harness: Harness) -> None:
        assert _register(harness).status_code == 200
        resp = _register(harness, password="otherpass1")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Email already in use"
        assert harness.user_store.find_by_email("a@b.com") is not None

    def test_trailing_newline_is_not_a_second_account(self, harness: Harness) -> None:
        assert _register(harness).status_code == 200
        resp = _register(harness, email="a@b.com\n")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid email"
        assert harness.user_store.find_by_email("a@b.com\n") is None

    def test_validation_messages(self, harness: Harness) -> None:
        cases = [
            ({"email": "not-an-email", "password": PASSWORD}, "Invalid email"),
            ({"email": "a@b.com", "password": "   "}, "Password is required"),
            ({"email": "a@b.com"}, "Password is required"),
            ({"email": "a@b.com", "password": "short"}, "Password must be at least 8 characters long"),
        ]
        for payload, message in cases:
            resp = harness.client.post("/auth/register", json=payload)
            assert resp.status_code == 400, payload
            assert resp.json()["message"] == message
            assert resp.json()["code"] == "validation_error"


class TestLogin:
    def test_documented_example(self, harness: Harness) -> None:
        assert _register(harness).status_code == 200

        bad = _login(harness, password="wrongpw")
        assert bad.status_code == 401
        assert bad.json()["message"] == "Invalid email or password"

        good = _login(harness)
        assert good.status_code == 200
        assert good.json()["message"] == "User logged in successfully"
        assert "password" not in good.json()["user"]
        assert harness.client.cookies.get(get_settings().session_cookie_name)

    def test_unknown_email_is_400_not_401(self, harness: Harness) -> None:
        resp = _login(harness, email="nobody@b.com")
        assert resp.status_code == 400
        assert resp.json()["message"] == "User not found"

    def test_missing_password_is_400(self, harness: Harness) -> None:
        _register(harness)
        resp = harness.client.post("/auth/login", json={"email": "a@b.com"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Password is required"

    def test_invalid_email_is_400(self, harness: Harness) -> None:
        resp = _login(harness, email="nope")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid email"

    def test_cookie_is_http_only_and_not_cached(self, harness: Harness) -> None:
        _register(harness)
        resp = _login(harness)
        set_cookie = resp.headers["set-cookie"].lower()
        assert get_settings().session_cookie_name in set_cookie
        assert "httponly" in set_cookie
        assert "max-age=86400" in set_cookie
        assert resp.headers["cache-control"] == "no-store"

    def test_get_login_redirects_home(self, harness: Harness) -> None:
        resp = harness.client.get("/auth/login")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"


class TestCheckAuthentication:
    def test_requires_session(self, harness: Harness) -> None:
        resp = harness.client.get("/auth/checkAuthentication")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Not authenticated"

    def test_returns_profile_only(self, harness: Harness) -> None:
        _register(harness)
        _login(harness)
        resp = harness.client.get("/auth/checkAuthentication")
        assert resp.status_code == 200
        assert set(resp.json()) == {"id", "email", "bio", "avatar"}

    def test_deleted_user_is_404(self, harness: Harness) -> None:
        uid = harness.create_user("gone@b.com")
        headers = harness.auth_headers(uid)
        harness.user_store.delete_user(uid)
        resp = harness.client.get("/auth/checkAuthentication", headers=headers)
        assert resp.status_code == 404


class TestLogout:
    def test_logout_twice(self, harness: Harness) -> None:
        _register(harness)
        _login(harness)

        first = harness.client.post("/auth/logout")
        assert first.status_code == 200
        assert first.json()["message"] == "Logged out successfully"

        second = harness.client.post("/auth/logout")
        assert second.status_code == 400
        assert second.json()["message"] == "No user to log out"

    def test_logout_ends_the_session(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        token = harness.sessions.create(uid)
        assert harness.client.post("/auth/logout", headers=cookie_header(token)).status_code == 200
        assert harness.sessions.validate(token) is None


class TestChangePassword:
    def test_requires_authentication(self, harness: Harness) -> None:
        resp = harness.client.put(
            "/auth/1/password", json={"oldPassword": PASSWORD, "newPassword": "newpass99"}
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "User not authenticated"

    def test_other_user_is_forbidden(self, harness: Harness) -> None:
        me = harness.create_user("a@b.com")
        other = harness.create_user("c@d.com")
        resp = harness.client.put(
            f"/auth/{other}/password",
            json={"oldPassword": PASSWORD, "newPassword": "newpass99"},
            headers=harness.auth_headers(me),
        )
        assert resp.status_code == 403
        assert resp.json()["message"] == "You are not authorized to change this password"

    def test_precondition_messages(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        headers = harness.auth_headers(uid)
        cases = [
            ({"oldPassword": PASSWORD}, "Old password and new password are required"),
            ({"oldPassword": PASSWORD, "newPassword": PASSWORD}, "New password must be different from old password"),
            ({"oldPassword": PASSWORD, "newPassword": "short"}, "Password must be at least 8 characters long"),
            ({"oldPassword": "wrongpass", "newPassword": "newpass99"}, "Current password is incorrect"),
        ]
        for payload, message in cases:
            resp = harness.client.put(f"/auth/{uid}/password", json=payload, headers=headers)
            assert resp.status_code == 400, payload
            assert resp.json()["message"] == message

    def test_success_then_old_password_fails(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        resp = harness.client.put(
            f"/auth/{uid}/password",
            json={"oldPassword": PASSWORD, "newPassword": "newpass99"},
            headers=harness.auth_headers(uid),
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Password updated successfully"

        assert _login(harness).status_code == 401
        assert _login(harness, password="newpass99").status_code == 200
