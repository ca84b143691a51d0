from datetime import timedelta

import pytest
from flask import jsonify
from flask_jwt_extended import set_access_cookies

from cms_auth import create_app
from cms_auth.services.tokens import SessionClaims, TokenIssuer
from conftest import TEST_CONFIG, make_admin, register, sign_in

ALICE = {"username": "alice", "email": "alice@example.com", "password": "secret1"}


def _login(client, notifier, email="alice@example.com", password="secret1"):
    resp = client.post("/api/users/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return client.post("/api/users/otpCheckout", json={"email": email, "otpCode": notifier.last_code(email)})


def _session_cookie(resp):
    for header in resp.headers.getlist("Set-Cookie"):
        if header.startswith("jwtToken="):
            return header
    raise AssertionError("no jwtToken cookie set")


def _error(resp):
    return resp.get_json()["error"]


class TestLoginFlow:

    def test_register_login_and_checkout(self, client, notifier):
        resp = client.post("/api/users/register", json=ALICE)
        assert resp.status_code == 201
        assert resp.get_json() == {"message": "User registered successfully - OTP code has been sent"}
        assert "jwtToken" not in resp.headers.get("Set-Cookie", "")

        resp = _login(client, notifier)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["username"] == "alice"
        assert body["email"] == "alice@example.com"
        assert body["isAdmin"] is False
        assert body["token"]

        cookie = _session_cookie(resp)
        assert "HttpOnly" in cookie
        assert "SameSite=Strict" in cookie
        assert "Max-Age=864000" in cookie
        assert "Path=/" in cookie
        assert "Secure" not in cookie

        me = client.get("/api/users/me")
        assert me.status_code == 200
        assert me.get_json()["username"] == "alice"
        assert "password" not in "".join(me.get_json())

    def test_checkout_code_is_single_use(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        code = notifier.last_code()
        assert client.post("/api/users/otpCheckout", json={"email": ALICE["email"], "otpCode": code}).status_code == 201

        resp = client.post("/api/users/otpCheckout", json={"email": ALICE["email"], "otpCode": code})
        assert resp.status_code == 401
        assert _error(resp)["message"] == "This OTP code has been used"

    def test_expired_code(self, client, notifier, clock):
        client.post("/api/users/register", json=ALICE)
        clock.advance(minutes=5, seconds=1)
        resp = client.post("/api/users/otpCheckout", json={"email": ALICE["email"], "otpCode": notifier.last_code()})
        assert resp.status_code == 401
        assert _error(resp)["code"] == "EXPIRED"

    def test_wrong_password_and_unknown_user_are_indistinguishable(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        wrong = client.post("/api/users/login", json={"username": "alice", "password": "secret9"})
        missing = client.post("/api/users/login", json={"username": "nobody", "password": "secret1"})
        assert wrong.status_code == missing.status_code == 401
        assert wrong.get_json() == missing.get_json()

    def test_unregistered_checkout(self, client):
        resp = client.post("/api/users/otpCheckout", json={"email": "ghost@example.com", "otpCode": "ABC123"})
        assert resp.status_code == 404
        assert _error(resp)["message"] == "This user is not registered"

    def test_duplicate_registration(self, client):
        client.post("/api/users/register", json=ALICE)
        resp = client.post("/api/users/register", json=ALICE)
        assert resp.status_code == 409
        assert _error(resp)["code"] == "ALREADY_EXISTS"

    def test_validation_errors_list_fields(self, client, notifier):
        resp = client.post("/api/users/register", json={"username": "alice", "email": "nope", "password": "x"})
        assert resp.status_code == 400
        error = _error(resp)
        assert error["code"] == "VALIDATION"
        names = {name for field in error["fields"] for name in field}
        assert names == {"email", "password"}
        assert notifier.sent == []

    def test_non_json_body(self, client):
        resp = client.post("/api/users/register", data="username=alice", content_type="text/plain")
        assert resp.status_code == 400
        assert _error(resp)["message"] == "Request body must be a JSON object"


class TestSession:

    def test_missing_token(self, client):
        resp = client.get("/api/users/me")
        assert resp.status_code == 401
        assert _error(resp)["message"] == "no token provided, access denied"

    def test_garbage_token(self, client):
        resp = client.get("/api/users/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401
        assert _error(resp)["message"] == "unauthorized"

    def test_expired_token_looks_like_tampered_token(self, client, flow, notifier):
        sign_in(flow, notifier)
        user = flow.store.find_user_by_username("alice")
        expired = TokenIssuer(expires=timedelta(seconds=-10)).issue(SessionClaims.for_user(user))

        stale = client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
        forged = client.get("/api/users/me", headers={"Authorization": "Bearer not.a.token"})
        assert stale.status_code == forged.status_code == 401
        assert _error(stale)["message"] == "unauthorized"
        assert stale.get_json() == forged.get_json()

    def test_bearer_header(self, app, client, flow, notifier):
        token = sign_in(flow, notifier)
        resp = app.test_client().get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.get_json()["email"] == "alice@example.com"

    def test_logout_clears_cookie(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)

        resp = client.post("/api/users/logout")
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "Logged out"}
        assert client.get("/api/users/me").status_code == 401

    def test_secure_cookie_in_production(self):
        app = create_app({**TEST_CONFIG, "APP_ENV": "production"})
        assert app.config["JWT_COOKIE_SECURE"] is True
        with app.test_request_context():
            resp = jsonify({})
            set_access_cookies(resp, "token", max_age=60)
            assert "Secure" in _session_cookie(resp)

    def test_refuses_to_start_without_signing_key(self):
        with pytest.raises(RuntimeError):
            create_app({**TEST_CONFIG, "JWT_SECRET_KEY": None})


class TestCredentialChanges:

    def test_order_otp_then_change_email(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        notifier.sent.clear()

        assert client.get("/api/users/me/orderOtp").status_code == 200
        code = notifier.last_code("alice@example.com")

        resp = client.put("/api/users/email", json={"email": "alice2@example.com", "otpCode": code})
        assert resp.status_code == 200
        assert resp.get_json() == {"id": 1, "username": "alice", "email": "alice2@example.com", "isAdmin": False}
        assert client.get("/api/users/me").get_json()["email"] == "alice2@example.com"

    def test_change_email_to_taken_address(self, client, flow, notifier):
        register(flow, username="bob", email="bob@example.com")
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        client.get("/api/users/me/orderOtp")

        resp = client.put("/api/users/email", json={"email": "bob@example.com", "otpCode": notifier.last_code()})
        assert resp.status_code == 409

    def test_change_password(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)

        resp = client.put("/api/users/password", json={"currentPassword": "secret1", "newPassword": "secret2"})
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "Password updated successfully"}

        assert client.post("/api/users/login", json={"username": "alice", "password": "secret2"}).status_code == 200

    def test_same_password(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        resp = client.put("/api/users/password", json={"currentPassword": "secret1", "newPassword": "secret1"})
        assert resp.status_code == 400
        assert _error(resp)["code"] == "NO_OP_CHANGE"

    def test_wrong_current_password(self, client, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        resp = client.put("/api/users/password", json={"currentPassword": "secret9", "newPassword": "secret2"})
        assert resp.status_code == 401
        assert _error(resp)["message"] == "Current password is not correct"


class TestAdminRoutes:

    def test_list_users_requires_admin(self, client, flow, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        assert client.get("/api/users").status_code == 403

        make_admin(flow, "alice")
        resp = client.get("/api/users")
        assert resp.status_code == 200
        assert [u["username"] for u in resp.get_json()] == ["alice"]

    def test_create_user(self, client, flow, notifier):
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)
        make_admin(flow, "alice")

        resp = client.post("/api/users", json={
            "username": "dave", "email": "dave@example.com", "password": "secret4", "isAdmin": False,
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["message"] == "User successfully created"
        assert body["user"]["username"] == "dave"

    def test_profile_lifecycle(self, client, flow, notifier):
        register(flow, username="bob", email="bob@example.com")
        client.post("/api/users/register", json=ALICE)
        _login(client, notifier)

        assert client.get("/api/users/profile/alice").status_code == 200
        assert client.get("/api/users/profile/bob").status_code == 403
        assert client.put("/api/users/profile/bob", json={"isAdmin": True}).status_code == 403

        make_admin(flow, "alice")
        resp = client.put("/api/users/profile/bob", json={"isAdmin": True})
        assert resp.status_code == 200
        assert resp.get_json()["isAdmin"] is True

        resp = client.delete("/api/users/profile/bob")
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "The account has been deleted"}
        assert client.get("/api/users/profile/bob").status_code == 404

    def test_unknown_route_is_json(self, client):
        resp = client.get("/api/users/nothing/here")
        assert resp.status_code == 404
        assert _error(resp)["code"] == "NOT_FOUND"
