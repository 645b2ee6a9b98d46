from datetime import timedelta

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError
from starlette.requests import Request

from auth import require_admin
from conftest import PASSWORD, bearer, make_user
from database import utcnow
from errors import ApiError
from security import create_admin_token, create_user_token, tokens


class BrokenCollection:
    def find_one(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")


class BrokenDatabase:
    def __getitem__(self, name):
        return BrokenCollection()


def request_with(headers):
    scope = {"type": "http", "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()]}
    return Request(scope)


# -----------------------------
# Admin-only
# -----------------------------
def test_admin_requires_token(client):
    res = client.get("/api/admin/me")
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Not authenticated"}


def test_admin_rejects_invalid_token(client):
    res = client.get("/api/admin/me", headers=bearer("garbage"))
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token"


def test_admin_rejects_expired_token(client, admin):
    token = tokens.sign(str(admin["_id"]), timedelta(days=1), now=utcnow() - timedelta(days=2))
    assert client.get("/api/admin/me", headers=bearer(token)).status_code == 401


def test_admin_unknown_principal_is_not_found(client):
    res = client.get("/api/admin/me", headers=bearer(create_admin_token(ObjectId())))
    assert res.status_code == 404
    assert res.json()["message"] == "Admin not found"


def test_admin_via_bearer_excludes_password_hash(client, admin_headers):
    res = client.get("/api/admin/me", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["admin"]["email"] == "admin@reclaimapp.com"
    assert "passwordHash" not in body["admin"]


def test_admin_cookie_is_preferred_over_header(client, admin):
    client.cookies.set("admin_token", create_admin_token(admin["_id"]))
    res = client.get("/api/admin/me", headers=bearer("garbage"))
    assert res.status_code == 200


def test_admin_store_fault_is_server_error():
    token = create_admin_token(ObjectId())
    with pytest.raises(ApiError) as exc:
        require_admin(request_with({"Authorization": f"Bearer {token}"}), BrokenDatabase())
    assert exc.value.status_code == 500
    assert exc.value.message == "Authentication error"


# -----------------------------
# End-user only
# -----------------------------
def test_user_requires_authorization_header(client, user):
    client.cookies.set("admin_token", create_user_token(user["_id"]))
    res = client.get("/api/users/me")
    assert res.status_code == 401
    assert res.json()["message"] == "Missing Authorization header"


def test_user_token_resolves_user(client, user_headers):
    res = client.get("/api/users/me", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["user"]["email"] == "maya@reclaimapp.com"
    assert "passwordHash" not in res.json()["user"]


def test_admin_token_is_not_a_user(client, admin_headers):
    res = client.get("/api/users/me", headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["message"] == "User not found"


# -----------------------------
# Admin-or-user
# -----------------------------
def test_either_principal_may_read_scheduled_affirmations(client, admin_headers, user_headers):
    assert client.get("/api/admin/daily-affirmations", headers=admin_headers).status_code == 200
    assert client.get("/api/admin/daily-affirmations", headers=user_headers).status_code == 200


def test_user_cannot_write_admin_content(client, user_headers):
    res = client.post("/api/admin/daily-affirmations", json={"text": "I am enough"}, headers=user_headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Admin not found"


def test_unknown_account_is_not_found(client):
    res = client.get("/api/admin/resources", headers=bearer(create_user_token(ObjectId())))
    assert res.status_code == 404
    assert res.json()["message"] == "Account not found"


# -----------------------------
# Admin account flows
# -----------------------------
def test_admin_register_and_duplicate(client):
    body = {"email": "new@reclaimapp.com", "password": PASSWORD, "name": "Noor"}
    res = client.post("/api/admin/register", json=body)
    assert res.status_code == 201
    assert "passwordHash" not in res.json()["admin"]
    assert client.post("/api/admin/register", json=body).status_code == 400


def test_admin_register_missing_fields(client):
    res = client.post("/api/admin/register", json={})
    assert res.status_code == 400
    assert res.json()["message"] == "email, password are required"


def test_admin_login_sets_strict_cookie(client, admin):
    res = client.post("/api/admin/login", json={"email": "admin@reclaimapp.com", "password": PASSWORD,
                                                 "keepLoggedIn": True})
    assert res.status_code == 200
    cookie = res.headers["set-cookie"]
    assert "admin_token=" in cookie
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()
    assert "Max-Age=604800" in cookie
    assert res.json()["token"]


def test_admin_short_session_cookie(client, admin):
    res = client.post("/api/admin/login", json={"email": "admin@reclaimapp.com", "password": PASSWORD})
    assert "Max-Age=86400" in res.headers["set-cookie"]


def test_admin_login_bad_password(client, admin):
    res = client.post("/api/admin/login", json={"email": "admin@reclaimapp.com", "password": "nope"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_admin_profile_update(client, admin_headers):
    res = client.patch("/api/admin/profile", json={"name": "Ada L."}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["admin"]["name"] == "Ada L."


def test_admin_password_reset_flow(client, admin, mailer, db):
    assert client.post("/api/admin/forgot-password", json={"email": "admin@reclaimapp.com"}).status_code == 200
    code = mailer.last_code
    assert mailer.sent[-1]["purpose"] == "admin"

    reset = {"email": "admin@reclaimapp.com", "otp": code, "newPassword": "fresh-pass", "confirmPassword": "fresh-pass"}
    res = client.post("/api/admin/reset-password", json=reset)
    assert res.status_code == 400  # not verified yet

    assert client.post("/api/admin/verify-otp", json={"email": "admin@reclaimapp.com", "otp": code}).status_code == 200
    assert client.post("/api/admin/reset-password", json=reset).status_code == 200
    assert db["otp"].count_documents({"email": "admin@reclaimapp.com"}) == 0

    login = client.post("/api/admin/login", json={"email": "admin@reclaimapp.com", "password": "fresh-pass"})
    assert login.status_code == 200


def test_reset_password_checks_confirmation(client, admin):
    reset = {"email": "admin@reclaimapp.com", "otp": "123456", "newPassword": "fresh-pass",
             "confirmPassword": "other-pass"}
    res = client.post("/api/admin/reset-password", json=reset)
    assert res.status_code == 400
    assert res.json()["message"] == "Passwords do not match"


def test_forgot_password_unknown_email_still_succeeds(client, mailer):
    res = client.post("/api/admin/forgot-password", json={"email": "ghost@reclaimapp.com"})
    assert res.status_code == 200
    assert mailer.sent == []


def test_forgot_password_mail_failure(client, admin, mailer):
    mailer.deliver = False
    res = client.post("/api/admin/resend-otp", json={"email": "admin@reclaimapp.com"})
    assert res.status_code == 500
    assert res.json()["message"] == "Failed to send OTP email"


def test_logout_clears_cookie(client):
    res = client.post("/api/logout")
    assert res.status_code == 200
    assert 'admin_token=""' in res.headers["set-cookie"] or "Max-Age=0" in res.headers["set-cookie"]


# -----------------------------
# End-user account flows
# -----------------------------
def test_user_register_then_duplicate(client):
    body = {"email": "sam@reclaimapp.com", "password": PASSWORD, "name": "Sam"}
    res = client.post("/api/users/register", json=body)
    assert res.status_code == 201
    assert tokens.verify(res.json()["token"]) == res.json()["user"]["_id"]
    assert client.post("/api/users/register", json=body).status_code == 409


def test_user_login(client, user):
    res = client.post("/api/users/login", json={"email": "MAYA@reclaimapp.com", "password": PASSWORD})
    assert res.status_code == 200
    assert tokens.verify(res.json()["token"]) == str(user["_id"])


def test_deactivated_user_cannot_log_in(client, db):
    make_user(db, email="gone@reclaimapp.com", active=False)
    res = client.post("/api/users/login", json={"email": "gone@reclaimapp.com", "password": PASSWORD})
    assert res.status_code == 403


def test_social_login_links_existing_email(client, user, db):
    res = client.post("/api/users/social-login",
                      json={"provider": "google", "providerId": "g-123", "email": "maya@reclaimapp.com"})
    assert res.status_code == 200
    assert db["user"].find_one({"_id": user["_id"]})["googleId"] == "g-123"

    again = client.post("/api/users/social-login", json={"provider": "google", "providerId": "g-123"})
    assert again.json()["user"]["_id"] == str(user["_id"])


def test_social_login_keeps_existing_provider_link(client, db):
    linked = make_user(db, email="kai@reclaimapp.com", name="Kai", googleId="g-original")
    res = client.post("/api/users/social-login",
                      json={"provider": "google", "providerId": "g-other", "email": "kai@reclaimapp.com"})
    assert res.status_code == 200
    assert res.json()["user"]["_id"] == str(linked["_id"])
    assert db["user"].find_one({"_id": linked["_id"]})["googleId"] == "g-original"


def test_social_login_creates_account(client, db):
    res = client.post("/api/users/social-login",
                      json={"provider": "facebook", "providerId": "fb-9", "email": "lee@reclaimapp.com",
                            "name": "Lee"})
    assert res.status_code == 200
    assert db["user"].find_one({"email": "lee@reclaimapp.com"})["facebookId"] == "fb-9"


def test_social_login_new_account_needs_name_and_email(client):
    res = client.post("/api/users/social-login", json={"provider": "google", "providerId": "g-404"})
    assert res.status_code == 400


def test_user_password_reset_flow(client, user, mailer):
    client.post("/api/users/forgot-password", json={"email": "maya@reclaimapp.com"})
    code = mailer.last_code
    assert mailer.sent[-1]["purpose"] == "user"
    assert client.post("/api/users/verify-otp", json={"email": "maya@reclaimapp.com", "otp": code}).status_code == 200
    reset = {"email": "maya@reclaimapp.com", "otp": code, "newPassword": "brand-new", "confirmPassword": "brand-new"}
    assert client.post("/api/users/reset-password", json=reset).status_code == 200
    assert client.post("/api/users/reset-password", json=reset).status_code == 400


def test_onesignal_registration(client, user, user_headers, db):
    res = client.post("/api/users/onesignal/register", json={"playerId": "player-1"}, headers=user_headers)
    assert res.status_code == 200
    assert db["user"].find_one({"_id": user["_id"]})["oneSignalPlayerId"] == "player-1"
