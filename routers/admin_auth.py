import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Response
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from auth import require_admin
from database import create_document, get_db, public_view, utcnow
from errors import ApiError
from mailer import get_mailer
from schemas import Admin, AdminLogin, AdminProfileUpdate, EmailRequest, OtpCheck, PasswordReset, Registration
from security import create_admin_token, get_password_hash, verify_password
from routers.common import check_reset_code, ok, reset_password, send_reset_code

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin auth"])


@router.post("/api/admin/register", status_code=201)
def register(body: Registration, db: Database = Depends(get_db)):
    email = body.email.strip().lower()
    if len(body.password) < config.MIN_PASSWORD_LENGTH:
        raise ApiError(400, f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")
    if db["admin"].find_one({"email": email}, {"_id": 1}):
        raise ApiError(400, "Admin already exists")
    admin = Admin(email=email, password_hash=get_password_hash(body.password), name=body.name)
    try:
        doc = create_document(db, "admin", admin.to_document())
    except DuplicateKeyError:
        raise ApiError(400, "Admin already exists")
    logger.info("Registered admin %s", email)
    return {"success": True, "message": "Admin registered successfully", "admin": public_view(doc)}


@router.post("/api/admin/login")
def login(body: AdminLogin, response: Response, db: Database = Depends(get_db)):
    admin = db["admin"].find_one({"email": body.email.strip().lower()})
    if not admin or not verify_password(body.password, admin.get("passwordHash")):
        raise ApiError(400, "Invalid email or password")

    days = config.ADMIN_SESSION_DAYS if body.keep_logged_in else config.ADMIN_SHORT_SESSION_DAYS
    token = create_admin_token(admin["_id"], keep_logged_in=body.keep_logged_in)
    response.set_cookie(
        config.ADMIN_COOKIE_NAME,
        token,
        max_age=int(timedelta(days=days).total_seconds()),
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
        path="/",
    )
    return {"success": True, "message": "Login successful", "token": token, "admin": public_view(admin)}


@router.get("/api/admin/me")
def me(admin: dict = Depends(require_admin)):
    return ok(admin=admin)


@router.patch("/api/admin/profile")
def update_profile(body: AdminProfileUpdate, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    changes = body.changes()
    if changes:
        changes["updatedAt"] = utcnow()
        db["admin"].update_one({"_id": admin["_id"]}, {"$set": changes})
        admin.update(changes)
    return ok(message="Profile updated successfully", admin=admin)


@router.post("/api/admin/forgot-password")
def forgot_password(body: EmailRequest, db: Database = Depends(get_db), mailer=Depends(get_mailer)):
    return send_reset_code(db, mailer, body.email, "admin")


@router.post("/api/admin/resend-otp")
def resend_otp(body: EmailRequest, db: Database = Depends(get_db), mailer=Depends(get_mailer)):
    return send_reset_code(db, mailer, body.email, "admin")


@router.post("/api/admin/verify-otp")
def verify_otp(body: OtpCheck, db: Database = Depends(get_db)):
    return check_reset_code(db, body.email, body.otp, "admin")


@router.post("/api/admin/reset-password")
def reset(body: PasswordReset, db: Database = Depends(get_db)):
    return reset_password(db, body, "admin")


@router.api_route("/api/logout", methods=["GET", "POST"])
def logout(response: Response):
    response.delete_cookie(config.ADMIN_COOKIE_NAME, path="/")
    return {"success": True, "message": "Logged out successfully"}
