import logging

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from auth import require_user
from database import create_document, get_db, public_view, utcnow
from errors import ApiError
from mailer import get_mailer
from schemas import (Credentials, EmailRequest, OtpCheck, PasswordReset, PlayerRegistration, SocialLogin, User,
                     UserRegistration)
from security import create_user_token, get_password_hash, verify_password
from routers.common import check_reset_code, ok, reset_password, send_reset_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["user auth"])

PROVIDER_FIELDS = {"google": "googleId", "facebook": "facebookId"}


def session(user: dict, message: str) -> dict:
    return {"success": True, "message": message, "token": create_user_token(user["_id"]), "user": public_view(user)}


@router.post("/register", status_code=201)
def register(body: UserRegistration, db: Database = Depends(get_db)):
    email = body.email.strip().lower()
    if len(body.password) < config.MIN_PASSWORD_LENGTH:
        raise ApiError(400, f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")
    if db["user"].find_one({"email": email}, {"_id": 1}):
        raise ApiError(409, "User already exists")
    user = User(email=email, name=body.name, birthdate=body.birthdate,
                password_hash=get_password_hash(body.password))
    try:
        doc = create_document(db, "user", user.to_document())
    except DuplicateKeyError:
        raise ApiError(409, "User already exists")
    logger.info("Registered user %s", email)
    return session(doc, "User registered successfully")


@router.post("/login")
def login(body: Credentials, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": body.email.strip().lower()})
    if not user or not verify_password(body.password, user.get("passwordHash")):
        raise ApiError(400, "Invalid email or password")
    if user.get("active") is False:
        raise ApiError(403, "Account is deactivated")
    return session(user, "Login successful")


@router.post("/social-login")
def social_login(body: SocialLogin, db: Database = Depends(get_db)):
    field = PROVIDER_FIELDS[body.provider]
    users = db["user"]

    user = users.find_one({field: body.provider_id})
    if user is None and body.email:
        email = body.email.strip().lower()
        # an existing link to another provider id is left in place
        user = users.find_one_and_update(
            {"email": email, field: None},
            {"$set": {field: body.provider_id, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        ) or users.find_one({"email": email})
    if user is None:
        if not body.email or not body.name:
            raise ApiError(400, "Name and email are required for new accounts")
        new_user = User(email=body.email.strip().lower(), name=body.name, **{field: body.provider_id})
        user = create_document(db, "user", new_user.to_document())
        logger.info("Created %s account for %s", body.provider, user["email"])

    if user.get("active") is False:
        raise ApiError(403, "Account is deactivated")
    return session(user, "Login successful")


@router.get("/me")
def me(user: dict = Depends(require_user)):
    return ok(user=user)


@router.post("/forgot-password")
def forgot_password(body: EmailRequest, db: Database = Depends(get_db), mailer=Depends(get_mailer)):
    return send_reset_code(db, mailer, body.email, "user")


@router.post("/verify-otp")
def verify_otp(body: OtpCheck, db: Database = Depends(get_db)):
    return check_reset_code(db, body.email, body.otp, "user")


@router.post("/reset-password")
def reset(body: PasswordReset, db: Database = Depends(get_db)):
    return reset_password(db, body, "user")


@router.post("/onesignal/register")
def register_player(body: PlayerRegistration, user: dict = Depends(require_user), db: Database = Depends(get_db)):
    db["user"].update_one({"_id": user["_id"]},
                          {"$set": {"oneSignalPlayerId": body.player_id, "updatedAt": utcnow()}})
    return {"success": True, "message": "OneSignal player registered"}
