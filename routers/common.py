"""Lookup and update helpers shared by the route modules."""
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection

import config
from database import serialize, to_object_id, utcnow
from errors import ApiError
from security import consume_code, get_password_hash, issue_code, verify_code


def object_id(value: Any) -> ObjectId:
    oid = to_object_id(value)
    if oid is None:
        raise ApiError(400, "Invalid id")
    return oid


def find_or_404(collection: Collection, item_id: str, message: str,
                projection: Optional[dict] = None, extra: Optional[dict] = None) -> dict:
    doc = collection.find_one({"_id": object_id(item_id), **(extra or {})}, projection)
    if doc is None:
        raise ApiError(404, message)
    return doc


def update_or_404(collection: Collection, item_id: str, changes: Dict[str, Any], message: str,
                  projection: Optional[dict] = None, extra: Optional[dict] = None) -> dict:
    """Apply a partial $set and return the updated document."""
    doc = collection.find_one_and_update(
        {"_id": object_id(item_id), **(extra or {})},
        {"$set": {**changes, "updatedAt": utcnow()}},
        projection=projection,
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise ApiError(404, message)
    return doc


def delete_or_404(collection: Collection, item_id: str, message: str) -> None:
    result = collection.delete_one({"_id": object_id(item_id)})
    if result.deleted_count == 0:
        raise ApiError(404, message)


def next_order(collection: Collection, query: Optional[dict] = None) -> int:
    """One past the highest stored order, or 0 for an empty collection."""
    last = collection.find_one({**(query or {}), "order": {"$ne": None}}, {"order": 1},
                               sort=[("order", DESCENDING)])
    return last["order"] + 1 if last else 0


def ok(**payload) -> dict:
    return {"success": True, **serialize(payload)}


# -----------------------------
# Password reset (admin and user share the flow)
# -----------------------------
RESET_SENT = "If the email exists, an OTP has been sent"


def send_reset_code(db, mailer, email: str, purpose: str) -> dict:
    email = email.strip().lower()
    if db[purpose].find_one({"email": email}, {"_id": 1}) is None:
        return {"success": True, "message": RESET_SENT}
    code = issue_code(db, email, purpose)
    if not mailer.send_otp(email, code, purpose):
        raise ApiError(500, "Failed to send OTP email")
    return {"success": True, "message": RESET_SENT}


def check_reset_code(db, email: str, code: str, purpose: str) -> dict:
    if not verify_code(db, email, code, purpose):
        raise ApiError(400, "Invalid or expired OTP")
    return {"success": True, "message": "OTP verified successfully"}


def reset_password(db, body, purpose: str) -> dict:
    if len(body.new_password) < config.MIN_PASSWORD_LENGTH:
        raise ApiError(400, f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")
    if body.new_password != body.confirm_password:
        raise ApiError(400, "Passwords do not match")
    email = body.email.strip().lower()
    if db[purpose].find_one({"email": email}, {"_id": 1}) is None:
        raise ApiError(404, "Account not found")
    if not consume_code(db, email, body.otp, purpose):
        raise ApiError(400, "OTP not verified or expired")
    db[purpose].update_one({"email": email},
                           {"$set": {"passwordHash": get_password_hash(body.new_password), "updatedAt": utcnow()}})
    return {"success": True, "message": "Password reset successfully"}
