"""
Authorization dependencies.

Three variants, each usable as ``Depends(...)``:

- ``require_admin``: token from the admin cookie, else ``Authorization: Bearer``;
  resolves an administrator.
- ``require_user``: token from ``Authorization: Bearer`` only; resolves an
  end user.
- ``require_admin_or_user``: token from cookie or header; resolves an
  administrator, falling back to an end user with the same id.

Failures raise ``ApiError``: no token 401, bad/expired token 401, unknown
principal 404, store fault 500.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from database import get_db, to_object_id
from errors import ApiError
from security import tokens

PASSWORD_PROJECTION = {"passwordHash": 0}


@dataclass
class Principal:
    kind: str  # "admin" | "user"
    doc: dict


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


def cookie_or_bearer_token(request: Request) -> Optional[str]:
    return request.cookies.get(config.ADMIN_COOKIE_NAME) or bearer_token(request)


def _subject(token: Optional[str], missing_message: str) -> str:
    if not token:
        raise ApiError(401, missing_message)
    subject = tokens.verify(token)
    if subject is None:
        raise ApiError(401, "Invalid token")
    return subject


def _find(db: Database, collection: str, subject: str) -> Optional[dict]:
    oid = to_object_id(subject)
    if oid is None:
        return None
    try:
        return db[collection].find_one({"_id": oid}, PASSWORD_PROJECTION)
    except PyMongoError as e:
        raise ApiError(500, "Authentication error", str(e) if config.EXPOSE_ERROR_DETAILS else None)


def require_admin(request: Request, db: Database = Depends(get_db)) -> dict:
    subject = _subject(cookie_or_bearer_token(request), "Not authenticated")
    admin = _find(db, "admin", subject)
    if admin is None:
        raise ApiError(404, "Admin not found")
    return admin


def require_user(request: Request, db: Database = Depends(get_db)) -> dict:
    subject = _subject(bearer_token(request), "Missing Authorization header")
    user = _find(db, "user", subject)
    if user is None:
        raise ApiError(404, "User not found")
    return user


def require_admin_or_user(request: Request, db: Database = Depends(get_db)) -> Principal:
    subject = _subject(cookie_or_bearer_token(request), "Not authenticated")
    admin = _find(db, "admin", subject)
    if admin is not None:
        return Principal("admin", admin)
    user = _find(db, "user", subject)
    if user is not None:
        return Principal("user", user)
    raise ApiError(404, "Account not found")
