"""
Credentials: password hashing, signed session tokens and one-time codes.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import create_document, utcnow
from schemas import OTP

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# -----------------------------
# Tokens
# -----------------------------

class TokenCodec:
    """Signs and verifies JWTs carrying a single subject id."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def sign(self, subject_id: str, lifetime: timedelta, now: Optional[datetime] = None) -> str:
        issued = now or utcnow()
        claims = {
            "id": str(subject_id),
            "iat": int((issued - datetime(1970, 1, 1)).total_seconds()),
            "exp": int((issued + lifetime - datetime(1970, 1, 1)).total_seconds()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[str]:
        """Return the subject id, or None for malformed, forged or expired tokens."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return None
        subject = payload.get("id")
        if not subject or not isinstance(subject, str):
            return None
        return subject


tokens = TokenCodec(config.SECRET_KEY, config.ALGORITHM)


def create_user_token(user_id) -> str:
    return tokens.sign(str(user_id), timedelta(days=config.USER_TOKEN_DAYS))


def create_admin_token(admin_id, keep_logged_in: bool = False) -> str:
    days = config.ADMIN_SESSION_DAYS if keep_logged_in else config.ADMIN_SHORT_SESSION_DAYS
    return tokens.sign(str(admin_id), timedelta(days=days))


# -----------------------------
# One-time codes
# -----------------------------

OTP_COLLECTION = "otp"
OTP_PURPOSES = ("admin", "user")


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def issue_code(db: Database, email: str, purpose: str, now: Optional[datetime] = None) -> str:
    """Replace any outstanding code for (email, purpose) with a fresh one."""
    if purpose not in OTP_PURPOSES:
        raise ValueError(f"Unknown OTP purpose: {purpose}")
    email = email.strip().lower()
    issued = now or utcnow()
    code = generate_code()
    db[OTP_COLLECTION].delete_many({"email": email, "type": purpose})
    record = OTP(email=email, otp=code, type=purpose,
                 expires_at=issued + timedelta(minutes=config.OTP_TTL_MINUTES))
    create_document(db, OTP_COLLECTION, record.to_document())
    logger.info("Issued %s OTP for %s", purpose, email)
    return code


def verify_code(db: Database, email: str, code: str, purpose: str, now: Optional[datetime] = None) -> bool:
    """Mark a pending code as verified. A code verifies at most once."""
    record = db[OTP_COLLECTION].find_one_and_update(
        {
            "email": email.strip().lower(),
            "otp": str(code),
            "type": purpose,
            "verified": False,
            "expiresAt": {"$gt": now or utcnow()},
        },
        {"$set": {"verified": True, "updatedAt": utcnow()}},
    )
    return record is not None


def consume_code(db: Database, email: str, code: str, purpose: str, now: Optional[datetime] = None) -> bool:
    """Delete a verified, unexpired code; True when one was found."""
    record = db[OTP_COLLECTION].find_one_and_delete({
        "email": email.strip().lower(),
        "otp": str(code),
        "type": purpose,
        "verified": True,
        "expiresAt": {"$gt": now or utcnow()},
    })
    return record is not None
