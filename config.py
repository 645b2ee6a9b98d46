import os

# Environment/config
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "reclaim")

SECRET_KEY = os.getenv("JWT_SECRET", "devsecret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
USER_TOKEN_DAYS = 7
ADMIN_SESSION_DAYS = 7
ADMIN_SHORT_SESSION_DAYS = 1
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

ADMIN_COOKIE_NAME = "admin_token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

OTP_TTL_MINUTES = 10
MIN_PASSWORD_LENGTH = 6

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER") or os.getenv("EMAIL_USER")
SMTP_PASS = os.getenv("SMTP_PASS") or os.getenv("EMAIL_PASSWORD")
EMAIL_FROM = os.getenv("EMAIL_FROM") or SMTP_USER or "noreply@reclaimadmin.com"

ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID")
ONESIGNAL_REST_API_KEY = os.getenv("ONESIGNAL_REST_API_KEY")

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))

# Raw exception text in 500 envelopes; clients read the `error` field today.
EXPOSE_ERROR_DETAILS = os.getenv("EXPOSE_ERROR_DETAILS", "true").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
