import os
from datetime import timedelta

from dotenv import load_dotenv


load_dotenv()


class Config:
    database_url = os.getenv("DATABASE_URL", "sqlite:///foodlink_local.db")
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-change-this-secret")
    SQLALCHEMY_DATABASE_URI = database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    WTF_CSRF_TIME_LIMIT = 3600
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    PICKUP_EARLY_TOLERANCE_MINUTES = int(os.getenv("PICKUP_EARLY_TOLERANCE_MINUTES", "15"))
    PICKUP_LATE_TOLERANCE_MINUTES = int(os.getenv("PICKUP_LATE_TOLERANCE_MINUTES", "30"))
    PICKUP_CODE_TTL_MINUTES = int(os.getenv("PICKUP_CODE_TTL_MINUTES", "10"))
    PICKUP_CODE_HOLDER = os.getenv("PICKUP_CODE_HOLDER", "either").lower()
    CONFIRM_PICKUP_RATE_LIMIT = os.getenv("CONFIRM_PICKUP_RATE_LIMIT", "10 per minute")

    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "60"))
