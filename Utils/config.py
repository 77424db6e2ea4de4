import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Application settings read from the environment (.env supported)."""

    APP_ENV = os.getenv("APP_ENV", "development")
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
    JWT_SECRET = os.getenv("JWT_SECRET", "super_jwt_secret")

    # Database
    MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/fruitpanda")
    CONNECT_DB = True

    # Pricing
    FREE_DELIVERY_THRESHOLD = float(os.getenv("FREE_DELIVERY_THRESHOLD", 1000))
    DELIVERY_FEE = float(os.getenv("DELIVERY_FEE", 60))

    # Receipts
    RECEIPTS_DIR = os.getenv("RECEIPTS_DIR", os.path.join(os.getcwd(), "receipts"))
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Logging
    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # Email
    SMTP_ENABLED = _env_bool("SMTP_ENABLED")
    SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT = int(os.getenv("SMTP_PORT", 1025))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASS = os.getenv("SMTP_PASS")
    EMAIL_SENDER = os.getenv("EMAIL_SENDER", "noreply@fruitpanda.com")

    # Rate limiting
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", "true")
    RATELIMIT_DEFAULT_HOURLY = os.getenv("LIMIT_DEFAULT_HOURLY", "200 per hour")
    RATELIMIT_DEFAULT_SECONDLY = os.getenv("LIMIT_DEFAULT_SECONDLY", "10 per second")


def is_production(config) -> bool:
    return str(config.get("APP_ENV", "")).lower() == "production"
