import os
from datetime import datetime, timedelta

import jwt
from dotenv import load_dotenv
from flask import current_app, has_app_context

load_dotenv()

JWT_ALGORITHM = "HS256"
JWT_EXPIRES_IN_MINUTES = int(os.getenv("JWT_EXPIRES_IN_MINUTES", 60))


def _secret() -> str:
    # Tokens are issued by the auth service; both sides share JWT_SECRET.
    if has_app_context():
        return current_app.config.get("JWT_SECRET") or os.getenv("JWT_SECRET", "default_secret")
    return os.getenv("JWT_SECRET", "default_secret")


def create_access_token(user_id, role, expires_in_minutes=JWT_EXPIRES_IN_MINUTES):
    """
    Generate a JWT access token for a user.
    """
    payload = {
        "user_id": str(user_id),
        "role": role,
        "exp": datetime.utcnow() + timedelta(minutes=expires_in_minutes),
        "iat": datetime.utcnow()
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_token(token):
    """
    Verify and decode a JWT token.
    Returns payload dict if valid, or None if invalid/expired.
    """
    try:
        return jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
