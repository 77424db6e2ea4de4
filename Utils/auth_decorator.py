# Utils/auth_decorator.py
from functools import wraps

from flask import request

from Models.userModel import User
from Utils.appError import AppError, Forbidden
from Utils.jwt_utils import decode_token
from Utils.payload import is_object_id


def _read_token():
    auth_header = request.headers.get("Authorization")
    token = None

    # Prefer Authorization header if present and well-formed
    if auth_header:
        try:
            token_type, token_val = auth_header.split(" ")
            if token_type.lower() == "bearer" and token_val:
                token = token_val
        except ValueError:
            pass

    # Fallback to cookies
    return token or request.cookies.get("access_token")


def token_required(f):
    """Ensure that a valid JWT is present and pass the User as first argument."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _read_token()
        if not token:
            raise AppError("Authorization token missing", 401)

        decoded = decode_token(token)
        if not decoded:
            raise AppError("Invalid or expired token", 401)

        user_id = decoded.get("user_id")
        user = User.objects(id=user_id).first() if is_object_id(user_id) else None
        if not user or not user.active:
            raise AppError("User not found", 401)

        return f(user, *args, **kwargs)

    return decorated


def roles_required(*allowed_roles):
    """
    Restrict access to users with specific roles.
    Example:
        @roles_required("admin")
        def confirm_payment(user, order_id): ...
    """
    def wrapper(f):
        @wraps(f)
        @token_required
        def decorated(user, *args, **kwargs):
            if user.role_value not in allowed_roles:
                raise Forbidden(f"Access denied. Requires role(s): {', '.join(allowed_roles)}")
            return f(user, *args, **kwargs)

        return decorated
    return wrapper
