"""Request payload helpers.

The storefront sends camelCase keys (``orderId``, ``shippingAddress``) while
this service speaks snake_case; both are accepted on the way in.
"""
from bson import ObjectId


def pick(data, *keys, default=None):
    """Return the first present, non-None value among ``keys``."""
    if not isinstance(data, dict):
        return default
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def clean_str(value) -> str:
    return str(value).strip() if value is not None else ""


def is_object_id(value) -> bool:
    return isinstance(value, ObjectId) or (isinstance(value, str) and ObjectId.is_valid(value))


def to_float(value):
    """Float or None for missing/garbage input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value):
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
