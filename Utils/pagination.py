import math

from Utils.appError import ValidationError


def parse_pagination(args, default_limit: int = 10, max_limit: int = 50):
    """Read ``page``/``limit`` from a mapping (query args or kwargs).

    Returns (page, limit). Raises ValidationError for non-numeric or
    out-of-range values.
    """
    errors = []
    try:
        page = int(args.get("page", 1))
        if page < 1:
            raise ValueError
    except (TypeError, ValueError):
        errors.append({"field": "page", "message": "Page must be a positive integer"})
        page = 1

    try:
        limit = int(args.get("limit", default_limit))
        if limit < 1 or limit > max_limit:
            raise ValueError
    except (TypeError, ValueError):
        errors.append({"field": "limit", "message": f"Limit must be between 1 and {max_limit}"})
        limit = default_limit

    if errors:
        raise ValidationError("Validation failed", errors)
    return page, limit


def paginate(queryset, page: int, limit: int):
    """Slice a mongoengine queryset; returns (documents, pagination meta)."""
    total = queryset.count()
    skip = (page - 1) * limit
    documents = list(queryset.skip(skip).limit(limit))
    return documents, {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "has_next": skip + limit < total,
        "has_prev": page > 1,
    }
