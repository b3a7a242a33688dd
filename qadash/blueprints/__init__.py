"""
qadash blueprint helpers.
"""

from flask import request

from qadash.core.exceptions import ValidationError


def read_limit(default_limit, max_limit=100):
    """Read the ``limit`` query param, capped at ``max_limit``.

    Raises:
        ValidationError: limit is not a positive integer.
    """
    raw = request.args.get("limit")
    if raw is None:
        return default_limit
    try:
        limit = int(raw)
    except (ValueError, TypeError) as exc:
        raise ValidationError("limit must be an integer", details={"limit": raw}) from exc
    if limit < 1:
        raise ValidationError("limit must be positive", details={"limit": raw})
    return min(limit, max_limit)
