"""Date helpers shared by metrics and report services."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from qadash.core.exceptions import InvalidRangeError, ValidationError


def utc_today() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


def parse_date(value: date | datetime | str, field: str) -> date:
    """Coerce ``value`` to a ``date``.

    Accepts ``date``/``datetime`` objects and ISO strings
    (``YYYY-MM-DD``, or a full timestamp whose date part is used).

    Raises:
        ValidationError: value is missing or not an ISO date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: "missing"})
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}",
            details={field: "invalid date"},
        ) from exc


def parse_range(date_from, date_to) -> tuple[date, date]:
    """Parse an inclusive window and reject ``date_from > date_to``.

    Raises:
        ValidationError: either bound is malformed.
        InvalidRangeError: the window is inverted.
    """
    start = parse_date(date_from, "date_from")
    end = parse_date(date_to, "date_to")
    if start > end:
        raise InvalidRangeError(start, end)
    return start, end


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open UTC timestamp bounds covering the calendar days start..end."""
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper


def day_key(value) -> str | None:
    """Calendar-day prefix (``YYYY-MM-DD``) of an ISO timestamp or datetime."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    return str(value)[:10]
