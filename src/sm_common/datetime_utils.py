"""UTC datetime utilities."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO8601 string stored inside a JSONB document."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes from query strings as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
