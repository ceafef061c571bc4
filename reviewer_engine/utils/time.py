"""Timezone-aware datetime helpers."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so aware and naive values compare."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
