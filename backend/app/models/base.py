from datetime import UTC, datetime


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with SQLite's CURRENT_TIMESTAMP."""
    return datetime.now(UTC).replace(tzinfo=None)
