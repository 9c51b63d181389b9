from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every persisted datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
