"""Time helpers shared by the in-memory registries and the record sink."""
from datetime import datetime, UTC


def utcnow() -> datetime:
    """Naive UTC now, matching the naive DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)
