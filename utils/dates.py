from datetime import datetime
from typing import Optional


def to_naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """
    Aware datetimes become naive server-local time; naive ones pass through.
    Everything stored and compared (deadline scans included) is naive local time.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
