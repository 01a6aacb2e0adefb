import math
from datetime import datetime, timezone


def paginate(items: list, page: int, limit: int, total_key: str):
    """Slice one page out of ``items`` and describe the pagination"""
    total = len(items)
    start = (page - 1) * limit
    pagination = {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        total_key: total,
    }
    return items[start:start + limit], pagination


def as_utc(value: datetime | None) -> datetime | None:
    # Query strings usually arrive without an offset
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def within(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if value is None:
        return False
    value = as_utc(value)
    if start is not None and value < as_utc(start):
        return False
    if end is not None and value > as_utc(end):
        return False
    return True
