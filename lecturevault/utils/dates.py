"""
UTC helpers. The store keeps naive datetimes that are always UTC.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """
    Aware datetimes are converted to UTC and stripped; naive ones are taken as UTC already

    Example:
        >>> to_utc_naive(datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=3))))
        datetime.datetime(2024, 1, 1, 9, 0)
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
