from datetime import datetime, timezone
from math import floor

HOUR_SECONDS = 3600


def bucket_start(timestamp_seconds: float, granularity_seconds: int) -> int:
    return int(floor(timestamp_seconds / granularity_seconds) * granularity_seconds)


def hour_bucket(moment: datetime) -> datetime:
    """Truncate an aware datetime to the start of its UTC hour."""
    start = bucket_start(moment.timestamp(), HOUR_SECONDS)
    return datetime.fromtimestamp(start, tz=timezone.utc)
