from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class MonitorEvent(str, Enum):
    AUTO_REFRESH_PAUSED = "auto_refresh_paused"
    FETCH_FAILED_STALE = "fetch_failed_stale"
    FETCH_FAILED = "fetch_failed"
    RESET_SUCCEEDED = "reset_succeeded"


class Notification(BaseModel):
    """Something the presentation layer should tell the operator about."""

    event: MonitorEvent
    message: str
    level: str = "info"
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
