from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional

from query_monitor.core.config import settings
from query_monitor.core.logger import get_logger
from query_monitor.domain.errors import NothingToExportError
from query_monitor.domain.events import Notification
from query_monitor.domain.models import (
    ExportPayload,
    MonitorState,
    Snapshot,
    ViewState,
)

from . import view_pipeline
from .export import export_samples
from .fetch_coordinator import FetchCoordinator

logger = get_logger("query_monitor.service")


class QueryMonitorService:
    """Presentation-facing operations over one FetchCoordinator.

    Holds the caller's view state between requests and a short history of
    notifications for clients that poll instead of subscribing.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        view_state: Optional[ViewState] = None,
        history_size: Optional[int] = None,
    ):
        self.coordinator = coordinator
        self._view = view_state or ViewState(page_size=settings.default_page_size)
        self._notifications: Deque[Notification] = deque(
            maxlen=history_size or settings.notification_history_size
        )
        coordinator.add_listener(self._notifications.append)

    def get_state(self) -> MonitorState:
        return self.coordinator.state()

    def get_view_state(self) -> ViewState:
        return self._view

    def set_view_state(self, partial: Mapping[str, Any]) -> ViewState:
        """Merge a partial update; the whole result is validated before use."""
        merged = {**self._view.model_dump(), **dict(partial)}
        self._view = ViewState.model_validate(merged)
        return self._view

    async def refresh(self, force: bool = False) -> Optional[Snapshot]:
        return await self.coordinator.refresh(force=force)

    async def reset(self) -> Optional[Snapshot]:
        snapshot = await self.coordinator.reset()
        self._view = self._view.model_copy(update={"page": 1})
        return snapshot

    def enable_auto_refresh(self, enabled: bool) -> bool:
        self.coordinator.enable_auto_refresh(enabled)
        return self.coordinator.auto_refresh_active

    def view(self) -> Dict[str, Any]:
        current = self.coordinator.current
        return {
            "page": view_pipeline.materialize(
                current, self._view, self.coordinator.previous
            ),
            "charts": view_pipeline.derive_charts(current),
            "filters": view_pipeline.filter_options(current),
            "summary": view_pipeline.summarize(current),
            "view_state": self._view,
        }

    def export(self, fmt: str) -> ExportPayload:
        current = self.coordinator.current
        if current is None or not current.samples:
            raise NothingToExportError("No data to export")
        rows = view_pipeline.export_rows(current, self._view)
        payload = export_samples(rows, fmt)
        logger.info(
            "query_stats_exported",
            extra={"format": fmt, "rows": len(rows), "export_file": payload.filename},
        )
        return payload

    def notifications(self) -> List[Notification]:
        return list(self._notifications)
