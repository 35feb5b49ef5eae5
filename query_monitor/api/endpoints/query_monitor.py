from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, ValidationError

from query_monitor.api.dependencies import get_monitor_service
from query_monitor.core.logger import get_logger
from query_monitor.domain.errors import (
    CoordinatorClosedError,
    NothingToExportError,
    ResetFailedError,
    SnapshotUnavailableError,
)
from query_monitor.domain.events import Notification
from query_monitor.domain.models import MonitorState, SortKey, SortOrder, ViewState
from query_monitor.services.monitor_service import QueryMonitorService

router = APIRouter(prefix="/query-monitor", tags=["query-monitor"])
logger = get_logger(__name__)


class ViewStatePatch(BaseModel):
    search: Optional[str] = None
    model: Optional[str] = None
    operation: Optional[str] = None
    sort_by: Optional[SortKey] = None
    sort_order: Optional[SortOrder] = None
    group_by_fingerprint: Optional[bool] = None
    page: Optional[int] = None
    page_size: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class AutoRefreshRequest(BaseModel):
    enabled: bool


@router.get("/state", response_model=MonitorState)
async def get_state(service: QueryMonitorService = Depends(get_monitor_service)):
    return service.get_state()


@router.get("/view")
async def get_view(service: QueryMonitorService = Depends(get_monitor_service)):
    """Current page of samples or groups plus charts, filter options and summary."""
    return service.view()


@router.get("/view-state", response_model=ViewState)
async def get_view_state(service: QueryMonitorService = Depends(get_monitor_service)):
    return service.get_view_state()


@router.patch("/view-state", response_model=ViewState)
async def update_view_state(
    patch: ViewStatePatch,
    service: QueryMonitorService = Depends(get_monitor_service),
):
    try:
        return service.set_view_state(patch.model_dump(exclude_unset=True))
    except ValidationError as e:
        detail = e.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=422, detail=detail)


@router.post("/refresh", response_model=MonitorState)
async def refresh(
    force: bool = Query(False, description="Bypass single-flight and throttle"),
    service: QueryMonitorService = Depends(get_monitor_service),
):
    try:
        await service.refresh(force=force)
    except SnapshotUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except CoordinatorClosedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return service.get_state()


@router.post("/reset", response_model=MonitorState)
async def reset(service: QueryMonitorService = Depends(get_monitor_service)):
    try:
        await service.reset()
    except ResetFailedError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except SnapshotUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return service.get_state()


@router.get("/export")
async def export(
    format: Literal["csv", "json"] = Query("csv"),
    service: QueryMonitorService = Depends(get_monitor_service),
):
    try:
        payload = service.export(format)
    except NothingToExportError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(
        content=payload.content,
        media_type=payload.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.post("/auto-refresh")
async def set_auto_refresh(
    body: AutoRefreshRequest,
    service: QueryMonitorService = Depends(get_monitor_service),
):
    try:
        active = service.enable_auto_refresh(body.enabled)
    except CoordinatorClosedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    logger.info("auto_refresh_toggled", extra={"enabled": active})
    return {"auto_refresh_active": active}


@router.get("/notifications", response_model=List[Notification])
async def notifications(service: QueryMonitorService = Depends(get_monitor_service)):
    return service.notifications()
