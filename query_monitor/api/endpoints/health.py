from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from query_monitor.api.dependencies import get_monitor_service
from query_monitor.services.monitor_service import QueryMonitorService

router = APIRouter()


@router.get("/healthz")
async def healthz():
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(service: QueryMonitorService = Depends(get_monitor_service)):
    state = service.get_state()
    if state.snapshot is None:
        return JSONResponse(
            status_code=503,
            content={"status": "loading", "error": state.error},
        )
    return {"status": "ready", "stale": state.stale}
