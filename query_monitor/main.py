import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator

from query_monitor import __version__
from query_monitor.api.router import api_router
from query_monitor.core.config import settings
from query_monitor.core.logger import configure_logging, get_logger
from query_monitor.domain.errors import SnapshotUnavailableError
from query_monitor.infrastructure.backend import QueryStatsClient
from query_monitor.services.fetch_coordinator import FetchCoordinator
from query_monitor.services.monitor_service import QueryMonitorService
from shared.constants import Environment
from shared.utils.retry import retry_async

# Configure logging once and get service logger
configure_logging()
logger = get_logger("query_monitor.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("query_monitor_starting", extra={"backend": settings.backend_base_url})
    app.state.client = QueryStatsClient()
    app.state.coordinator = FetchCoordinator(app.state.client).open()
    app.state.monitor = QueryMonitorService(app.state.coordinator)
    app.state.initial_fetch_task = None
    if settings.initial_fetch_on_startup:
        app.state.initial_fetch_task = asyncio.create_task(
            initial_fetch(app.state.coordinator)
        )
    try:
        yield
    finally:
        logger.info("query_monitor_stopping")
        task = app.state.initial_fetch_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:  # expected during shutdown
                logger.debug("initial_fetch_cancelled")
        await app.state.coordinator.close()
        await app.state.client.close()


async def initial_fetch(coordinator: FetchCoordinator) -> None:
    """First forced read, retried while the backend is not reachable yet."""

    async def _fetch():
        return await coordinator.refresh(force=True)

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "initial_fetch_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    try:
        await retry_async(
            _fetch,
            retries=settings.initial_fetch_retries,
            base_delay=1.0,
            max_delay=settings.fetch_min_interval_seconds,
            jitter=0.2,
            retry_on=(SnapshotUnavailableError,),
            on_retry=_on_retry,
        )
    except SnapshotUnavailableError as e:
        logger.warning("initial_fetch_failed", extra={"error": str(e)})


environment = Environment.parse(settings.app_environment)

app = FastAPI(
    title="Slow Query Monitor",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if environment.exposes_docs else None,
    redoc_url=None,
)
app.include_router(api_router)

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/openapi.json", "/metrics"],
)
instrumentator.instrument(app)


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
