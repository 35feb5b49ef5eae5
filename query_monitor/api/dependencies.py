from fastapi import Request

from query_monitor.services.monitor_service import QueryMonitorService


def get_monitor_service(request: Request) -> QueryMonitorService:
    return request.app.state.monitor  # type: ignore[return-value]
