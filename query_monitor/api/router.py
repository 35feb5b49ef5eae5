from fastapi import APIRouter

from .endpoints import health, query_monitor

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(query_monitor.router)
