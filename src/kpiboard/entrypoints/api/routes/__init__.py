"""API route modules."""

from fastapi import APIRouter

from kpiboard.entrypoints.api.routes.datasources import router as datasources_router
from kpiboard.entrypoints.api.routes.kpis import router as kpis_router
from kpiboard.entrypoints.api.routes.layout import router as layout_router
from kpiboard.entrypoints.api.routes.session import router as session_router
from kpiboard.entrypoints.api.routes.users import router as users_router

api_router = APIRouter()

api_router.include_router(session_router)
api_router.include_router(kpis_router)
api_router.include_router(layout_router)
api_router.include_router(datasources_router)
api_router.include_router(users_router)

__all__ = ["api_router"]
