"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kpiboard import __version__
from kpiboard.core.authorization import FORBIDDEN_MESSAGE
from kpiboard.core.exceptions import ForbiddenError, InvalidInputError
from kpiboard.services.workspace import Workspace

from .deps import build_lifespan
from .routes import api_router


def create_app(workspace: Workspace | None = None) -> FastAPI:
    """Build the application.

    Args:
        workspace: Prebuilt workspace, used by tests. Built from the
            environment on startup when None.
    """
    app = FastAPI(
        title="kpiboard",
        description="Multi-tenant KPI dashboard",
        version=__version__,
        lifespan=build_lifespan(workspace),
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": FORBIDDEN_MESSAGE})

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, object]:
        """Health check endpoint, with the startup check results."""
        bootstrap = getattr(request.app.state, "bootstrap", None)
        if bootstrap is None:
            return {"status": "starting", "checks": {}}
        return {"status": bootstrap.overall_status, "checks": bootstrap.checks}

    return app


app = create_app()
