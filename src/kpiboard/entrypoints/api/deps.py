"""Dependency injection and application lifespan."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Annotated, Any

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request

from kpiboard.adapters.datasource import HttpDataSourceClient
from kpiboard.config import Settings
from kpiboard.core.authorization import FORBIDDEN_MESSAGE, Operation
from kpiboard.logging import configure_logging
from kpiboard.services.bootstrap import run_bootstrap_checks
from kpiboard.services.workspace import Workspace

logger = structlog.get_logger()


def build_lifespan(
    workspace: Workspace | None = None,
) -> Callable[[FastAPI], Any]:
    """Create the lifespan handler.

    Args:
        workspace: Prebuilt workspace. When None, one is built from the
            environment on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan - setup and teardown.

        This context manager handles:
        - Logging configuration
        - Workspace construction and hydration
        - Startup readiness checks
        """
        settings = Settings()
        if workspace is None:
            configure_logging(settings.log_level, settings.log_json)
            app.state.workspace = Workspace.from_settings(settings)
        else:
            app.state.workspace = workspace

        client = app.state.workspace.client
        app.state.bootstrap = await run_bootstrap_checks(
            app.state.workspace,
            client if isinstance(client, HttpDataSourceClient) else None,
            settings.health_url,
        )
        logger.info("api_started", overall_status=app.state.bootstrap.overall_status)
        yield
        logger.info("api_stopped")

    return lifespan


def get_workspace(request: Request) -> Workspace:
    """Get the workspace from app state.

    Args:
        request: The current request.

    Returns:
        The configured workspace.
    """
    workspace: Workspace = request.app.state.workspace
    return workspace


WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]


def require_operation(operation: Operation) -> Callable[..., Workspace]:
    """Dependency to require the session principal may run ``operation``.

    Usage:
        @router.post("/")
        async def create_item(
            workspace: Annotated[Workspace, Depends(require_operation(Operation.MANAGE_KPIS))],
        ):
            ...

    Denials answer 403 with the generic detail; the reason is only logged.
    """

    def operation_checker(workspace: WorkspaceDep) -> Workspace:
        if not workspace.authorize(operation):
            raise HTTPException(status_code=403, detail=FORBIDDEN_MESSAGE)
        return workspace

    return operation_checker
