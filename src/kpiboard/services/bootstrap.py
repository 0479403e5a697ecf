"""Startup readiness checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import structlog

from kpiboard.adapters.datasource import HttpDataSourceClient

if TYPE_CHECKING:
    from kpiboard.services.workspace import Workspace

logger = structlog.get_logger()

OverallStatus = Literal["ready", "degraded", "failed"]


@dataclass
class BootstrapState:
    """Outcome of the startup checks."""

    is_ready: bool
    checks: dict[str, bool] = field(default_factory=dict)
    overall_status: OverallStatus = "failed"


async def run_bootstrap_checks(
    workspace: Workspace, client: HttpDataSourceClient | None = None, health_url: str | None = None
) -> BootstrapState:
    """Check that the workspace can serve requests.

    ``store`` and ``layout`` must pass for the workspace to be ready. The
    backend health check only degrades the status: KPIs backed by static
    values still work without it.
    """
    checks: dict[str, bool] = {}

    try:
        workspace.store.load("current_tenant")
        checks["store"] = True
    except (OSError, ValueError) as e:
        logger.error("bootstrap_store_unavailable", error=str(e))
        checks["store"] = False

    checks["layout"] = bool(workspace.layout.get_current_layout().widgets)

    if client is not None:
        checks["backend"] = await client.health(health_url)

    required_ok = checks["store"] and checks["layout"]
    if not required_ok:
        status: OverallStatus = "failed"
    elif all(checks.values()):
        status = "ready"
    else:
        status = "degraded"

    state = BootstrapState(is_ready=required_ok, checks=checks, overall_status=status)
    logger.info("bootstrap_checks_completed", overall_status=status, **checks)
    return state
