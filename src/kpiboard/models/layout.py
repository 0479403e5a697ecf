"""Dashboard widget layout."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

WidgetType = Literal[
    "kpi", "chart-revenue", "chart-sales", "chart-conversion", "pie", "goals", "insights"
]


class WidgetPosition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    row: int = Field(ge=0)
    col: int = Field(ge=0, lt=12)


class WidgetSize(BaseModel):
    model_config = ConfigDict(extra="forbid")

    width: int = Field(gt=0, le=12)
    height: int = Field(gt=0)


class WidgetConfig(BaseModel):
    """Placement of one widget on the 12-column grid."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: WidgetType
    position: WidgetPosition
    size: WidgetSize
    visible: bool = True


class DashboardLayout(BaseModel):
    """A named arrangement of widgets."""

    model_config = ConfigDict(extra="forbid")

    name: str
    widgets: list[WidgetConfig] = Field(default_factory=list)


def _widget(
    widget_id: str, widget_type: WidgetType, row: int, col: int, width: int
) -> WidgetConfig:
    return WidgetConfig(
        id=widget_id,
        type=widget_type,
        position=WidgetPosition(row=row, col=col),
        size=WidgetSize(width=width, height=2 if widget_type == "kpi" else 3),
    )


def default_layout() -> DashboardLayout:
    """Return a fresh copy of the default seven-widget layout."""
    return DashboardLayout(
        name="Default",
        widgets=[
            _widget("kpi-1", "kpi", 0, 0, 12),
            _widget("chart-revenue-1", "chart-revenue", 2, 0, 6),
            _widget("chart-sales-1", "chart-sales", 2, 6, 6),
            _widget("chart-conversion-1", "chart-conversion", 5, 0, 12),
            _widget("pie-1", "pie", 8, 0, 6),
            _widget("goals-1", "goals", 8, 6, 6),
            _widget("insights-1", "insights", 11, 0, 12),
        ],
    )
