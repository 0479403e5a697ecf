"""KPI configuration records and resolved values."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kpiboard.models.base import DomainModel, UtcDatetime


class KpiSourceType(str, Enum):
    """How a KPI's value is resolved."""

    DATASOURCE = "datasource"
    STATIC = "static"
    CALCULATED = "calculated"


class ValueFormat(str, Enum):
    """Display format of a KPI value."""

    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"


class KpiDataSource(BaseModel):
    """Where a KPI's value comes from.

    ``source_id`` is a weak reference into the data source registry: the
    referenced source may be deleted at any time, in which case the KPI
    resolves to zero.
    """

    model_config = ConfigDict(extra="forbid")

    type: KpiSourceType
    source_id: str | None = None
    query: str | None = None  # SQL query or API path
    json_path: str | None = None  # e.g. "data.metrics.revenue"
    previous_json_path: str | None = None
    table_name: str | None = None
    column_name: str | None = None
    file_path: str | None = None
    static_value: float | None = None
    calculation_formula: str | None = None
    # Formula variable name -> KPI config id
    variables: dict[str, str] = Field(default_factory=dict)


class KpiFormatting(BaseModel):
    """How a resolved value is rendered."""

    model_config = ConfigDict(extra="forbid")

    prefix: str | None = None
    suffix: str | None = None
    decimals: int | None = Field(default=None, ge=0, le=10)
    format: ValueFormat = ValueFormat.NUMBER


class KpiTrend(BaseModel):
    """Trend display settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    comparison_period: Literal["previous", "lastYear", "custom"] = "previous"
    show_percentage: bool = True


class KpiTarget(BaseModel):
    """Goal a KPI is measured against."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    value: float | None = None
    comparison: Literal["greater", "less"] = "greater"


class KPIConfig(DomainModel):
    """A logical metric definition."""

    id: str
    name: str = Field(min_length=1)
    description: str | None = None
    icon: str | None = None
    data_source: KpiDataSource
    formatting: KpiFormatting = Field(default_factory=KpiFormatting)
    trend: KpiTrend | None = None
    target: KpiTarget | None = None
    refresh_interval: int | None = Field(default=None, gt=0)  # seconds
    order: int = 0
    visible: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value


class KpiValue(BaseModel):
    """A resolved KPI value with optional trend information."""

    model_config = ConfigDict(frozen=True)

    value: float
    previous_value: float | None = None
    change: float | None = None
    trend: Literal["up", "down"] | None = None
