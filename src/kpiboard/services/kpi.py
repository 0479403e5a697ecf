"""KPI configuration engine: metric definitions and value resolution.

A KPI's value comes from one of three places:

- ``static``: the configured number, no I/O.
- ``datasource``: fetched through the data source registry and read at a
  dotted JSON path. The source id is a weak reference; a missing source
  resolves to zero.
- ``calculated``: a restricted formula over other KPIs, each resolved
  recursively.

``fetch_kpi_value`` never raises. Anything that goes wrong is logged and
the KPI shows zero.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import structlog

from kpiboard.adapters.storage import StateKeys, load_collection, save_collection
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.exceptions import FormulaError, InvalidInputError, QueryValidationError
from kpiboard.core.formatting import format_value
from kpiboard.core.formula import parse_formula
from kpiboard.core.interfaces import KeyValueStore
from kpiboard.models import (
    KPIConfig,
    KpiDataSource,
    KpiFormatting,
    KpiSourceType,
    KpiTarget,
    KpiTrend,
    KpiValue,
)
from kpiboard.models.base import new_id
from kpiboard.safety import sanitize_identifier, validate_kpi_query

if TYPE_CHECKING:
    from kpiboard.services.datasource import DataSourceService

logger = structlog.get_logger()

DEFAULT_VALUE_PATH = "value"
DEFAULT_PREVIOUS_VALUE_PATH = "previousValue"

_NUMBER_PREFIX = re.compile(r"^-?\d+(?:\.\d+)?")
_NUMBER_NOISE = re.compile(r"[$,€£¥%\s]")

ZERO = KpiValue(value=0)

DEFAULT_KPIS: list[dict[str, Any]] = [
    {
        "name": "Total Revenue",
        "description": "Total revenue for the current period",
        "icon": "revenue",
        "data_source": {"type": "static", "static_value": 124500},
        "formatting": {"prefix": "$", "decimals": 0, "format": "currency"},
    },
    {
        "name": "Total Orders",
        "description": "Number of orders",
        "icon": "orders",
        "data_source": {"type": "static", "static_value": 1250},
        "formatting": {"decimals": 0, "format": "number"},
    },
    {
        "name": "Conversion Rate",
        "description": "Percentage of visitors who convert",
        "icon": "conversion",
        "data_source": {"type": "static", "static_value": 3.2},
        "formatting": {"suffix": "%", "decimals": 1, "format": "percentage"},
    },
    {
        "name": "Active Users",
        "description": "Currently active users",
        "icon": "users",
        "data_source": {"type": "static", "static_value": 8456},
        "formatting": {"decimals": 0, "format": "number"},
    },
]


class KpiConfigService:
    """Registry of KPI configs and resolver of their values."""

    def __init__(
        self,
        store: KeyValueStore,
        data_sources: DataSourceService | None = None,
        clock: Clock = utc_now,
    ):
        """Load KPI configs from ``store``.

        Args:
            store: Persisted state.
            data_sources: Registry ``datasource`` KPIs resolve against.
            clock: Source of the current time.
        """
        self.store = store
        self.data_sources = data_sources
        self.clock = clock
        self._configs: list[KPIConfig] = load_collection(store, StateKeys.KPI_CONFIGS, KPIConfig)

    # Lookups

    def get_configs(self) -> list[KPIConfig]:
        """All configs, in insertion order."""
        return list(self._configs)

    def get_config_by_id(self, config_id: str) -> KPIConfig | None:
        """Get a config by id, or None."""
        return next((c for c in self._configs if c.id == config_id), None)

    def get_visible_configs(self) -> list[KPIConfig]:
        """Visible configs by ascending ``order``; ties keep insertion order."""
        return sorted((c for c in self._configs if c.visible), key=lambda c: c.order)

    # Mutations

    def create_config(
        self,
        name: str | None = None,
        data_source: KpiDataSource | dict[str, Any] | None = None,
        *,
        description: str | None = None,
        icon: str | None = None,
        formatting: KpiFormatting | dict[str, Any] | None = None,
        trend: KpiTrend | dict[str, Any] | None = None,
        target: KpiTarget | dict[str, Any] | None = None,
        refresh_interval: int | None = None,
        order: int | None = None,
        visible: bool = True,
    ) -> KPIConfig:
        """Create a KPI config.

        ``order`` defaults to the end of the list.

        Raises:
            InvalidInputError: On a blank name, a missing or invalid data
                source, a formula outside the allowed grammar or a SQL
                query that is not read-only.
        """
        if name is None or not name.strip():
            raise InvalidInputError("name: KPI name is required", field="name")
        if data_source is None:
            raise InvalidInputError("data_source: required", field="data_source")
        now = self.clock()
        data: dict[str, Any] = {
            "id": new_id("kpi"),
            "name": name,
            "description": description,
            "icon": icon,
            "data_source": data_source,
            "trend": trend,
            "target": target,
            "refresh_interval": refresh_interval,
            "order": len(self._configs) if order is None else order,
            "visible": visible,
            "created_at": now,
            "updated_at": now,
        }
        if formatting is not None:
            data["formatting"] = formatting
        config = KPIConfig.build(**data)
        _check_data_source(config.data_source)

        self._configs.append(config)
        self._persist()
        logger.info(
            "kpi_config_created",
            kpi_id=config.id,
            source_type=config.data_source.type.value,
        )
        return config

    def update_config(self, config_id: str, patch: dict[str, Any]) -> bool:
        """Shallow-merge ``patch`` into a config and bump ``updated_at``.

        Returns:
            False if the id is unknown.

        Raises:
            InvalidInputError: If the merged config does not validate.
        """
        index = self._index(config_id)
        if index is None:
            return False
        if {"id", "created_at"} & patch.keys():
            raise InvalidInputError("id: KPI id and creation time cannot be changed", field="id")
        updated = self._configs[index].patched({**patch, "updated_at": self.clock()})
        _check_data_source(updated.data_source)
        self._configs[index] = updated
        self._persist()
        logger.info("kpi_config_updated", kpi_id=config_id, updated_keys=sorted(patch))
        return True

    def delete_config(self, config_id: str) -> bool:
        """Remove a config."""
        index = self._index(config_id)
        if index is None:
            return False
        del self._configs[index]
        self._persist()
        logger.info("kpi_config_deleted", kpi_id=config_id)
        return True

    def reorder_configs(self, ordered_ids: list[str]) -> None:
        """Set each listed config's ``order`` to its position in ``ordered_ids``.

        Unknown ids are skipped; unlisted configs keep their order.
        """
        positions = {config_id: i for i, config_id in enumerate(ordered_ids)}
        now = self.clock()
        self._configs = [
            c.patched({"order": positions[c.id], "updated_at": now}) if c.id in positions else c
            for c in self._configs
        ]
        self._persist()
        logger.info("kpi_configs_reordered", count=len(positions))

    def initialize_default_kpis(self) -> list[KPIConfig]:
        """Seed the four default KPIs when there are no configs yet."""
        if self._configs:
            return []
        created = [
            self.create_config(
                **kpi,
                order=order,
                trend={"enabled": True, "comparison_period": "previous", "show_percentage": True},
            )
            for order, kpi in enumerate(DEFAULT_KPIS)
        ]
        logger.info("default_kpis_initialized", count=len(created))
        return created

    # Values

    async def fetch_kpi_value(self, config: KPIConfig) -> KpiValue:
        """Resolve a KPI's current value. Never raises; failures yield zero."""
        try:
            return await self._resolve(config, frozenset())
        except (FormulaError, QueryValidationError) as e:
            logger.warning("kpi_value_unavailable", kpi_id=config.id, error=str(e))
        except Exception:
            logger.exception("kpi_value_failed", kpi_id=config.id)
        return ZERO

    def format_value(self, value: float | int, formatting: KpiFormatting) -> str:
        """Render a value with a config's formatting."""
        return format_value(value, formatting)

    def evaluate_target(self, config: KPIConfig, value: float) -> bool | None:
        """Check ``value`` against the config's target.

        Returns:
            None when no target is set, otherwise whether it is met.
        """
        target = config.target
        if target is None or not target.enabled or target.value is None:
            return None
        if target.comparison == "less":
            return value <= target.value
        return value >= target.value

    async def _resolve(self, config: KPIConfig, visiting: frozenset[str]) -> KpiValue:
        source = config.data_source
        if source.type == KpiSourceType.STATIC:
            return KpiValue(value=source.static_value or 0)
        if source.type == KpiSourceType.DATASOURCE:
            return await self._resolve_datasource(config)
        return KpiValue(value=await self._resolve_calculated(config, visiting))

    async def _resolve_datasource(self, config: KPIConfig) -> KpiValue:
        source = config.data_source
        if source.source_id is None or self.data_sources is None:
            return ZERO
        if self.data_sources.get_data_source(source.source_id) is None:
            logger.info("kpi_data_source_missing", kpi_id=config.id, source_id=source.source_id)
            return ZERO

        data = await self.data_sources.fetch_data(source.source_id, source.query)
        if data is None:
            return ZERO

        value = extract_number(data, source.json_path or DEFAULT_VALUE_PATH)
        previous = extract_number(data, source.previous_json_path or DEFAULT_PREVIOUS_VALUE_PATH)
        if value is None:
            return ZERO
        if not previous:
            return KpiValue(value=value)
        change = round((value - previous) / previous * 100, 1)
        return KpiValue(
            value=value,
            previous_value=previous,
            change=change,
            trend="up" if change >= 0 else "down",
        )

    async def _resolve_calculated(self, config: KPIConfig, visiting: frozenset[str]) -> float:
        if config.id in visiting:
            raise FormulaError(f"circular reference through {config.id}")
        visiting = visiting | {config.id}

        formula = parse_formula(config.data_source.calculation_formula or "")
        values: dict[str, float] = {}
        for name in sorted(formula.variables):
            kpi_id = config.data_source.variables.get(name)
            referenced = self.get_config_by_id(kpi_id) if kpi_id else None
            if referenced is None:
                raise FormulaError(f"unknown variable: {name}")
            values[name] = (await self._resolve(referenced, visiting)).value
        return formula.evaluate(values)

    # Internals

    def _index(self, config_id: str) -> int | None:
        return next((i for i, c in enumerate(self._configs) if c.id == config_id), None)

    def _persist(self) -> None:
        save_collection(self.store, StateKeys.KPI_CONFIGS, self._configs)


def extract_number(data: Any, path: str) -> float | None:
    """Read a number at a dotted path such as ``data.metrics.revenue``.

    List elements are addressed by index (``rows.0.total``). Strings like
    ``"$125,430"`` are parsed leniently.

    Returns:
        The number, or None when the path does not resolve to one.
    """
    current = data
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    if isinstance(current, bool):
        return None
    if isinstance(current, (int, float)):
        return float(current)
    if isinstance(current, str):
        match = _NUMBER_PREFIX.match(_NUMBER_NOISE.sub("", current))
        return float(match.group()) if match else None
    return None


def _check_data_source(source: KpiDataSource) -> None:
    try:
        if source.type == KpiSourceType.CALCULATED:
            formula = parse_formula(source.calculation_formula or "")
            unmapped = sorted(formula.variables - source.variables.keys())
            if unmapped:
                raise InvalidInputError(
                    f"data_source.variables: no KPI mapped for {', '.join(unmapped)}",
                    field="data_source.variables",
                )
        elif source.type == KpiSourceType.DATASOURCE:
            validate_kpi_query(source.query)
            for identifier in (source.table_name, source.column_name):
                if identifier is not None:
                    sanitize_identifier(identifier)
    except FormulaError as e:
        raise InvalidInputError(
            f"data_source.calculation_formula: {e}", field="data_source.calculation_formula"
        ) from e
    except QueryValidationError as e:
        raise InvalidInputError(f"data_source.query: {e}", field="data_source.query") from e
