"""kpiboard - multi-tenant KPI dashboard core."""

__version__ = "0.1.0"
