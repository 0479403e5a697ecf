"""KPI value formatting."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from kpiboard.models.kpi import KpiFormatting


def format_value(value: float | int, formatting: KpiFormatting) -> str:
    """Render a raw KPI value for display.

    Rounds half-up to ``formatting.decimals`` places (default 0), inserts a
    thousands separator every three digits left of the decimal point and
    wraps the result in ``prefix`` and ``suffix``. Only numbers are
    accepted: callers keep the raw value next to the formatted string.

    Examples:
        >>> format_value(1234.567, KpiFormatting(prefix="$", decimals=2))
        '$1,234.57'
        >>> format_value(3.25, KpiFormatting(suffix="%", decimals=1))
        '3.3%'
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"format_value expects a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"cannot format non-finite value {value}")

    decimals = formatting.decimals or 0
    # str() first so 1.005 rounds as written, not as its binary approximation
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)

    body = f"{rounded:,.{decimals}f}"
    return f"{formatting.prefix or ''}{body}{formatting.suffix or ''}"
