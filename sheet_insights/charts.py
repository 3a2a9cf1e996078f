"""
Chart-shape normalization of recovered data.

Rationale:
- The model returns generic point lists ({label, value} or {x, y}).
- Most chart types use them as-is; candlestick gets its OHLC tuples
  exploded into four named series.
- Pure functions over `data` only; summary/reasoning pass through untouched.
"""

import logging
from typing import Any, Dict, List, Optional

from .schemas import AnalysisResult

logger = logging.getLogger(__name__)

CANDLESTICK = "candlestick"

CHART_TYPES = (
    "bar",
    "column",
    "pie",
    "doughnut",
    "line",
    "area",
    "scatter",
    "bubble",
    "heatmap",
    CANDLESTICK,
    "radialBar",
)

_ALIASES = {
    "donut": "doughnut",
}

_LOOKUP = {name.lower(): name for name in CHART_TYPES}

OHLC_SERIES = ("Open", "High", "Low", "Close")


def normalize_chart_type(chart_type: Optional[str]) -> str:
    """Canonical tag for a chart type hint; unknown tags come back trimmed."""
    tag = (chart_type or "").strip()
    key = tag.lower()
    key = _ALIASES.get(key, key)
    return _LOOKUP.get(key, tag)


def _point_label(point: Dict[str, Any]) -> Any:
    return point["label"] if "label" in point else point.get("x")


def _point_value(point: Any) -> Any:
    if not isinstance(point, dict):
        return None
    return point["value"] if "value" in point else point.get("y")


def _is_ohlc(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) == 4


def _explode_ohlc(data: List[Any]) -> List[Dict[str, Any]]:
    series = [{"series": name, "data": []} for name in OHLC_SERIES]
    for point in data:
        value = _point_value(point)
        if not _is_ohlc(value):
            logger.debug(f"Skipping candlestick point without OHLC value: {point!r}")
            continue
        label = _point_label(point)
        for slot, entry in enumerate(series):
            entry["data"].append({"label": label, "value": value[slot]})
    return series


def normalize(result: AnalysisResult, chart_type: Optional[str]) -> AnalysisResult:
    """
    Reshape `result.data` for the given chart type.
    Candlestick data whose first point carries a 4-item value is read as
    [open, high, low, close]; anything else is returned unchanged.
    """
    data = result.data
    if normalize_chart_type(chart_type) != CANDLESTICK:
        return result
    if not data or not _is_ohlc(_point_value(data[0])):
        return result

    logger.info(f"Reshaping {len(data)} candlestick points into OHLC series")
    return result.model_copy(update={"data": _explode_ohlc(data)})
