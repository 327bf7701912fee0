"""Market-condition multipliers.

Three tables exist and they disagree on purpose-specific values; they live
here together so every engine reads from one place.
"""

from __future__ import annotations

from typing import Mapping

from .models import MARKET_CONDITIONS, SEASONS

# Contractor engine: nudges the recommended price adjustment.
ENGINE_MARKET_ADJUSTMENTS: Mapping[str, float] = {"good": 0.98, "normal": 1.0, "poor": 1.05}

# Baseline market factor used by the quick recommended-adjustment helper.
BASELINE_MARKET_FACTORS: Mapping[str, float] = {"good": 0.95, "normal": 1.0, "poor": 1.1}

# Seasonal engine: market effect depends on the season it lands in.
SEASONAL_MARKET_ADJUSTMENTS: Mapping[str, Mapping[str, float]] = {
    "spring": {"good": 0.93, "normal": 1.0, "poor": 1.12},
    "summer": {"good": 0.98, "normal": 1.0, "poor": 1.05},
    "autumn": {"good": 0.94, "normal": 1.0, "poor": 1.10},
    "winter": {"good": 0.97, "normal": 1.0, "poor": 1.06},
}


def normalize_market_condition(value: object | None, default: str = "normal") -> str:
    if value is None:
        return default
    text = str(value).strip().lower()
    if not text:
        return default
    if text not in MARKET_CONDITIONS:
        raise ValueError(f"Unknown market condition: {value!r}")
    return text


def _lookup(table: Mapping[str, float], condition: str) -> float:
    return float(table[normalize_market_condition(condition)])


def engine_market_adjustment(condition: str) -> float:
    return _lookup(ENGINE_MARKET_ADJUSTMENTS, condition)


def baseline_market_factor(condition: str) -> float:
    return _lookup(BASELINE_MARKET_FACTORS, condition)


def seasonal_market_adjustment(condition: str, season: str) -> float:
    if season not in SEASONS:
        raise ValueError(f"Unknown season: {season!r}")
    return _lookup(SEASONAL_MARKET_ADJUSTMENTS[season], condition)


__all__ = [
    "BASELINE_MARKET_FACTORS",
    "ENGINE_MARKET_ADJUSTMENTS",
    "SEASONAL_MARKET_ADJUSTMENTS",
    "baseline_market_factor",
    "engine_market_adjustment",
    "normalize_market_condition",
    "seasonal_market_adjustment",
]
