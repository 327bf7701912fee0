"""
One-shot estimate optimization using per-client price biases.

Also hosts the bias learner that turns resolved deals into stored
``PriceBias`` rows and the portfolio summary of estimates.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Sequence

from . import stats
from .config import EngineConfig
from .models import (
    BiasFactor,
    EstimateOptimizationResult,
    EstimateRecord,
    EstimateStats,
    LearningData,
    OptimizeEstimateRequest,
    PriceBias,
)

logger = logging.getLogger(__name__)

MIN_ADJUSTMENT = -0.30
MAX_ADJUSTMENT = 0.50
BASE_CONFIDENCE = 0.7

URGENCY_DEFAULTS: Mapping[str, float] = {"high": 0.15, "medium": 0.05, "low": -0.05}
COMPETITION_DEFAULTS: Mapping[str, float] = {"high": -0.10, "medium": -0.05, "low": 0.05}
SCALE_DEFAULTS: Mapping[str, float] = {"large": -0.05, "medium": 0.0, "small": 0.10}

_FACTOR_LABELS = {
    "urgency": "Urgency",
    "competition": "Competition",
    "project_scale": "Scale",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _usable(bias: PriceBias) -> bool:
    try:
        return math.isfinite(float(bias.factor_value))
    except (TypeError, ValueError):
        return False


def _find_bias(bias_data: Sequence[PriceBias], factor_type: str) -> Optional[PriceBias]:
    """First stored bias of ``factor_type`` with a finite value; others are skipped."""

    for bias in bias_data:
        if bias.factor_type != factor_type:
            continue
        if not _usable(bias):
            logger.warning("Ignoring %s bias for %s: value %r", factor_type, bias.client_id, bias.factor_value)
            continue
        return bias
    return None


def _level_impact(
    factor_type: str,
    level: str,
    defaults: Mapping[str, float],
    bias_data: Sequence[PriceBias],
) -> BiasFactor:
    if level not in defaults:
        raise ValueError(f"Unknown {factor_type} level: {level!r}")
    bias = _find_bias(bias_data, factor_type)
    impact = float(bias.factor_value) if bias is not None else defaults[level]
    label = _FACTOR_LABELS[factor_type]
    return BiasFactor(
        factor_type=factor_type,
        impact=impact,
        description=f"{label}: {level} ({impact * 100:.1f}%)",
    )


def optimize_estimate(
    request: OptimizeEstimateRequest,
    bias_data: Sequence[PriceBias],
    history: Sequence[LearningData],
    config: EngineConfig | None = None,
) -> EstimateOptimizationResult:
    """Apply urgency, competition, scale and relationship biases to one estimate.

    ``history`` is expected newest first; only the first ``history_limit``
    entries are considered.  A stored bias for a factor type replaces that
    factor's default impact.  The summed adjustment is clamped to
    [-30%, +50%] before it touches the amount.
    """

    cfg = config or EngineConfig()
    factors: List[BiasFactor] = []
    base_confidence = BASE_CONFIDENCE

    if request.urgency_level:
        factors.append(_level_impact("urgency", request.urgency_level, URGENCY_DEFAULTS, bias_data))
    if request.competition_level:
        factors.append(_level_impact("competition", request.competition_level, COMPETITION_DEFAULTS, bias_data))
    if request.project_scale:
        factors.append(_level_impact("project_scale", request.project_scale, SCALE_DEFAULTS, bias_data))

    recent = list(history)[: cfg.history_limit]
    if recent:
        acceptance_rate = sum(1 for h in recent if h.was_accepted) / len(recent)
        bias = _find_bias(bias_data, "relationship")
        if bias is not None:
            impact = float(bias.factor_value)
        else:
            impact = 0.05 if acceptance_rate > 0.7 else -0.05
        base_confidence += acceptance_rate * 0.2
        factors.append(
            BiasFactor(
                factor_type="relationship",
                impact=impact,
                description=f"Relationship: acceptance {acceptance_rate * 100:.1f}% ({impact * 100:.1f}%)",
            )
        )

    adjustment = stats.clamp(sum(f.impact for f in factors), MIN_ADJUSTMENT, MAX_ADJUSTMENT)
    optimized_amount = _round_half_up(request.estimated_amount * (1 + adjustment))
    adjustment_percentage = adjustment * 100
    acceptance_probability = stats.clamp(base_confidence - abs(adjustment) * 0.5, 0.1, 0.9)
    confidence_score = stats.clamp(base_confidence - abs(adjustment) * 0.3, 0.3, 1.0)
    expected_profit = optimized_amount * cfg.gross_margin * acceptance_probability

    logger.debug(
        "[optimize] client=%s amount=%s adjustment=%.3f factors=%s",
        request.client_id,
        request.estimated_amount,
        adjustment,
        len(factors),
    )

    return EstimateOptimizationResult(
        original_amount=request.estimated_amount,
        optimized_amount=optimized_amount,
        adjustment_percentage=adjustment_percentage,
        confidence_score=confidence_score,
        acceptance_probability=acceptance_probability,
        expected_profit=expected_profit,
        reasoning=generate_reasoning(factors, adjustment_percentage, acceptance_probability),
        bias_factors=factors,
    )


def generate_reasoning(
    factors: Sequence[BiasFactor],
    adjustment_percentage: float,
    acceptance_probability: float,
) -> str:
    text = "Based on past transactions and market factors, "
    if adjustment_percentage > 0:
        text += f"a {adjustment_percentage:.1f}% price increase is recommended."
    elif adjustment_percentage < 0:
        text += f"a {abs(adjustment_percentage):.1f}% price reduction is recommended."
    else:
        text += "the current price is considered appropriate."
    if factors:
        text += "\n\nMain adjustment factors: " + ", ".join(f.description for f in factors)
    text += f"\n\nAcceptance probability: {acceptance_probability * 100:.1f}%"
    return text


def _acceptance(entries: Sequence[LearningData]) -> float:
    return sum(1 for d in entries if d.was_accepted) / len(entries)


def learn_price_biases(
    client_id: str,
    learning_data: Sequence[LearningData],
    config: EngineConfig | None = None,
    now: datetime | None = None,
) -> List[PriceBias]:
    """Derive fresh ``PriceBias`` rows from a client's resolved deals.

    ``learning_data`` is expected newest first.  Returns an empty list when
    fewer than ``bias_min_samples`` deals exist.
    """

    cfg = config or EngineConfig()
    recent = list(learning_data)[: cfg.bias_window]
    if len(recent) < cfg.bias_min_samples:
        logger.info(
            "Insufficient learning data for %s: %s deals, %s required",
            client_id,
            len(recent),
            cfg.bias_min_samples,
        )
        return []

    stamp = (now or datetime.now(timezone.utc)).isoformat()
    updates: List[PriceBias] = []

    urgent = [d for d in recent if d.project_characteristics.urgency == "high"]
    if urgent:
        rate = _acceptance(urgent)
        updates.append(
            PriceBias(
                client_id=client_id,
                factor_type="urgency",
                factor_value=0.15 if rate > 0.7 else 0.05,
                confidence=min(1.0, len(urgent) / 10),
                sample_size=len(urgent),
                description=f"High urgency: acceptance {rate * 100:.1f}%",
                last_updated=stamp,
            )
        )

    large = [d for d in recent if d.project_characteristics.scale == "large"]
    if large:
        rate = _acceptance(large)
        updates.append(
            PriceBias(
                client_id=client_id,
                factor_type="project_scale",
                factor_value=-0.03 if rate > 0.6 else -0.08,
                confidence=min(1.0, len(large) / 8),
                sample_size=len(large),
                description=f"Large scale: acceptance {rate * 100:.1f}%",
                last_updated=stamp,
            )
        )

    overall = _acceptance(recent)
    if overall > 0.7:
        relationship = 0.08
    elif overall > 0.5:
        relationship = 0.03
    else:
        relationship = -0.05
    updates.append(
        PriceBias(
            client_id=client_id,
            factor_type="relationship",
            factor_value=relationship,
            confidence=min(1.0, len(recent) / 15),
            sample_size=len(recent),
            description=f"Relationship: overall acceptance {overall * 100:.1f}%",
            last_updated=stamp,
        )
    )
    return updates


def summarize_estimates(estimates: Sequence[EstimateRecord]) -> EstimateStats:
    def value(e: EstimateRecord) -> float:
        return float(e.optimized_amount or e.estimated_amount)

    total = len(estimates)
    approved = [e for e in estimates if e.status == "approved"]
    return EstimateStats(
        total_estimates=total,
        accepted_estimates=len(approved),
        rejected_estimates=sum(1 for e in estimates if e.status == "rejected"),
        pending_estimates=sum(1 for e in estimates if e.status in ("draft", "submitted")),
        total_value=sum(value(e) for e in estimates),
        accepted_value=sum(value(e) for e in approved),
        average_acceptance_rate=len(approved) / total if total else 0.0,
        average_confidence_score=(
            stats.mean([e.confidence_score if e.confidence_score is not None else 0.5 for e in estimates])
        ),
    )


__all__ = [
    "COMPETITION_DEFAULTS",
    "SCALE_DEFAULTS",
    "URGENCY_DEFAULTS",
    "generate_reasoning",
    "learn_price_biases",
    "optimize_estimate",
    "summarize_estimates",
]
