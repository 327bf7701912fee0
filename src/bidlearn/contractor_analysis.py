"""
Per-contractor performance analysis.

Everything here is closed-form statistics over the bid history plus the
static seasonal tables; no trained model is involved.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional, Sequence

import numpy as np

from . import stats
from .config import EngineConfig
from .market import baseline_market_factor, engine_market_adjustment
from .models import (
    SEASONS,
    ContractorStats,
    EstimateLearningData,
    MLAnalysisResult,
    OptimizationSuggestion,
    RecommendedAdjustments,
    RiskAssessment,
    RiskLevel,
    SeasonalPerformance,
    SeasonStats,
    TrendAnalysis,
)
from .seasonal import average_adjustment_ratio, get_seasonal_factor, parse_dates, season_for_month

logger = logging.getLogger(__name__)


class InsufficientDataError(ValueError):
    """Raised when a contractor has too few bids to analyse."""

    def __init__(self, contractor_name: str, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient data for {contractor_name!r}: {available} records, at least {required} required"
        )
        self.contractor_name = contractor_name
        self.required = required
        self.available = available


def _price_ratio(record: EstimateLearningData) -> float:
    if record.won and record.submitted_amount > 0:
        return float(record.won_amount) / float(record.submitted_amount)
    return 1.0


def _sort_by_submission(data: Sequence[EstimateLearningData]) -> List[EstimateLearningData]:
    """Chronological order; unparseable dates keep input order at the end."""

    if not data:
        return []
    order = parse_dates([d.submission_date for d in data])
    ranked = order.sort_values(kind="mergesort", na_position="last")
    return [data[i] for i in ranked.index]


class ContractorMLEngine:
    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        today: Callable[[], date] = date.today,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._today = today
        self._rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)

    def analyze_contractor_performance(
        self, contractor_name: str, learning_data: Sequence[EstimateLearningData]
    ) -> ContractorStats:
        """Aggregate statistics for one contractor.

        Raises :class:`InsufficientDataError` when fewer than
        ``config.min_data_points`` records belong to the contractor.
        """

        data = [d for d in learning_data if d.contractor_name == contractor_name]
        if len(data) < self.config.min_data_points:
            raise InsufficientDataError(contractor_name, self.config.min_data_points, len(data))

        win_count = sum(1 for d in data if d.win_status)
        won_data = [d for d in data if d.won]
        average_win = stats.mean([float(d.won_amount) for d in won_data]) if won_data else 0.0

        seasonal = self.analyze_seasonal_performance(data)
        trend = self.analyze_trends(data)
        recommended = self.calculate_recommended_adjustments(trend, seasonal)

        logger.debug(
            "[contractor] %s :: n=%s wins=%s slope=%.4f confidence=%.3f",
            contractor_name,
            len(data),
            win_count,
            trend.slope,
            trend.confidence_level,
        )

        return ContractorStats(
            contractor_name=contractor_name,
            total_submissions=len(data),
            win_count=win_count,
            win_rate=win_count / len(data),
            average_win_amount=average_win,
            average_submission_amount=stats.mean([d.submitted_amount for d in data]),
            price_accuracy=self.calculate_price_accuracy(won_data),
            seasonal_performance=seasonal,
            trend_analysis=trend,
            recommended_adjustments=recommended,
        )

    def perform_ml_analysis(
        self, contractor_name: str, learning_data: Sequence[EstimateLearningData]
    ) -> MLAnalysisResult:
        current = self.analyze_contractor_performance(contractor_name, learning_data)
        predicted = self.predict_future_performance(current)
        risk = self.assess_risks(current)
        return MLAnalysisResult(
            contractor_name=contractor_name,
            current_performance=current,
            predicted_performance=predicted,
            risk_assessment=risk,
            optimization_suggestions=self.generate_optimization_suggestions(current, risk),
        )

    @staticmethod
    def calculate_price_accuracy(won_data: Sequence[EstimateLearningData]) -> float:
        if not won_data:
            return 0.0
        accuracies = [
            1 - abs(d.submitted_amount - float(d.won_amount)) / float(d.won_amount)
            for d in won_data
        ]
        return stats.mean(accuracies)

    @staticmethod
    def analyze_seasonal_performance(data: Sequence[EstimateLearningData]) -> SeasonalPerformance:
        per_season = {}
        for season in SEASONS:
            season_data = [d for d in data if d.season == season]
            if not season_data:
                per_season[season] = SeasonStats(win_rate=0.0, average_adjustment=1.0, submission_count=0)
                continue
            wins = sum(1 for d in season_data if d.win_status)
            per_season[season] = SeasonStats(
                win_rate=wins / len(season_data),
                average_adjustment=average_adjustment_ratio(season_data),
                submission_count=len(season_data),
            )
        return SeasonalPerformance(**per_season)

    def analyze_trends(self, data: Sequence[EstimateLearningData]) -> TrendAnalysis:
        ordered = _sort_by_submission(data)
        indices = list(range(len(ordered)))
        win_rates = stats.rolling_win_rate([d.win_status for d in ordered], self.config.rolling_window)
        price_ratios = [_price_ratio(d) for d in ordered]

        slope = stats.linear_regression_slope(indices, win_rates)
        correlation = stats.correlation(price_ratios, win_rates)
        volatility = stats.standard_deviation(win_rates)
        raw_confidence = (len(data) / 50) * (1 - abs(volatility)) * (1 - abs(correlation - 0.5))

        return TrendAnalysis(
            slope=slope,
            correlation=correlation,
            volatility=volatility,
            confidence_level=stats.clamp(raw_confidence, 0.1, 0.9),
        )

    def current_season(self) -> str:
        return season_for_month(self._today().month)

    def calculate_recommended_adjustments(
        self, trend: TrendAnalysis, seasonal: SeasonalPerformance
    ) -> RecommendedAdjustments:
        season_stats = seasonal[self.current_season()]
        threshold = self.config.trend_threshold
        market_condition = self.config.market_condition

        price_adjustment = season_stats.average_adjustment
        if trend.slope > threshold:
            price_adjustment *= 0.98
        elif trend.slope < -threshold:
            price_adjustment *= 1.02
        price_adjustment *= engine_market_adjustment(market_condition)

        schedule_adjustment = 1.0
        if season_stats.win_rate < 0.3:
            schedule_adjustment = 1.1
        elif season_stats.win_rate > 0.7:
            schedule_adjustment = 0.95

        reasoning: List[str] = []
        if trend.slope > threshold:
            reasoning.append("Win rate is trending up; price more aggressively")
        if season_stats.win_rate < 0.3:
            reasoning.append("Win rate is low; adjust price and schedule")
        if market_condition == "poor":
            reasoning.append("Market is weak; keep estimates conservative")

        return RecommendedAdjustments(
            price_adjustment=round(price_adjustment, 3),
            schedule_adjustment=round(schedule_adjustment, 3),
            confidence=trend.confidence_level,
            reasoning=reasoning or ["Standard adjustment recommended"],
        )

    def predict_future_performance(self, current: ContractorStats) -> ContractorStats:
        """Extend the current trend one step.

        The average win amount is jittered by ``prediction_jitter`` using the
        injected random generator; a jitter of ``0`` makes this deterministic.
        """

        trend_factor = 1 + current.trend_analysis.slope * 0.1
        jitter = (float(self._rng.random()) - 0.5) * self.config.prediction_jitter
        return replace(
            current,
            win_rate=stats.clamp(current.win_rate * trend_factor, 0.0, 1.0),
            average_win_amount=current.average_win_amount * (1 + jitter),
            price_accuracy=min(1.0, current.price_accuracy * 1.05),
        )

    @staticmethod
    def assess_risks(current: ContractorStats) -> RiskAssessment:
        price_risk = stats.clamp(1 - current.price_accuracy, 0.0, 1.0)
        schedule_risk = stats.clamp(current.trend_analysis.volatility, 0.0, 1.0)
        market_risk = stats.clamp(1 - current.trend_analysis.confidence_level, 0.0, 1.0)

        score = (price_risk + schedule_risk + market_risk) / 3
        overall: RiskLevel = "medium"
        if score < 0.3:
            overall = "low"
        elif score > 0.6:
            overall = "high"

        return RiskAssessment(
            overall_risk=overall,
            price_risk=round(price_risk, 3),
            schedule_risk=round(schedule_risk, 3),
            market_risk=round(market_risk, 3),
        )

    @staticmethod
    def find_best_season(seasonal: SeasonalPerformance) -> Optional[str]:
        best_season, best_stats = next(seasonal.items())
        for season, season_stats in seasonal.items():
            if season_stats.win_rate > best_stats.win_rate:
                best_season, best_stats = season, season_stats
        return best_season if best_stats.win_rate > 0.4 else None

    def generate_optimization_suggestions(
        self, current: ContractorStats, risk: RiskAssessment
    ) -> List[OptimizationSuggestion]:
        suggestions: List[OptimizationSuggestion] = []
        if current.win_rate < 0.3:
            suggestions.append(
                OptimizationSuggestion(
                    type="price",
                    suggestion="Lowering prices by 3-5% is expected to improve the win rate",
                    expected_impact=0.15,
                    confidence=0.8,
                )
            )
        if risk.schedule_risk > 0.5:
            suggestions.append(
                OptimizationSuggestion(
                    type="schedule",
                    suggestion="Extending schedules by 10% reduces delivery risk",
                    expected_impact=0.1,
                    confidence=0.7,
                )
            )
        best_season = self.find_best_season(current.seasonal_performance)
        if best_season:
            suggestions.append(
                OptimizationSuggestion(
                    type="timing",
                    suggestion=f"Concentrate proposals in {best_season}",
                    expected_impact=0.08,
                    confidence=0.6,
                )
            )
        return sorted(suggestions, key=lambda s: s.expected_impact, reverse=True)


def calculate_recommended_adjustment(
    historical_data: Sequence[EstimateLearningData],
    current_season: str,
    market_condition: str,
) -> float:
    """Quick multiplier from season, market and recent-vs-overall win rate."""

    if not historical_data:
        return 1.0
    seasonal_factor = get_seasonal_factor(current_season)
    market_factor = baseline_market_factor(market_condition)

    historical_rate = sum(1 for d in historical_data if d.win_status) / len(historical_data)
    recent = list(historical_data)[-10:]
    recent_rate = sum(1 for d in recent if d.win_status) / len(recent)
    trend_factor = recent_rate / (historical_rate or 0.01)

    return seasonal_factor * market_factor * trend_factor


__all__ = [
    "ContractorMLEngine",
    "InsufficientDataError",
    "calculate_recommended_adjustment",
]
