"""
Construction-industry seasonality.

Static knowledge about how demand, competition, labor and weather move
through the year, blended with a contractor's own bid history when it is
available.  Insufficient history always degrades to neutral values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from . import stats
from .market import seasonal_market_adjustment
from .models import SEASONS, EstimateLearningData, RiskLevel, Season

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonalFactors:
    demand_multiplier: float
    competition_level: float
    material_cost_factor: float
    labor_availability: float
    weather_impact: float


SEASONAL_FACTORS: Mapping[str, SeasonalFactors] = {
    # new fiscal year demand; rainy season starts
    "spring": SeasonalFactors(1.25, 1.3, 1.05, 0.9, 0.95),
    # holiday slowdown; heat restrictions and typhoons
    "summer": SeasonalFactors(0.85, 0.9, 1.02, 0.8, 0.7),
    # second-half budget push
    "autumn": SeasonalFactors(1.15, 1.2, 1.08, 1.1, 0.9),
    # year-end slowdown; snow and freezing
    "winter": SeasonalFactors(0.9, 1.0, 1.03, 0.85, 0.8),
}

PROJECT_SEASONAL_SENSITIVITY: Mapping[str, float] = {
    "renovation": 1.2,
    "new_construction": 1.5,
    "repair": 0.8,
    "maintenance": 0.6,
}
DEFAULT_SENSITIVITY = 1.0

SEASON_MONTHS: Mapping[str, Tuple[int, ...]] = {
    "spring": (3, 4, 5),
    "summer": (6, 7, 8),
    "autumn": (9, 10, 11),
    "winter": (12, 1, 2),
}

# Coarse per-season multipliers used by the quick recommendation helper.
SIMPLE_SEASONAL_FACTORS: Mapping[str, float] = {
    "spring": 1.05,
    "summer": 0.95,
    "autumn": 1.02,
    "winter": 0.98,
}

QUARTER_RISKS: Mapping[int, Tuple[str, ...]] = {
    1: ("New fiscal year disruption", "Staff turnover", "Delayed budget approval"),
    2: ("Rainy season and typhoons", "Summer holidays", "Heat-stroke countermeasures"),
    3: ("Typhoon season", "Rising material prices", "Labor shortage"),
    4: ("Year-end closing", "Cold weather", "Rushed budget execution"),
}

QUARTER_OPPORTUNITIES: Mapping[int, Tuple[str, ...]] = {
    1: ("New fiscal year budgets", "New client acquisition", "Organizational changes"),
    2: ("Off-season preparation", "Training and education", "Equipment investment"),
    3: ("Second-half budget spending", "Completion within the fiscal year", "Supplementary budgets"),
    4: ("Next-year preparation", "Relationship building", "Year-end rush demand"),
}

MONTH_REASONS: Mapping[int, Tuple[str, ...]] = {
    3: ("New fiscal year budgets are finalized",),
    4: ("New organizations generate fresh needs",),
    5: ("Full operations resume after the holidays",),
    6: ("Work must finish before the rainy season",),
    9: ("Second-half budgets begin execution",),
    10: ("Projects aiming for completion within the year increase",),
    11: ("Last-minute demand to spend the fiscal budget",),
    12: ("Capital investment ahead of next fiscal year",),
}


@dataclass(frozen=True)
class SeasonDetail:
    win_rate: float
    average_adjustment: float
    submission_count: int
    factors: SeasonalFactors
    risk_level: RiskLevel
    optimal_strategy: str


@dataclass(frozen=True)
class QuarterlyDemandForecast:
    predicted_demand_change: float
    confidence_level: float
    risk_factors: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TimingRecommendation:
    optimal_month: int
    win_rate_improvement: float
    reasoning: List[str] = field(default_factory=list)


def _require_season(season: str) -> str:
    if season not in SEASONS:
        raise ValueError(f"Unknown season: {season!r}")
    return season


def season_for_month(month: int) -> Season:
    """Map a calendar month (1-12) onto its construction season."""

    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


def season_for_date(value: date | datetime | str) -> Optional[Season]:
    if isinstance(value, (date, datetime)):
        return season_for_month(value.month)
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return season_for_month(int(parsed.month))


def parse_dates(values: object) -> pd.Series:
    """Parse timestamps onto UTC so mixed offsets compare; bad values become NaT."""

    return pd.Series(pd.to_datetime(values, errors="coerce", utc=True))


def get_seasonal_factor(season: str) -> float:
    return SIMPLE_SEASONAL_FACTORS[_require_season(season)]


def average_adjustment_ratio(records: Iterable[EstimateLearningData]) -> float:
    """Mean won/submitted ratio over won records; ``1.0`` when none qualify."""

    ratios = [
        float(r.won_amount) / float(r.submitted_amount)
        for r in records
        if r.won and r.submitted_amount and r.submitted_amount > 0
    ]
    if not ratios:
        return 1.0
    return stats.mean(ratios)


def _win_rate(records: Sequence[EstimateLearningData]) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.win_status) / len(records)


def _history_frame(records: Iterable[EstimateLearningData]) -> pd.DataFrame:
    rows = [
        {"submission_date": r.submission_date, "win": 1.0 if r.win_status else 0.0}
        for r in records
    ]
    frame = pd.DataFrame(rows, columns=["submission_date", "win"])
    frame["_DT"] = parse_dates(frame["submission_date"])
    return frame.dropna(subset=["_DT"])


class SeasonalAdjustmentEngine:
    """Seasonal multipliers, risk levels and timing advice for bids."""

    def __init__(
        self,
        factors: Mapping[str, SeasonalFactors] | None = None,
        sensitivity: Mapping[str, float] | None = None,
    ) -> None:
        self.factors = dict(factors or SEASONAL_FACTORS)
        self.sensitivity = dict(sensitivity or PROJECT_SEASONAL_SENSITIVITY)

    def calculate_seasonal_adjustment(
        self,
        season: str,
        project_type: str,
        market_condition: str,
        historical_data: Optional[Sequence[EstimateLearningData]] = None,
    ) -> float:
        """Seasonal price multiplier for a project, rounded to 3 decimals.

        With history available the theoretical value is averaged with the
        observed won/submitted ratio for the same season and project type.
        """

        factors = self.factors[_require_season(season)]
        sensitivity = self.sensitivity.get(project_type, DEFAULT_SENSITIVITY)

        adjustment = factors.demand_multiplier * factors.competition_level
        adjustment = 1 + (adjustment - 1) * sensitivity
        adjustment *= seasonal_market_adjustment(market_condition, season)

        if historical_data:
            relevant = [d for d in historical_data if d.season == season and d.project_type == project_type]
            historical = average_adjustment_ratio(relevant)
            logger.debug(
                "seasonal[%s/%s] theoretical=%.4f historical=%.4f (n=%s)",
                season,
                project_type,
                adjustment,
                historical,
                len(relevant),
            )
            adjustment = (adjustment + historical) / 2

        return round(adjustment, 3)

    def analyze_seasonal_performance_detailed(
        self, data: Sequence[EstimateLearningData]
    ) -> Dict[str, SeasonDetail]:
        result: Dict[str, SeasonDetail] = {}
        for season in SEASONS:
            season_data = [d for d in data if d.season == season]
            factors = self.factors[season]
            if not season_data:
                result[season] = SeasonDetail(
                    win_rate=0.0,
                    average_adjustment=1.0,
                    submission_count=0,
                    factors=factors,
                    risk_level="medium",
                    optimal_strategy="Insufficient data; follow the standard strategy",
                )
                continue

            win_rate = _win_rate(season_data)
            avg_adjustment = average_adjustment_ratio(season_data)
            result[season] = SeasonDetail(
                win_rate=win_rate,
                average_adjustment=avg_adjustment,
                submission_count=len(season_data),
                factors=factors,
                risk_level=self.evaluate_seasonal_risk(season, win_rate),
                optimal_strategy=self.seasonal_strategy(season, win_rate),
            )
        return result

    def evaluate_seasonal_risk(self, season: str, win_rate: float) -> RiskLevel:
        factors = self.factors[_require_season(season)]
        score = 0.0
        score += (1 - factors.labor_availability) * 0.3
        score += (1 - factors.weather_impact) * 0.3
        score += (factors.competition_level - 1) * 0.2
        score += (1 - win_rate) * 0.2
        if score < 0.3:
            return "low"
        if score < 0.6:
            return "medium"
        return "high"

    def seasonal_strategy(self, season: str, win_rate: float) -> str:
        factors = self.factors[_require_season(season)]
        if season == "spring":
            if win_rate < 0.3:
                return "Price aggressively to capture new fiscal year demand"
            return "Competition is intense; differentiate the offer"
        if season == "summer":
            if factors.weather_impact < 0.8:
                return "Plan schedules around weather risk"
            return "Use the slow season to prepare"
        if season == "autumn":
            if win_rate > 0.6:
                return "Expand on second-half demand"
            return "Strengthen proposals targeting budget-spending demand"
        if win_rate < 0.4:
            return "Keep year-end pricing flexible"
        return "Focus on relationships ahead of next fiscal year"

    def predict_quarterly_demand(
        self, historical_data: Sequence[EstimateLearningData], target_quarter: int
    ) -> QuarterlyDemandForecast:
        """Extrapolate the year-over-year win-rate trend for one calendar quarter."""

        frame = _history_frame(historical_data)
        frame = frame.loc[((frame["_DT"].dt.month - 1) // 3 + 1) == target_quarter]
        yearly = frame.groupby(frame["_DT"].dt.year)["win"].mean()
        rates = [float(v) for v in yearly.tolist()]

        if len(rates) < 2:
            change, confidence = 0.0, 0.3
        else:
            change = stats.linear_regression_slope(list(range(len(rates))), rates)
            confidence = min(0.9, len(rates) / 5)

        return QuarterlyDemandForecast(
            predicted_demand_change=change,
            confidence_level=confidence,
            risk_factors=list(QUARTER_RISKS.get(target_quarter, ())),
            opportunities=list(QUARTER_OPPORTUNITIES.get(target_quarter, ())),
        )

    def monthly_performance(self, data: Sequence[EstimateLearningData]) -> Dict[int, float]:
        frame = _history_frame(data)
        by_month = frame.groupby(frame["_DT"].dt.month)["win"].mean()
        return {month: float(by_month.get(month, 0.0)) for month in range(1, 13)}

    def recommend_optimal_timing(
        self,
        project_type: str,
        target_season: str,
        historical_data: Sequence[EstimateLearningData],
    ) -> TimingRecommendation:
        _require_season(target_season)
        relevant = [
            d for d in historical_data if d.season == target_season and d.project_type == project_type
        ]
        monthly = self.monthly_performance(relevant)

        months = SEASON_MONTHS[target_season]
        best_month = months[0]
        for month in months[1:]:
            if monthly[month] > monthly[best_month]:
                best_month = month

        average = stats.mean(list(monthly.values()))
        improvement = max(0.0, monthly[best_month] - average)
        return TimingRecommendation(
            optimal_month=best_month,
            win_rate_improvement=improvement,
            reasoning=self._timing_reasoning(target_season, project_type, best_month),
        )

    def _timing_reasoning(self, season: str, project_type: str, month: int) -> List[str]:
        reasoning: List[str] = []
        factors = self.factors[season]
        if factors.demand_multiplier > 1.1:
            lift = round((factors.demand_multiplier - 1) * 100)
            reasoning.append(f"Demand in {season} runs {lift}% above baseline")
        if self.sensitivity.get(project_type, DEFAULT_SENSITIVITY) > 1.0:
            reasoning.append(f"{project_type} pricing is sensitive to seasonal swings")
        reasoning.extend(MONTH_REASONS.get(month, (f"Seasonal factors favour month {month}",)))
        return reasoning


__all__ = [
    "PROJECT_SEASONAL_SENSITIVITY",
    "SEASONAL_FACTORS",
    "SEASON_MONTHS",
    "QuarterlyDemandForecast",
    "SeasonDetail",
    "SeasonalAdjustmentEngine",
    "SeasonalFactors",
    "TimingRecommendation",
    "average_adjustment_ratio",
    "get_seasonal_factor",
    "parse_dates",
    "season_for_date",
    "season_for_month",
]
