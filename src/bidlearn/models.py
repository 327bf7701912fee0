from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Dict, Iterator, List, Literal, Optional, Tuple

Season = Literal["spring", "summer", "autumn", "winter"]
MarketCondition = Literal["good", "normal", "poor"]
RiskLevel = Literal["low", "medium", "high"]
Level = Literal["low", "medium", "high"]
Scale = Literal["small", "medium", "large"]
SuggestionType = Literal["price", "schedule", "timing"]
FactorType = Literal["urgency", "competition", "project_scale", "relationship", "market_condition"]
EstimateStatus = Literal["draft", "submitted", "approved", "rejected"]

# Keep tuple structure to preserve order for reports
SEASONS: Tuple[Season, ...] = ("spring", "summer", "autumn", "winter")
MARKET_CONDITIONS: Tuple[MarketCondition, ...] = ("good", "normal", "poor")


@dataclass(frozen=True)
class EstimateLearningData:
    """One resolved bid submitted to a contractor."""

    contractor_name: str
    project_type: str
    submitted_amount: float
    win_status: bool
    submission_date: str
    won_amount: Optional[float] = None
    season: Optional[Season] = None
    market_condition: Optional[MarketCondition] = None
    id: Optional[str] = None
    work_category: Optional[str] = None
    estimated_duration: Optional[float] = None
    actual_duration: Optional[float] = None

    @property
    def won(self) -> bool:
        return bool(self.win_status and self.won_amount)


@dataclass(frozen=True)
class SeasonStats:
    win_rate: float
    average_adjustment: float
    submission_count: int


@dataclass(frozen=True)
class SeasonalPerformance:
    spring: SeasonStats
    summer: SeasonStats
    autumn: SeasonStats
    winter: SeasonStats

    def __getitem__(self, season: str) -> SeasonStats:
        if season not in SEASONS:
            raise KeyError(season)
        return getattr(self, season)

    def items(self) -> Iterator[tuple[Season, SeasonStats]]:
        for season in SEASONS:
            yield season, getattr(self, season)


@dataclass(frozen=True)
class TrendAnalysis:
    slope: float
    correlation: float
    volatility: float
    confidence_level: float


@dataclass(frozen=True)
class RecommendedAdjustments:
    price_adjustment: float
    schedule_adjustment: float
    confidence: float
    reasoning: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContractorStats:
    """Aggregate view of a contractor's bid history; recomputed on demand."""

    contractor_name: str
    total_submissions: int
    win_count: int
    win_rate: float
    average_win_amount: float
    average_submission_amount: float
    price_accuracy: float
    seasonal_performance: SeasonalPerformance
    trend_analysis: TrendAnalysis
    recommended_adjustments: RecommendedAdjustments


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: RiskLevel
    price_risk: float
    schedule_risk: float
    market_risk: float


@dataclass(frozen=True)
class OptimizationSuggestion:
    type: SuggestionType
    suggestion: str
    expected_impact: float
    confidence: float


@dataclass(frozen=True)
class MLAnalysisResult:
    contractor_name: str
    current_performance: ContractorStats
    predicted_performance: ContractorStats
    risk_assessment: RiskAssessment
    optimization_suggestions: List[OptimizationSuggestion] = field(default_factory=list)


@dataclass(frozen=True)
class PriceBias:
    """Learned or default multiplicative correction for one factor type."""

    client_id: str
    factor_type: FactorType
    factor_value: float
    confidence: float
    sample_size: int
    description: str = ""
    last_updated: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class ProjectCharacteristics:
    scale: Scale = "medium"
    urgency: Level = "medium"
    complexity: Level = "medium"


@dataclass(frozen=True)
class LearningData:
    """Final outcome of an estimate sent to a client."""

    client_id: str
    project_characteristics: ProjectCharacteristics
    final_amount: float
    was_accepted: bool
    negotiation_rounds: int = 1
    time_to_decision: int = 7
    created_at: Optional[str] = None


@dataclass(frozen=True)
class OptimizeEstimateRequest:
    estimated_amount: float
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    urgency_level: Optional[Level] = None
    competition_level: Optional[Level] = None
    project_scale: Optional[Scale] = None


@dataclass(frozen=True)
class BiasFactor:
    factor_type: str
    impact: float
    description: str


@dataclass(frozen=True)
class EstimateOptimizationResult:
    original_amount: float
    optimized_amount: int
    adjustment_percentage: float
    confidence_score: float
    acceptance_probability: float
    expected_profit: float
    reasoning: str
    bias_factors: List[BiasFactor] = field(default_factory=list)


@dataclass(frozen=True)
class EstimateRecord:
    status: EstimateStatus
    estimated_amount: float
    optimized_amount: Optional[float] = None
    confidence_score: Optional[float] = None


@dataclass(frozen=True)
class EstimateStats:
    total_estimates: int
    accepted_estimates: int
    rejected_estimates: int
    pending_estimates: int
    total_value: float
    accepted_value: float
    average_acceptance_rate: float
    average_confidence_score: float


def as_dict(obj: object) -> Dict[str, object]:
    """Return a JSON-ready dict for any result dataclass."""

    if not is_dataclass(obj) or isinstance(obj, type):
        raise TypeError(f"Expected a dataclass instance, got {type(obj).__name__}")
    return asdict(obj)


__all__ = [
    "BiasFactor",
    "ContractorStats",
    "EstimateLearningData",
    "EstimateOptimizationResult",
    "EstimateRecord",
    "EstimateStats",
    "LearningData",
    "MARKET_CONDITIONS",
    "MLAnalysisResult",
    "OptimizationSuggestion",
    "OptimizeEstimateRequest",
    "PriceBias",
    "ProjectCharacteristics",
    "RecommendedAdjustments",
    "RiskAssessment",
    "SEASONS",
    "SeasonStats",
    "SeasonalPerformance",
    "TrendAnalysis",
    "as_dict",
]
