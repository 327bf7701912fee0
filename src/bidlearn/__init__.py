"""Contractor bid learning: win-rate statistics, seasonal pricing and estimate optimization."""

from .config import EngineConfig, load_config
from .contractor_analysis import ContractorMLEngine, InsufficientDataError, calculate_recommended_adjustment
from .models import (
    ContractorStats,
    EstimateLearningData,
    EstimateOptimizationResult,
    LearningData,
    MLAnalysisResult,
    OptimizeEstimateRequest,
    PriceBias,
    ProjectCharacteristics,
    as_dict,
)
from .optimization import learn_price_biases, optimize_estimate, summarize_estimates
from .seasonal import SeasonalAdjustmentEngine

__all__ = [
    "ContractorMLEngine",
    "ContractorStats",
    "EngineConfig",
    "EstimateLearningData",
    "EstimateOptimizationResult",
    "InsufficientDataError",
    "LearningData",
    "MLAnalysisResult",
    "OptimizeEstimateRequest",
    "PriceBias",
    "ProjectCharacteristics",
    "SeasonalAdjustmentEngine",
    "as_dict",
    "calculate_recommended_adjustment",
    "learn_price_biases",
    "load_config",
    "optimize_estimate",
    "summarize_estimates",
]
