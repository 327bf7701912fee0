import pandas as pd

from .models import ContractorStats, EstimateOptimizationResult, MLAnalysisResult


def seasonal_table(stats: ContractorStats) -> pd.DataFrame:
    rows = [
        {
            "SEASON": season,
            "SUBMISSIONS": season_stats.submission_count,
            "WIN_RATE": season_stats.win_rate,
            "AVG_ADJUSTMENT": season_stats.average_adjustment,
        }
        for season, season_stats in stats.seasonal_performance.items()
    ]
    return pd.DataFrame(rows, columns=["SEASON", "SUBMISSIONS", "WIN_RATE", "AVG_ADJUSTMENT"])


def make_summary_text(stats: ContractorStats) -> str:
    trend = stats.trend_analysis
    rec = stats.recommended_adjustments
    table = seasonal_table(stats)
    return (
        f"Contractor: {stats.contractor_name}\n"
        f"Submissions: {stats.total_submissions} | wins: {stats.win_count} | win rate: {stats.win_rate:.1%}\n"
        f"Average submitted: {stats.average_submission_amount:,.0f} | "
        f"average won: {stats.average_win_amount:,.0f} | price accuracy: {stats.price_accuracy:.3f}\n"
        f"Seasonal performance:\n{table.to_string(index=False, float_format=lambda v: f'{v:.3f}')}\n"
        f"Trend: slope={trend.slope:+.4f} correlation={trend.correlation:+.3f} "
        f"volatility={trend.volatility:.3f} confidence={trend.confidence_level:.2f}\n"
        f"Recommended: price x{rec.price_adjustment:.3f}, schedule x{rec.schedule_adjustment:.3f}\n"
        + "".join(f" - {reason}\n" for reason in rec.reasoning)
    )


def make_analysis_text(result: MLAnalysisResult) -> str:
    risk = result.risk_assessment
    predicted = result.predicted_performance
    lines = [
        make_summary_text(result.current_performance).rstrip("\n"),
        f"Predicted win rate: {predicted.win_rate:.1%} | predicted average won: {predicted.average_win_amount:,.0f}",
        f"Risk: {risk.overall_risk} (price {risk.price_risk:.3f}, schedule {risk.schedule_risk:.3f}, "
        f"market {risk.market_risk:.3f})",
    ]
    if result.optimization_suggestions:
        lines.append("Suggestions:")
        lines.extend(
            f" - [{s.type}] {s.suggestion} (impact {s.expected_impact:+.0%}, confidence {s.confidence:.0%})"
            for s in result.optimization_suggestions
        )
    return "\n".join(lines) + "\n"


def make_optimization_text(result: EstimateOptimizationResult) -> str:
    return (
        f"Original amount: {result.original_amount:,.0f}\n"
        f"Optimized amount: {result.optimized_amount:,.0f} ({result.adjustment_percentage:+.1f}%)\n"
        f"Confidence: {result.confidence_score:.2f} | expected profit: {result.expected_profit:,.0f}\n"
        f"{result.reasoning}\n"
    )
