from __future__ import annotations

from dataclasses import replace
from datetime import date

import numpy as np
import pytest

from bidlearn.config import EngineConfig
from bidlearn.contractor_analysis import (
    ContractorMLEngine,
    InsufficientDataError,
    calculate_recommended_adjustment,
)
from bidlearn.models import SeasonalPerformance, SeasonStats, TrendAnalysis


def _engine(config: EngineConfig | None = None, today: date = date(2024, 4, 1), **kwargs) -> ContractorMLEngine:
    return ContractorMLEngine(config, today=lambda: today, **kwargs)


def test_identical_wins_give_perfect_rates(make_record):
    data = [make_record() for _ in range(10)]
    result = _engine().analyze_contractor_performance("Acme", data)

    assert result.total_submissions == 10
    assert result.win_count == 10
    assert result.win_rate == 1.0
    assert result.price_accuracy == 1.0
    assert result.average_win_amount == 1_000_000.0
    assert result.seasonal_performance.spring.submission_count == 10
    assert result.seasonal_performance.summer.average_adjustment == 1.0


def test_minimum_data_points_enforced(make_record):
    data = [make_record() for _ in range(9)]
    with pytest.raises(InsufficientDataError) as excinfo:
        _engine().analyze_contractor_performance("Acme", data)
    assert excinfo.value.required == 10
    assert excinfo.value.available == 9
    assert isinstance(excinfo.value, ValueError)

    data.append(make_record())
    assert _engine().analyze_contractor_performance("Acme", data).total_submissions == 10


def test_other_contractors_are_ignored(make_record):
    data = [make_record() for _ in range(10)] + [make_record(contractor="Rival", win=False) for _ in range(5)]
    result = _engine().analyze_contractor_performance("Acme", data)
    assert result.total_submissions == 10

    with pytest.raises(InsufficientDataError):
        _engine().analyze_contractor_performance("Rival", data)

    relaxed = _engine(EngineConfig(min_data_points=3))
    assert relaxed.analyze_contractor_performance("Rival", data).win_rate == 0.0


def test_price_accuracy_measures_distance_from_won_amount(make_record):
    data = [make_record(submitted=110.0, won=100.0), make_record(submitted=90.0, won=100.0)]
    assert np.isclose(ContractorMLEngine.calculate_price_accuracy(data), 0.9)
    assert ContractorMLEngine.calculate_price_accuracy([]) == 0.0


def test_trend_direction_and_confidence_bounds(make_series):
    engine = _engine()
    rising = engine.analyze_trends(make_series([False] * 10 + [True] * 10))
    falling = engine.analyze_trends(make_series([True] * 10 + [False] * 10))

    assert rising.slope > 0
    assert falling.slope < 0
    for trend in (rising, falling):
        assert 0.1 <= trend.confidence_level <= 0.9
        assert trend.volatility >= 0


def test_trend_orders_by_submission_date(make_series):
    series = make_series([False] * 10 + [True] * 10)
    trend = _engine().analyze_trends(list(reversed(series)))
    assert trend.slope > 0


def test_recommended_adjustments_follow_current_season(make_record):
    data = [make_record(won=950_000.0) for _ in range(10)]
    result = _engine().analyze_contractor_performance("Acme", data)
    rec = result.recommended_adjustments

    assert rec.price_adjustment == 0.95
    assert rec.schedule_adjustment == 0.95
    assert rec.reasoning == ["Standard adjustment recommended"]


def test_poor_market_raises_price(make_record):
    data = [make_record() for _ in range(10)]
    rec = _engine(EngineConfig(market_condition="poor")).analyze_contractor_performance("Acme", data)
    assert rec.recommended_adjustments.price_adjustment == 1.05
    assert rec.recommended_adjustments.reasoning == ["Market is weak; keep estimates conservative"]


def test_season_without_data_extends_schedule(make_record):
    data = [make_record() for _ in range(10)]
    rec = _engine(today=date(2024, 7, 1)).analyze_contractor_performance("Acme", data).recommended_adjustments
    assert rec.price_adjustment == 1.0
    assert rec.schedule_adjustment == 1.1
    assert rec.reasoning == ["Win rate is low; adjust price and schedule"]


def test_trend_moves_price_adjustment(make_series):
    config = EngineConfig(trend_threshold=0.01)

    up = _engine(config).analyze_contractor_performance("Acme", make_series([False] * 10 + [True] * 10))
    assert up.recommended_adjustments.price_adjustment == 0.98
    assert up.recommended_adjustments.reasoning[0].startswith("Win rate is trending up")

    down = _engine(config).analyze_contractor_performance("Acme", make_series([True] * 10 + [False] * 10))
    assert down.recommended_adjustments.price_adjustment == 1.02
    assert down.recommended_adjustments.schedule_adjustment == 1.0


def test_seeded_generators_reproduce_predictions(make_series):
    data = make_series([True, False] * 6)
    first = _engine(rng=np.random.default_rng(7)).perform_ml_analysis("Acme", data)
    second = _engine(rng=np.random.default_rng(7)).perform_ml_analysis("Acme", data)
    assert first == second

    seeded = _engine(EngineConfig(random_seed=7)).perform_ml_analysis("Acme", data)
    assert seeded == first


def test_zero_jitter_is_deterministic(make_record):
    data = [make_record() for _ in range(10)]
    result = _engine(EngineConfig(prediction_jitter=0.0)).perform_ml_analysis("Acme", data)

    current = result.current_performance
    predicted = result.predicted_performance
    assert predicted.average_win_amount == current.average_win_amount
    assert predicted.win_rate == 1.0
    assert predicted.price_accuracy == 1.0


def test_jitter_stays_within_band(make_record):
    data = [make_record() for _ in range(10)]
    engine = _engine(EngineConfig(prediction_jitter=0.1), rng=np.random.default_rng(3))
    for _ in range(20):
        predicted = engine.perform_ml_analysis("Acme", data).predicted_performance
        assert 950_000.0 <= predicted.average_win_amount <= 1_050_000.0


def test_risk_levels_bucket_by_mean_component(make_record):
    base = _engine().analyze_contractor_performance("Acme", [make_record() for _ in range(10)])

    steady = replace(
        base,
        price_accuracy=1.0,
        trend_analysis=TrendAnalysis(slope=0.0, correlation=0.0, volatility=0.0, confidence_level=0.9),
    )
    low = ContractorMLEngine.assess_risks(steady)
    assert low.overall_risk == "low"
    assert low.price_risk == 0.0
    assert low.market_risk == 0.1

    shaky = replace(
        base,
        price_accuracy=0.0,
        trend_analysis=TrendAnalysis(slope=0.0, correlation=0.0, volatility=0.9, confidence_level=0.1),
    )
    assert ContractorMLEngine.assess_risks(shaky).overall_risk == "high"


def test_risk_components_are_clamped(make_record):
    data = [make_record(submitted=1_000_000.0, won=400_000.0) for _ in range(10)]
    stats = _engine().analyze_contractor_performance("Acme", data)
    assert stats.price_accuracy < 0

    risk = ContractorMLEngine.assess_risks(stats)
    for value in (risk.price_risk, risk.schedule_risk, risk.market_risk):
        assert 0.0 <= value <= 1.0
    assert risk.price_risk == 1.0


def test_suggestions_ranked_by_expected_impact(make_series):
    data = make_series([True, True], season="summer") + make_series(
        [False] * 8, start=date(2023, 3, 6), season="spring"
    )
    result = _engine().perform_ml_analysis("Acme", data)

    kinds = [s.type for s in result.optimization_suggestions]
    assert kinds == ["price", "timing"]
    assert result.optimization_suggestions[1].suggestion == "Concentrate proposals in summer"
    impacts = [s.expected_impact for s in result.optimization_suggestions]
    assert impacts == sorted(impacts, reverse=True)


def test_best_season_requires_meaningful_win_rate():
    empty = SeasonStats(win_rate=0.0, average_adjustment=1.0, submission_count=0)
    modest = SeasonStats(win_rate=0.4, average_adjustment=1.0, submission_count=5)
    strong = SeasonStats(win_rate=0.6, average_adjustment=1.0, submission_count=5)

    assert ContractorMLEngine.find_best_season(SeasonalPerformance(empty, modest, empty, empty)) is None
    assert ContractorMLEngine.find_best_season(SeasonalPerformance(empty, modest, strong, empty)) == "autumn"


def test_quick_adjustment_combines_season_market_and_trend(make_series):
    data = make_series([False] * 10 + [True] * 10)

    assert np.isclose(calculate_recommended_adjustment(data, "spring", "normal"), 2.1)
    assert np.isclose(calculate_recommended_adjustment(data, "summer", "poor"), 0.95 * 1.1 * 2.0)
    assert calculate_recommended_adjustment(make_series([False] * 5), "winter", "good") == 0.0


def test_quick_adjustment_without_history_is_neutral():
    assert calculate_recommended_adjustment([], "spring", "poor") == 1.0


def test_mixed_utc_offsets_are_ordered_chronologically(make_record):
    wins = [make_record(submission_date="2024-04-01T00:00:00+00:00") for _ in range(5)]
    losses = [make_record(win=False, submission_date="2024-03-01T09:00:00+09:00") for _ in range(5)]

    result = _engine().analyze_contractor_performance("Acme", wins + losses)

    assert result.total_submissions == 10
    assert result.trend_analysis.slope > 0
    assert _engine().perform_ml_analysis("Acme", wins + losses).contractor_name == "Acme"
