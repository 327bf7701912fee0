from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from bidlearn.history_io import (
    learning_data_from_frame,
    learning_data_to_frame,
    load_deal_history,
    load_estimates,
    load_learning_data,
    load_price_biases,
    read_table,
)


def test_load_bid_history_csv(bid_history_csv: Path):
    records = load_learning_data(bid_history_csv)

    assert len(records) == 13
    first = records[0]
    assert first.contractor_name == "Acme"
    assert first.win_status is False
    assert first.won_amount is None
    assert first.submission_date == "2023-01-15"
    assert first.season == "winter"

    second = records[1]
    assert second.win_status is True
    assert second.won_amount == 950_000.0
    assert second.season == "winter"
    assert records[3].season == "spring"
    assert sum(1 for r in records if r.contractor_name == "Acme" and r.win_status) == 8


def test_explicit_season_and_market_columns(caplog):
    frame = pd.DataFrame(
        {
            "contractor_name": ["A", "A", "A"],
            "project_type": ["repair"] * 3,
            "submitted_amount": [100, 200, 300],
            "win_status": [1, 0, "Won"],
            "submission_date": ["2024-01-10", "2024-07-10", "2024-10-10"],
            "season": ["Summer", "", "rainy"],
            "market_condition": ["poor", None, "hot"],
        }
    )
    with caplog.at_level("WARNING"):
        records = learning_data_from_frame(frame)

    assert [r.season for r in records] == ["summer", "summer", None]
    assert [r.market_condition for r in records] == ["poor", None, None]
    assert [r.win_status for r in records] == [True, False, True]
    assert "rainy" in caplog.text
    assert "hot" in caplog.text


def test_missing_columns_raise():
    frame = pd.DataFrame({"contractor_name": ["A"], "project_type": ["repair"]})
    with pytest.raises(ValueError, match="submitted_amount"):
        learning_data_from_frame(frame)


def test_unsupported_suffix(tmp_path: Path):
    path = tmp_path / "history.txt"
    path.write_text("nothing")
    with pytest.raises(ValueError):
        read_table(path)


def test_frame_round_trip_keeps_columns(bid_history_csv: Path):
    records = load_learning_data(bid_history_csv)
    frame = learning_data_to_frame(records)

    assert list(frame.columns)[:5] == [
        "contractor_name",
        "project_type",
        "submitted_amount",
        "win_status",
        "submission_date",
    ]
    assert learning_data_from_frame(frame) == records


def test_deal_history_sorted_newest_first(tmp_path: Path):
    path = tmp_path / "deals.csv"
    pd.DataFrame(
        {
            "Client ID": ["c1", "c1", "c2", "c1"],
            "Final Amount": [100, 200, 300, 400],
            "Was Accepted": ["yes", "no", "yes", "accepted"],
            "Urgency": ["high", None, "low", "HIGH"],
            "Created At": ["2024-01-01", "2024-03-01", "2024-02-01", "2024-02-15"],
        }
    ).to_csv(path, index=False)

    deals = load_deal_history(path, client_id="c1")

    assert [d.final_amount for d in deals] == [200.0, 400.0, 100.0]
    assert [d.was_accepted for d in deals] == [False, True, True]
    assert deals[1].project_characteristics.urgency == "high"
    assert deals[0].project_characteristics.urgency == "medium"
    assert deals[0].negotiation_rounds == 1
    assert deals[0].time_to_decision == 7


def test_price_biases_filtered_by_client(tmp_path: Path):
    path = tmp_path / "biases.json"
    path.write_text(
        json.dumps(
            [
                {"client_id": "c1", "factor_type": "urgency", "factor_value": 0.12, "confidence": 0.4, "sample_size": 4},
                {"client_id": "c2", "factor_type": "urgency", "factor_value": 0.02},
            ]
        )
    )
    biases = load_price_biases(path, client_id="c1")

    assert len(biases) == 1
    assert biases[0].factor_value == 0.12
    assert biases[0].sample_size == 4
    assert len(load_price_biases(path)) == 2


def test_load_estimates_excel(tmp_path: Path):
    path = tmp_path / "estimates.xlsx"
    pd.DataFrame(
        {
            "Status": ["Approved", "draft"],
            "Estimated Amount": [1000, 500],
            "Optimized Amount": [1100, None],
        }
    ).to_excel(path, index=False)

    estimates = load_estimates(path)

    assert [e.status for e in estimates] == ["approved", "draft"]
    assert estimates[0].optimized_amount == 1100.0
    assert estimates[1].optimized_amount is None
    assert estimates[1].confidence_score is None


def test_blank_bias_values_are_skipped(tmp_path: Path, caplog):
    path = tmp_path / "biases.csv"
    path.write_text("client_id,factor_type,factor_value\nc1,urgency,\nc1,competition,0.02\n")

    with caplog.at_level("WARNING"):
        biases = load_price_biases(path, client_id="c1")

    assert [b.factor_type for b in biases] == ["competition"]
    assert "urgency" in caplog.text


def test_deal_dates_with_mixed_offsets(tmp_path: Path):
    path = tmp_path / "deals.csv"
    pd.DataFrame(
        {
            "client_id": ["c1", "c1"],
            "final_amount": [100, 200],
            "was_accepted": ["yes", "no"],
            "created_at": ["2024-02-29T23:30:00+00:00", "2024-03-01T09:00:00+09:00"],
        }
    ).to_csv(path, index=False)

    assert [d.final_amount for d in load_deal_history(path)] == [200.0, 100.0]
