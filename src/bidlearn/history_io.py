"""Load bid histories, price biases and deal outcomes from tabular files."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, fields
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from .market import normalize_market_condition
from .models import (
    SEASONS,
    EstimateLearningData,
    EstimateRecord,
    LearningData,
    PriceBias,
    ProjectCharacteristics,
)
from .seasonal import parse_dates, season_for_date

logger = logging.getLogger(__name__)

_TRUE_TOKENS = {"1", "true", "yes", "y", "won", "win", "accepted"}

LEARNING_COLUMNS = ("contractor_name", "project_type", "submitted_amount", "win_status", "submission_date")
BIAS_COLUMNS = ("client_id", "factor_type", "factor_value")
DEAL_COLUMNS = ("client_id", "final_amount", "was_accepted")
ESTIMATE_COLUMNS = ("status", "estimated_amount")


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV, Excel or JSON-records file into a normalized DataFrame."""

    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in {".xlsx", ".xlsm", ".xls"}:
        df = pd.read_excel(path)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records")
    else:
        raise ValueError(f"Unsupported file type for {path}: expected .csv, .xlsx or .json")
    return normalize_columns(df)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out.columns = [str(c).strip().lower().replace(" ", "_").replace("-", "_") for c in out.columns]
    return out


def _require(df: pd.DataFrame, columns: Sequence[str], label: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{label} is missing required columns: {', '.join(missing)}")


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _opt_float(value: object) -> Optional[float]:
    if _is_missing(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: object) -> Optional[str]:
    if _is_missing(value):
        return None
    text = str(value).strip()
    return text or None


def _to_bool(value: object) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value != 0)
    return str(value).strip().lower() in _TRUE_TOKENS


def _date_text(value: object) -> str:
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return _opt_str(value) or ""


def _row(row: pd.Series, column: str) -> object:
    return row[column] if column in row.index else None


def learning_data_from_frame(df: pd.DataFrame) -> List[EstimateLearningData]:
    """Convert bid-history rows into :class:`EstimateLearningData` records.

    Rows without a season get one derived from the submission month; rows
    with an unknown season or market condition keep ``None``.
    """

    frame = normalize_columns(df)
    _require(frame, LEARNING_COLUMNS, "Bid history")

    records: List[EstimateLearningData] = []
    for _, row in frame.iterrows():
        submission_date = _date_text(row["submission_date"])
        season = (_opt_str(_row(row, "season")) or "").lower() or None
        if season is None:
            season = season_for_date(submission_date) if submission_date else None
        elif season not in SEASONS:
            logger.warning("Ignoring unknown season %r for %s", season, row["contractor_name"])
            season = None

        market = _opt_str(_row(row, "market_condition"))
        if market is not None:
            try:
                market = normalize_market_condition(market)
            except ValueError:
                logger.warning("Ignoring unknown market condition %r", market)
                market = None

        records.append(
            EstimateLearningData(
                contractor_name=str(row["contractor_name"]).strip(),
                project_type=str(row["project_type"]).strip(),
                submitted_amount=float(row["submitted_amount"]),
                win_status=_to_bool(row["win_status"]),
                submission_date=submission_date,
                won_amount=_opt_float(_row(row, "won_amount")),
                season=season,
                market_condition=market,
                id=_opt_str(_row(row, "id")),
                work_category=_opt_str(_row(row, "work_category")),
                estimated_duration=_opt_float(_row(row, "estimated_duration")),
                actual_duration=_opt_float(_row(row, "actual_duration")),
            )
        )
    return records


def learning_data_to_frame(records: Iterable[EstimateLearningData]) -> pd.DataFrame:
    rows = [asdict(r) for r in records]
    return pd.DataFrame(rows, columns=[f.name for f in fields(EstimateLearningData)])


def price_biases_from_frame(df: pd.DataFrame) -> List[PriceBias]:
    frame = normalize_columns(df)
    _require(frame, BIAS_COLUMNS, "Price bias table")
    biases: List[PriceBias] = []
    for _, row in frame.iterrows():
        value = _opt_float(row["factor_value"])
        if value is None or not math.isfinite(value):
            logger.warning(
                "Skipping %s bias for %s: factor_value %r is not a number",
                row["factor_type"],
                row["client_id"],
                row["factor_value"],
            )
            continue
        biases.append(
            PriceBias(
                client_id=str(row["client_id"]).strip(),
                factor_type=str(row["factor_type"]).strip(),
                factor_value=value,
                confidence=_opt_float(_row(row, "confidence")) or 0.0,
                sample_size=int(_opt_float(_row(row, "sample_size")) or 0),
                description=_opt_str(_row(row, "description")) or "",
                last_updated=_opt_str(_row(row, "last_updated")),
                id=_opt_str(_row(row, "id")),
            )
        )
    return biases


def deal_history_from_frame(df: pd.DataFrame) -> List[LearningData]:
    """Convert resolved deals into :class:`LearningData`, newest first."""

    frame = normalize_columns(df)
    _require(frame, DEAL_COLUMNS, "Deal history")
    if "created_at" in frame.columns:
        frame = frame.assign(_CREATED=parse_dates(frame["created_at"]))
        frame = frame.sort_values("_CREATED", ascending=False, kind="mergesort", na_position="last")

    deals: List[LearningData] = []
    for _, row in frame.iterrows():
        characteristics = ProjectCharacteristics(
            scale=(_opt_str(_row(row, "scale")) or "medium").lower(),
            urgency=(_opt_str(_row(row, "urgency")) or "medium").lower(),
            complexity=(_opt_str(_row(row, "complexity")) or "medium").lower(),
        )
        deals.append(
            LearningData(
                client_id=str(row["client_id"]).strip(),
                project_characteristics=characteristics,
                final_amount=float(row["final_amount"]),
                was_accepted=_to_bool(row["was_accepted"]),
                negotiation_rounds=int(_opt_float(_row(row, "negotiation_rounds")) or 1),
                time_to_decision=int(_opt_float(_row(row, "time_to_decision")) or 7),
                created_at=_opt_str(_row(row, "created_at")),
            )
        )
    return deals


def estimate_records_from_frame(df: pd.DataFrame) -> List[EstimateRecord]:
    frame = normalize_columns(df)
    _require(frame, ESTIMATE_COLUMNS, "Estimate table")
    return [
        EstimateRecord(
            status=str(row["status"]).strip().lower(),
            estimated_amount=float(row["estimated_amount"]),
            optimized_amount=_opt_float(_row(row, "optimized_amount")),
            confidence_score=_opt_float(_row(row, "confidence_score")),
        )
        for _, row in frame.iterrows()
    ]


def load_learning_data(path: Path) -> List[EstimateLearningData]:
    records = learning_data_from_frame(read_table(path))
    logger.debug("Loaded %s bid records from %s", len(records), path)
    return records


def load_price_biases(path: Path, client_id: Optional[str] = None) -> List[PriceBias]:
    biases = price_biases_from_frame(read_table(path))
    if client_id is not None:
        biases = [b for b in biases if b.client_id == client_id]
    return biases


def load_deal_history(path: Path, client_id: Optional[str] = None) -> List[LearningData]:
    deals = deal_history_from_frame(read_table(path))
    if client_id is not None:
        deals = [d for d in deals if d.client_id == client_id]
    return deals


def load_estimates(path: Path) -> List[EstimateRecord]:
    return estimate_records_from_frame(read_table(path))


__all__ = [
    "deal_history_from_frame",
    "estimate_records_from_frame",
    "learning_data_from_frame",
    "learning_data_to_frame",
    "load_deal_history",
    "load_estimates",
    "load_learning_data",
    "load_price_biases",
    "normalize_columns",
    "price_biases_from_frame",
    "read_table",
]
