from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from typing import Callable, List, Optional

import pandas as pd
import pytest

from bidlearn.models import EstimateLearningData, LearningData, ProjectCharacteristics


@pytest.fixture
def make_record() -> Callable[..., EstimateLearningData]:
    def _create(
        *,
        contractor: str = "Acme",
        win: bool = True,
        submitted: float = 1_000_000.0,
        won: Optional[float] = None,
        season: Optional[str] = "spring",
        project_type: str = "renovation",
        submission_date: str = "2024-04-01",
        market_condition: Optional[str] = None,
    ) -> EstimateLearningData:
        won_amount = won if won is not None else (submitted if win else None)
        return EstimateLearningData(
            contractor_name=contractor,
            project_type=project_type,
            submitted_amount=submitted,
            win_status=win,
            submission_date=submission_date,
            won_amount=won_amount,
            season=season,
            market_condition=market_condition,
        )

    return _create


@pytest.fixture
def make_series(make_record) -> Callable[..., List[EstimateLearningData]]:
    """Build a dated series from a list of win/loss outcomes."""

    def _create(outcomes: List[bool], *, start: date = date(2023, 1, 2), **kwargs) -> List[EstimateLearningData]:
        return [
            make_record(win=won, submission_date=(start + timedelta(days=7 * i)).isoformat(), **kwargs)
            for i, won in enumerate(outcomes)
        ]

    return _create


@pytest.fixture
def make_deal() -> Callable[..., LearningData]:
    def _create(
        accepted: bool,
        *,
        client_id: str = "client-1",
        urgency: str = "medium",
        scale: str = "medium",
        final_amount: float = 500_000.0,
        created_at: Optional[str] = None,
    ) -> LearningData:
        return LearningData(
            client_id=client_id,
            project_characteristics=ProjectCharacteristics(scale=scale, urgency=urgency),
            final_amount=final_amount,
            was_accepted=accepted,
            created_at=created_at,
        )

    return _create


@pytest.fixture
def bid_history_csv(tmp_path: Path) -> Path:
    rows = []
    for i in range(12):
        won = i % 3 != 0
        rows.append(
            {
                "Contractor Name": "Acme",
                "Project Type": "renovation",
                "Submitted Amount": 1_000_000,
                "Won Amount": 950_000 if won else None,
                "Win Status": "yes" if won else "no",
                "Submission Date": f"2023-{(i % 12) + 1:02d}-15",
            }
        )
    rows.append(
        {
            "Contractor Name": "Other Co",
            "Project Type": "repair",
            "Submitted Amount": 200_000,
            "Won Amount": None,
            "Win Status": "no",
            "Submission Date": "2023-05-01",
        }
    )
    path = tmp_path / "history.csv"
    pd.DataFrame(rows).to_csv(path, index=False)
    return path
