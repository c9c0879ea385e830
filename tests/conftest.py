from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def make_daily_prices(start: str = "2020-01-01", end: str = "2024-06-30") -> pd.DataFrame:
    dates = pd.date_range(start, end, freq="D")
    position = np.arange(len(dates), dtype=float)
    values = 1.6 + 0.0004 * position + 0.15 * np.sin(2 * np.pi * position / 365.0)
    return pd.DataFrame({"DATE": dates, "BLOCK AVERAGE": np.round(values, 4)})


class AveragingModel:
    """Predicts the mean of the first ``width`` feature columns."""

    def __init__(self, width: int = 3) -> None:
        self.width = width
        self.calls = 0

    def predict(self, X):
        self.calls += 1
        X = np.asarray(X, dtype=float)
        return X[:, : self.width].mean(axis=1)


@pytest.fixture()
def daily_prices() -> pd.DataFrame:
    return make_daily_prices()


@pytest.fixture()
def daily_csv(tmp_path: Path, daily_prices: pd.DataFrame) -> Path:
    path = tmp_path / "cheese.csv"
    daily_prices.to_csv(path, index=False)
    return path


@pytest.fixture()
def six_month_series() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "month": pd.date_range("2024-01-01", periods=6, freq="MS"),
            "monthly_average": [10.0, 12.0, 11.0, 13.0, 14.0, 15.0],
        }
    )


@pytest.fixture()
def averaging_model() -> AveragingModel:
    return AveragingModel()
