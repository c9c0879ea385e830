"""
Feature engineering and recursive forecasting strategies for the monthly series.

Two strategies are available and one is selected per run:

* ``sequential_feedback`` uses the previous months' averages as lag features plus
  calendar features, and feeds each prediction back in as the next step's lag.
* ``constant_replay`` fits the average against itself and replays the last known
  value as the input for every future month.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd

from .calendar import advance_months, month_range, month_start
from .errors import DataQualityError

TARGET_COLUMN = "monthly_average"
PREDICTION_COLUMN = "predicted"
CALENDAR_COLUMNS = ("month_num", "year")


def lag_column(lag: int) -> str:
    return f"lag_{lag}"


def calendar_features(month: pd.Timestamp) -> Dict[str, int]:
    return {"month_num": int(month.month), "year": int(month.year)}


@dataclass(frozen=True)
class LagState:
    """Most recent value first: ``values[0]`` is lag 1."""

    values: Tuple[float, ...]

    def shift(self, prediction: float) -> "LagState":
        return LagState(values=(float(prediction),) + self.values[:-1])

    def as_features(self) -> Dict[str, float]:
        return {lag_column(lag): value for lag, value in enumerate(self.values, start=1)}


class ForecastStrategy:
    """
    Describes which features a model sees and how the forecast state evolves.

    ``feature_row`` and ``advance`` are pure: they never mutate the state they receive.
    """

    name = ""

    @property
    def feature_columns(self) -> List[str]:
        raise NotImplementedError

    def build_features(self, monthly: pd.DataFrame) -> pd.DataFrame:
        raise NotImplementedError

    def seed(self, history: pd.DataFrame) -> Any:
        raise NotImplementedError

    def feature_row(self, state: Any, month: pd.Timestamp) -> Dict[str, float]:
        raise NotImplementedError

    def advance(self, state: Any, prediction: float) -> Any:
        raise NotImplementedError


class SequentialFeedbackStrategy(ForecastStrategy):
    name = "sequential_feedback"

    def __init__(self, lag_count: int = 3) -> None:
        if lag_count <= 0:
            raise ValueError("lag_count must be a positive integer.")
        self.lag_count = lag_count

    @property
    def lag_columns(self) -> List[str]:
        return [lag_column(lag) for lag in range(1, self.lag_count + 1)]

    @property
    def feature_columns(self) -> List[str]:
        return [*self.lag_columns, *CALENDAR_COLUMNS]

    def build_features(self, monthly: pd.DataFrame) -> pd.DataFrame:
        """
        Attach lag and calendar features, dropping rows without a full lag history.

        Lags are taken by calendar distance; on a contiguous series this equals the
        positional offset, while a missing month leaves the lags that would span it undefined.
        """
        columns = ["month", TARGET_COLUMN, *self.feature_columns]
        if monthly.empty:
            return pd.DataFrame(columns=columns)

        series = monthly.set_index("month")[TARGET_COLUMN].sort_index()
        contiguous = series.reindex(month_range(series.index.min(), series.index.max()))

        frame = pd.DataFrame({TARGET_COLUMN: contiguous})
        for lag in range(1, self.lag_count + 1):
            frame[lag_column(lag)] = contiguous.shift(lag)
        frame = frame.loc[series.index].rename_axis("month").reset_index()

        frame["month_num"] = frame["month"].dt.month
        frame["year"] = frame["month"].dt.year
        frame = frame.dropna(subset=[TARGET_COLUMN, *self.lag_columns])
        return frame[columns].reset_index(drop=True)

    def seed(self, history: pd.DataFrame) -> LagState:
        known = history.dropna(subset=[TARGET_COLUMN]).sort_values("month")
        if len(known) < self.lag_count:
            raise DataQualityError(
                f"Need {self.lag_count} known months to seed the forecast, found {len(known)}."
            )
        recent = known.iloc[-self.lag_count:]
        expected = month_range(recent["month"].iloc[0], recent["month"].iloc[-1])
        if len(expected) != self.lag_count:
            raise DataQualityError(
                "The most recent known months are not contiguous; cannot seed lag features.",
                details={"months": [m.strftime("%Y-%m") for m in recent["month"]]},
            )
        values = recent[TARGET_COLUMN].astype(float).tolist()
        return LagState(values=tuple(reversed(values)))

    def feature_row(self, state: LagState, month: pd.Timestamp) -> Dict[str, float]:
        row: Dict[str, float] = dict(state.as_features())
        row.update(calendar_features(month))
        return row

    def advance(self, state: LagState, prediction: float) -> LagState:
        return state.shift(prediction)


class ConstantReplayStrategy(ForecastStrategy):
    name = "constant_replay"
    input_column = "value_input"

    @property
    def feature_columns(self) -> List[str]:
        return [self.input_column]

    def build_features(self, monthly: pd.DataFrame) -> pd.DataFrame:
        frame = monthly[["month", TARGET_COLUMN]].dropna(subset=[TARGET_COLUMN]).copy()
        frame[self.input_column] = frame[TARGET_COLUMN]
        return frame.sort_values("month").reset_index(drop=True)

    def seed(self, history: pd.DataFrame) -> float:
        known = history.dropna(subset=[TARGET_COLUMN]).sort_values("month")
        if known.empty:
            raise DataQualityError("Need at least one known month to seed the forecast.")
        return float(known[TARGET_COLUMN].iloc[-1])

    def feature_row(self, state: float, month: pd.Timestamp) -> Dict[str, float]:
        return {self.input_column: state}

    def advance(self, state: float, prediction: float) -> float:
        return state


STRATEGIES = {
    SequentialFeedbackStrategy.name: SequentialFeedbackStrategy,
    ConstantReplayStrategy.name: ConstantReplayStrategy,
}


def make_strategy(name: str, lag_count: int = 3) -> ForecastStrategy:
    if name == SequentialFeedbackStrategy.name:
        return SequentialFeedbackStrategy(lag_count=lag_count)
    if name == ConstantReplayStrategy.name:
        return ConstantReplayStrategy()
    raise ValueError(f"Unknown forecasting strategy '{name}'; choose from {', '.join(STRATEGIES)}.")


def step(strategy: ForecastStrategy, model, state: Any, month: pd.Timestamp) -> Tuple[float, Any, Dict[str, float]]:
    """
    Predict one month from ``state`` and return the prediction, the next state and the inputs used.
    """
    row = strategy.feature_row(state, month)
    ordered_row = [row[col] for col in strategy.feature_columns]
    X_row = np.asarray(ordered_row, dtype=float).reshape(1, -1)
    y_hat = float(np.asarray(model.predict(X_row)).ravel()[0])
    return y_hat, strategy.advance(state, y_hat), row


def forecast_horizon(
    strategy: ForecastStrategy,
    model,
    history: pd.DataFrame,
    start_month: pd.Timestamp,
    horizon: int = 6,
) -> pd.DataFrame:
    """
    Forecast ``horizon`` consecutive months starting at ``start_month``.

    Each step depends on the state produced by the previous one, so steps run strictly in order.
    """
    if horizon <= 0:
        raise ValueError("horizon must be a positive integer.")

    start = month_start(start_month)
    months = [start, *advance_months(start, horizon - 1)]
    state = strategy.seed(history)

    records: List[Dict[str, Any]] = []
    for month in months:
        y_hat, state, row = step(strategy, model, state, month)
        record: Dict[str, Any] = {"month": month, TARGET_COLUMN: np.nan}
        record.update(row)
        record[PREDICTION_COLUMN] = y_hat
        records.append(record)

    columns = ["month", TARGET_COLUMN, *strategy.feature_columns, PREDICTION_COLUMN]
    return pd.DataFrame.from_records(records, columns=columns)
