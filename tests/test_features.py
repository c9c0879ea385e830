from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from monthly_analyst.errors import DataQualityError
from monthly_analyst.features import (
    ConstantReplayStrategy,
    LagState,
    SequentialFeedbackStrategy,
    forecast_horizon,
    make_strategy,
    step,
)


def test_lag_features_for_six_month_series(six_month_series: pd.DataFrame) -> None:
    features = SequentialFeedbackStrategy().build_features(six_month_series)

    assert features["month"].tolist() == list(pd.date_range("2024-04-01", periods=3, freq="MS"))
    april = features.iloc[0]
    assert (april["lag_1"], april["lag_2"], april["lag_3"]) == (11.0, 12.0, 10.0)
    assert (april["month_num"], april["year"]) == (4, 2024)
    assert list(features.columns) == ["month", "monthly_average", "lag_1", "lag_2", "lag_3", "month_num", "year"]


def test_lag_k_equals_value_k_rows_earlier() -> None:
    values = np.linspace(1.0, 3.0, 30) ** 2
    monthly = pd.DataFrame({"month": pd.date_range("2021-01-01", periods=30, freq="MS"), "monthly_average": values})

    features = SequentialFeedbackStrategy().build_features(monthly)

    assert len(features) == 27
    for offset, row in enumerate(features.itertuples()):
        i = offset + 3
        assert row.lag_1 == values[i - 1]
        assert row.lag_2 == values[i - 2]
        assert row.lag_3 == values[i - 3]


def test_lags_never_span_a_missing_month() -> None:
    months = pd.date_range("2024-01-01", periods=8, freq="MS").delete(3)  # April absent
    monthly = pd.DataFrame({"month": months, "monthly_average": np.arange(1.0, 8.0)})

    features = SequentialFeedbackStrategy().build_features(monthly)

    # May, June and July would each need April as one of their three lags.
    assert features["month"].tolist() == [pd.Timestamp("2024-08-01")]
    assert features.iloc[0][["lag_1", "lag_2", "lag_3"]].tolist() == [6.0, 5.0, 4.0]


def test_lag_count_is_configurable(six_month_series: pd.DataFrame) -> None:
    strategy = SequentialFeedbackStrategy(lag_count=1)
    features = strategy.build_features(six_month_series)
    assert strategy.feature_columns == ["lag_1", "month_num", "year"]
    assert len(features) == 5
    with pytest.raises(ValueError):
        SequentialFeedbackStrategy(lag_count=0)


def test_lag_state_shift_drops_oldest() -> None:
    state = LagState(values=(15.0, 14.0, 13.0))
    assert state.shift(16.0).values == (16.0, 15.0, 14.0)
    assert state.values == (15.0, 14.0, 13.0)
    assert state.as_features() == {"lag_1": 15.0, "lag_2": 14.0, "lag_3": 13.0}


def test_step_predicts_and_advances(averaging_model) -> None:
    strategy = SequentialFeedbackStrategy()
    y_hat, next_state, row = step(strategy, averaging_model, LagState((15.0, 14.0, 13.0)), pd.Timestamp("2024-07-01"))

    assert y_hat == pytest.approx(14.0)
    assert next_state.values == (14.0, 15.0, 14.0)
    assert row == {"lag_1": 15.0, "lag_2": 14.0, "lag_3": 13.0, "month_num": 7, "year": 2024}


def test_sequential_feedback_two_step_scenario(averaging_model) -> None:
    history = pd.DataFrame(
        {"month": pd.date_range("2024-04-01", periods=3, freq="MS"), "monthly_average": [13.0, 14.0, 15.0]}
    )

    future = forecast_horizon(SequentialFeedbackStrategy(), averaging_model, history, pd.Timestamp("2024-07-01"), horizon=2)

    assert future["predicted"].tolist() == pytest.approx([14.0, 43.0 / 3.0])
    assert future.iloc[1][["lag_1", "lag_2", "lag_3"]].tolist() == pytest.approx([14.0, 15.0, 14.0])
    assert future["month"].tolist() == [pd.Timestamp("2024-07-01"), pd.Timestamp("2024-08-01")]
    assert future["monthly_average"].isna().all()


def test_forecast_is_deterministic(six_month_series: pd.DataFrame, averaging_model) -> None:
    strategy = SequentialFeedbackStrategy()
    first = forecast_horizon(strategy, averaging_model, six_month_series, pd.Timestamp("2024-07-01"))
    second = forecast_horizon(strategy, averaging_model, six_month_series, pd.Timestamp("2024-07-01"))

    assert len(first) == 6
    assert averaging_model.calls == 12
    pd.testing.assert_frame_equal(first, second)
    assert first["month"].iloc[-1] == pd.Timestamp("2024-12-01")
    assert first[["month_num", "year"]].iloc[-1].tolist() == [12, 2024]


def test_seed_requires_contiguous_history() -> None:
    strategy = SequentialFeedbackStrategy()
    short = pd.DataFrame({"month": pd.date_range("2024-01-01", periods=2, freq="MS"), "monthly_average": [1.0, 2.0]})
    with pytest.raises(DataQualityError):
        strategy.seed(short)

    gapped = pd.DataFrame(
        {"month": pd.to_datetime(["2024-01-01", "2024-03-01", "2024-04-01"]), "monthly_average": [1.0, 2.0, 3.0]}
    )
    with pytest.raises(DataQualityError):
        strategy.seed(gapped)


def test_constant_replay_repeats_last_known_value(six_month_series: pd.DataFrame) -> None:
    strategy = ConstantReplayStrategy()
    features = strategy.build_features(six_month_series)
    assert features["value_input"].tolist() == features["monthly_average"].tolist()

    class Doubling:
        def predict(self, X):
            return np.asarray(X, dtype=float)[:, 0] * 2

    future = forecast_horizon(strategy, Doubling(), six_month_series, pd.Timestamp("2024-07-01"))
    assert future["value_input"].tolist() == [15.0] * 6
    assert future["predicted"].tolist() == [30.0] * 6
    assert list(future.columns) == ["month", "monthly_average", "value_input", "predicted"]


def test_make_strategy_resolves_names() -> None:
    assert isinstance(make_strategy("sequential_feedback", lag_count=2), SequentialFeedbackStrategy)
    assert isinstance(make_strategy("constant_replay"), ConstantReplayStrategy)
    with pytest.raises(ValueError):
        make_strategy("seasonal_naive")


def test_forecast_horizon_must_be_positive(six_month_series: pd.DataFrame, averaging_model) -> None:
    with pytest.raises(ValueError):
        forecast_horizon(SequentialFeedbackStrategy(), averaging_model, six_month_series, pd.Timestamp("2024-07-01"), 0)
