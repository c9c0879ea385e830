"""
High-level orchestration for the monthly price forecasting pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .calendar import advance_months
from .data import DEFAULT_DATE_COLUMN, DEFAULT_VALUE_COLUMN, GAP_POLICIES, load_monthly_series
from .errors import DataQualityError
from .features import PREDICTION_COLUMN, TARGET_COLUMN, STRATEGIES, forecast_horizon, make_strategy
from .models import DEFAULT_MODEL, ModelArtifact, RegressionMetrics, compute_metrics, default_candidates, fit_model
from .reporting import DEFAULT_TITLE, DEFAULT_YLABEL, export_frame, render_chart, summarise_trend
from .split import DEFAULT_TEST_END, DEFAULT_TRAIN_CUTOFF, split_by_cutoff


@dataclass
class ForecastResult:
    frame: pd.DataFrame
    train: pd.DataFrame
    test: pd.DataFrame
    future: pd.DataFrame
    metrics: Dict[str, RegressionMetrics]
    artifact: ModelArtifact
    trend_summary: Dict[str, Any]
    gaps: List[pd.Timestamp]

    def save(self, output_path: Path) -> Path:
        return export_frame(self.frame, output_path)


class MonthlyForecastPipeline:
    """
    Reads daily price records, aggregates them to months, fits a gradient-boosted
    regressor on the months before the cutoff, scores the test window and forecasts
    the months that follow it.
    """

    def __init__(
        self,
        data_path: Path = Path("data/cheese.xls"),
        output_path: Optional[Path] = Path("out/xgboost_avg_predicted_prices.csv"),
        chart_path: Optional[Path] = Path("out/xgboost_avg_predicted_prices.png"),
        date_column: str = DEFAULT_DATE_COLUMN,
        value_column: str = DEFAULT_VALUE_COLUMN,
        train_cutoff=DEFAULT_TRAIN_CUTOFF,
        test_end=DEFAULT_TEST_END,
        horizon: int = 6,
        strategy: str = "sequential_feedback",
        model: str = DEFAULT_MODEL,
        gap_policy: str = "drop",
        lag_count: int = 3,
        valid_range: Optional[Tuple[float, float]] = None,
        random_state: int = 42,
        chart_title: str = DEFAULT_TITLE,
        chart_ylabel: str = DEFAULT_YLABEL,
        verbose: bool = True,
    ) -> None:
        self.data_path = Path(data_path)
        self.output_path = Path(output_path) if output_path else None
        self.chart_path = Path(chart_path) if chart_path else None
        self.date_column = date_column
        self.value_column = value_column
        self.train_cutoff = pd.Timestamp(train_cutoff)
        self.test_end = pd.Timestamp(test_end)
        self.horizon = horizon
        self.model = model
        self.gap_policy = gap_policy
        self.valid_range = valid_range
        self.random_state = random_state
        self.chart_title = chart_title
        self.chart_ylabel = chart_ylabel
        self.verbose = verbose

        if strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {', '.join(STRATEGIES)}")
        if model not in default_candidates(random_state=random_state):
            raise ValueError(f"model must be one of {', '.join(default_candidates())}")
        if gap_policy not in GAP_POLICIES:
            raise ValueError(f"gap_policy must be one of {', '.join(GAP_POLICIES)}")
        if self.horizon <= 0:
            raise ValueError("horizon must be a positive integer.")
        if self.test_end < self.train_cutoff:
            raise ValueError("test_end must not precede train_cutoff.")
        self.strategy = make_strategy(strategy, lag_count=lag_count)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"[pipeline] {message}", flush=True)

    def run(self) -> ForecastResult:
        self._log(f"Loading data from {self.data_path} ...")
        series = load_monthly_series(
            self.data_path,
            date_column=self.date_column,
            value_column=self.value_column,
            valid_range=self.valid_range,
            gap_policy=self.gap_policy,
        )
        monthly = series.monthly
        self._log(f"Aggregated {len(series.records)} records into {len(monthly)} months.")

        self._log(f"Engineering features for strategy '{self.strategy.name}' ...")
        features = self.strategy.build_features(monthly)
        split = split_by_cutoff(features, train_cutoff=self.train_cutoff, test_end=self.test_end)
        if split.test.empty:
            raise DataQualityError(
                f"No months with complete features between {self.train_cutoff.date()} and {self.test_end.date()}."
            )

        feature_columns = self.strategy.feature_columns
        self._log(f"Training '{self.model}' on {len(split.train)} months ...")
        artifact = fit_model(
            split.train[feature_columns].to_numpy(dtype=float),
            split.train[TARGET_COLUMN].to_numpy(dtype=float),
            feature_names=feature_columns,
            name=self.model,
            random_state=self.random_state,
        )

        train = split.train.assign(**{PREDICTION_COLUMN: artifact.predict(split.train[feature_columns])})
        test = split.test.assign(**{PREDICTION_COLUMN: artifact.predict(split.test[feature_columns])})
        metrics = {
            "train": compute_metrics(train[TARGET_COLUMN], train[PREDICTION_COLUMN]),
            "test": compute_metrics(test[TARGET_COLUMN], test[PREDICTION_COLUMN]),
        }

        last_test_month = test["month"].iloc[-1]
        start_month = advance_months(last_test_month, 1)[0]
        self._log(f"Forecasting {self.horizon} months from {start_month:%Y-%m} ...")
        history = monthly[monthly["month"] <= last_test_month]
        future = forecast_horizon(self.strategy, artifact, history, start_month=start_month, horizon=self.horizon)

        frame = self._combine(train, test, future)
        result = ForecastResult(
            frame=frame,
            train=train,
            test=test,
            future=future,
            metrics=metrics,
            artifact=artifact,
            trend_summary=summarise_trend(future, test_metrics=metrics["test"]),
            gaps=series.gaps,
        )

        if self.output_path:
            result.save(self.output_path)
            self._log(f"Results written to {self.output_path.resolve()}")
        if self.chart_path:
            render_chart(
                frame,
                test_rmse=metrics["test"].rmse,
                path=self.chart_path,
                chart_start=test["month"].iloc[0],
                title=self.chart_title,
                ylabel=self.chart_ylabel,
            )
            self._log(f"Chart written to {self.chart_path.resolve()}")

        return result

    # Internal ------------------------------------------------------------------------

    def _combine(self, train: pd.DataFrame, test: pd.DataFrame, future: pd.DataFrame) -> pd.DataFrame:
        columns = ["segment", "month", TARGET_COLUMN, *self.strategy.feature_columns, PREDICTION_COLUMN]
        parts = [
            part.assign(segment=segment)[columns]
            for segment, part in (("train", train), ("test", test), ("future", future))
            if not part.empty
        ]
        return pd.concat(parts, ignore_index=True)
