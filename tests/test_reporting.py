from __future__ import annotations

import os
import stat
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from monthly_analyst.errors import OutputError
from monthly_analyst.models import RegressionMetrics
from monthly_analyst.reporting import (
    classify_trend,
    export_frame,
    format_metrics,
    render_chart,
    summarise_trend,
)


def _combined_frame() -> pd.DataFrame:
    history = pd.DataFrame(
        {
            "segment": ["train"] * 3 + ["test"] * 3,
            "month": pd.date_range("2023-10-01", periods=6, freq="MS"),
            "monthly_average": [1.5, 1.6, 1.7, 1.8, 1.75, 1.9],
            "predicted": [1.52, 1.61, 1.69, 1.78, 1.77, 1.85],
        }
    )
    future = pd.DataFrame(
        {
            "segment": ["future"] * 2,
            "month": pd.date_range("2024-04-01", periods=2, freq="MS"),
            "monthly_average": [np.nan, np.nan],
            "predicted": [1.88, 1.9],
        }
    )
    return pd.concat([history, future], ignore_index=True)


def test_format_metrics_fixed_order() -> None:
    metrics = {
        "train": RegressionMetrics(mae=0.1, mse=0.02, rmse=0.3),
        "test": RegressionMetrics(mae=0.4, mse=0.05, rmse=0.6),
    }
    assert format_metrics(metrics) == [
        "Training MAE: 0.1",
        "Training MSE: 0.02",
        "Training RMSE: 0.3",
        "Test MAE: 0.4",
        "Test MSE: 0.05",
        "Test RMSE: 0.6",
    ]


def test_export_frame_overwrites_without_leftovers(tmp_path: Path) -> None:
    path = tmp_path / "out" / "prices.csv"
    path.parent.mkdir()
    path.write_text("stale\n")

    export_frame(_combined_frame(), path)

    written = pd.read_csv(path)
    assert list(written.columns) == ["segment", "month", "monthly_average", "predicted"]
    assert written["month"].iloc[0] == "2023-10-01"
    assert len(written) == 8
    assert [p.name for p in path.parent.iterdir()] == ["prices.csv"]


def test_export_frame_uses_default_file_permissions(tmp_path: Path) -> None:
    umask = os.umask(0o022)
    try:
        path = export_frame(_combined_frame(), tmp_path / "prices.csv")
    finally:
        os.umask(umask)
    assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_export_frame_failure_leaves_no_file(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    with pytest.raises(OutputError):
        export_frame(_combined_frame(), blocker / "prices.csv")

    class Exploding(pd.DataFrame):
        def to_csv(self, *args, **kwargs):
            raise OSError("disk full")

    target = tmp_path / "prices.csv"
    with pytest.raises(OutputError, match="disk full"):
        export_frame(Exploding(_combined_frame()), target)
    assert list(tmp_path.iterdir()) == [blocker]


def test_render_chart_draws_series_segment_and_annotation(tmp_path: Path) -> None:
    path = tmp_path / "chart.png"
    fig = render_chart(_combined_frame(), test_rmse=0.123456, path=path, chart_start=pd.Timestamp("2024-01-01"))

    assert path.exists() and path.stat().st_size > 0
    ax = fig.axes[0]
    assert len(ax.get_lines()) == 4
    assert [text.get_text() for text in ax.texts] == ["Test RMSE: 0.1235"]
    assert ax.get_title() == "Monthly Average Price of Cheese for 2024"
    actual = ax.get_lines()[0]
    assert len(actual.get_xdata()) == 3
    assert ax.get_lines()[3].get_linestyle() == "--"


def test_summarise_trend_and_classification() -> None:
    future = pd.DataFrame(
        {"month": pd.date_range("2024-07-01", periods=3, freq="MS"), "predicted": [2.0, 2.05, 2.1]}
    )
    summary = summarise_trend(future, RegressionMetrics(mae=0.1, mse=0.01, rmse=0.1))

    assert summary["first_month"] == "2024-07"
    assert summary["last_month"] == "2024-09"
    assert summary["absolute_change"] == pytest.approx(0.1)
    assert summary["percent_change"] == pytest.approx(0.05)
    assert summary["estimated_slope_per_month"] == pytest.approx(0.05)
    assert summary["trend_direction"] == "upward"
    assert summary["test_rmse"] == 0.1

    assert classify_trend(-0.03) == "downward"
    assert classify_trend(0.01) == "stable"
    assert classify_trend(float("nan")) == "undetermined"
