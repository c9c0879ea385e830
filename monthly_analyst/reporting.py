"""
Console summary, CSV export and chart rendering for a finished forecast run.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from .errors import OutputError
from .features import PREDICTION_COLUMN, TARGET_COLUMN
from .models import RegressionMetrics

DEFAULT_TITLE = "Monthly Average Price of Cheese"
DEFAULT_YLABEL = "Price per Pound"
TREND_THRESHOLD = 0.02  # 2% change over the horizon counts as material.

METRIC_SUBSETS = (("train", "Training"), ("test", "Test"))


def format_metrics(metrics: Dict[str, RegressionMetrics]) -> List[str]:
    lines: List[str] = []
    for key, label in METRIC_SUBSETS:
        scores = metrics[key]
        lines.append(f"{label} MAE: {scores.mae}")
        lines.append(f"{label} MSE: {scores.mse}")
        lines.append(f"{label} RMSE: {scores.rmse}")
    return lines


@contextmanager
def atomic_destination(path: Path) -> Iterator[Path]:
    """
    Yield a temporary sibling of ``path`` and move it into place only once writing succeeded.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=path.parent)
        os.close(handle)
    except OSError as exc:
        raise OutputError(f"Cannot write to {path}: {exc}", details={"path": str(path)}) from exc

    temp_path = Path(temp_name)
    try:
        yield temp_path
        # mkstemp creates owner-only files; match what a plain open() would produce.
        umask = os.umask(0)
        os.umask(umask)
        os.chmod(temp_path, 0o666 & ~umask)
        os.replace(temp_path, path)
    except OSError as exc:
        raise OutputError(f"Cannot write to {path}: {exc}", details={"path": str(path)}) from exc
    finally:
        if temp_path.exists():
            temp_path.unlink()


def export_frame(frame: pd.DataFrame, path: Path) -> Path:
    with atomic_destination(path) as temp_path:
        frame.to_csv(temp_path, index=False, date_format="%Y-%m-%d")
    return Path(path)


def render_chart(
    frame: pd.DataFrame,
    test_rmse: float,
    path: Path,
    chart_start: pd.Timestamp,
    title: str = DEFAULT_TITLE,
    ylabel: str = DEFAULT_YLABEL,
) -> Figure:
    """
    Plot actual, fitted and future values from ``chart_start`` onwards and save the figure.
    """
    chart_start = pd.Timestamp(chart_start)
    window = frame[frame["month"] >= chart_start].sort_values("month")
    history = window[window["segment"] != "future"]
    future = window[window["segment"] == "future"]

    fig = Figure(figsize=(10, 6))
    ax = fig.add_subplot(1, 1, 1)
    ax.plot(history["month"], history[TARGET_COLUMN], color="blue", label="Actual")
    ax.plot(history["month"], history[PREDICTION_COLUMN], color="red", label="Predicted")
    ax.plot(future["month"], future[PREDICTION_COLUMN], color="green", label="Future Predicted")

    if not history.empty and not future.empty:
        last, first = history.iloc[-1], future.iloc[0]
        ax.plot(
            [last["month"], first["month"]],
            [last[PREDICTION_COLUMN], first[PREDICTION_COLUMN]],
            color="black",
            linestyle="--",
        )

    peak = window[TARGET_COLUMN].max()
    if not np.isfinite(peak):
        peak = window[PREDICTION_COLUMN].max()
    ax.text(
        chart_start + pd.Timedelta(days=14),
        peak,
        f"Test RMSE: {round(test_rmse, 4)}",
        color="red",
        ha="left",
    )

    ax.set_title(f"{title} for {chart_start.year}")
    ax.set_xlabel("Month")
    ax.set_ylabel(ylabel)
    ax.legend(title="Legend")
    fig.autofmt_xdate()
    fig.tight_layout()

    with atomic_destination(path) as temp_path:
        fig.savefig(temp_path, dpi=160)
    return fig


def classify_trend(percent_change: float, threshold: float = TREND_THRESHOLD) -> str:
    if not np.isfinite(percent_change):
        return "undetermined"
    if percent_change > threshold:
        return "upward"
    if percent_change < -threshold:
        return "downward"
    return "stable"


def summarise_trend(future: pd.DataFrame, test_metrics: Optional[RegressionMetrics] = None) -> Dict[str, Any]:
    series = future[PREDICTION_COLUMN].astype(float)
    if series.empty:
        raise ValueError("Cannot summarise an empty forecast.")

    start_value = float(series.iloc[0])
    end_value = float(series.iloc[-1])
    absolute_change = end_value - start_value
    percent_change = (absolute_change / start_value) if start_value != 0 else np.nan

    if len(series) > 1:
        horizon_index = np.arange(1, len(series) + 1)
        slope, _ = np.polyfit(horizon_index, series.to_numpy(), deg=1)
    else:
        slope = 0.0

    return {
        "first_month": pd.Timestamp(future["month"].iloc[0]).strftime("%Y-%m"),
        "last_month": pd.Timestamp(future["month"].iloc[-1]).strftime("%Y-%m"),
        "starting_price": start_value,
        "ending_price": end_value,
        "absolute_change": absolute_change,
        "percent_change": float(percent_change),
        "estimated_slope_per_month": float(slope),
        "forecast_volatility": float(np.std(series)),
        "trend_direction": classify_trend(percent_change),
        "test_rmse": test_metrics.rmse if test_metrics is not None else np.nan,
    }
