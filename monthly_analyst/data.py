"""
Data ingestion, cleansing and monthly aggregation for the daily price records.
"""

from __future__ import annotations

import sys
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from xlrd import XLRDError
from xlrd.compdoc import CompDocError

from .calendar import missing_months, month_range, month_start
from .errors import DataQualityError, InputError

DEFAULT_DATE_COLUMN = "DATE"
DEFAULT_VALUE_COLUMN = "BLOCK AVERAGE"

EXCEL_SUFFIXES = (".xls", ".xlsx", ".xlsm")
GAP_POLICIES = ("drop", "interpolate", "raise")


@dataclass
class MonthlySeries:
    """Cleaned daily records, their monthly aggregate and any detected month gaps."""

    records: pd.DataFrame
    monthly: pd.DataFrame
    gaps: List[pd.Timestamp] = field(default_factory=list)


def _warn(message: str) -> None:
    print(f"[WARN] {message}", file=sys.stderr, flush=True)


def _validate_columns(df: pd.DataFrame, required: Iterable[str]) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise InputError(
            f"Missing required columns: {', '.join(missing)}",
            details={"missing": missing, "available": [str(c) for c in df.columns]},
        )


def load_raw_data(path: Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise InputError(f"Input path does not exist: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        reader = pd.read_excel
    elif suffix == ".csv":
        reader = pd.read_csv
    else:
        raise InputError(f"Unsupported input format '{suffix}' for {path}; expected a spreadsheet or CSV.")

    try:
        return reader(path)
    except (OSError, ValueError, zipfile.BadZipFile, XLRDError, CompDocError) as exc:
        raise InputError(f"Could not read {path}: {exc}") from exc


def clean_price_records(
    df: pd.DataFrame,
    date_column: str = DEFAULT_DATE_COLUMN,
    value_column: str = DEFAULT_VALUE_COLUMN,
    valid_range: Optional[Tuple[float, float]] = None,
) -> pd.DataFrame:
    """
    Reduce the raw sheet to canonical ``date`` / ``value`` columns.

    Unparseable values become missing; rows without a parseable date are dropped.
    When ``valid_range`` is given, observations outside it are treated as missing.
    """
    _validate_columns(df, [date_column, value_column])

    working = pd.DataFrame(
        {
            "date": pd.to_datetime(df[date_column], errors="coerce"),
            "value": pd.to_numeric(df[value_column], errors="coerce").astype(float),
        }
    )

    undated = int(working["date"].isna().sum())
    if undated:
        _warn(f"Dropping {undated} row(s) with an unparseable '{date_column}'.")
    working = working.dropna(subset=["date"])
    if working.empty:
        raise InputError(f"No rows with a parseable '{date_column}' value.")

    working.loc[~np.isfinite(working["value"]), "value"] = np.nan

    if valid_range is not None:
        low, high = valid_range
        if low > high:
            raise ValueError("valid_range lower bound must not exceed the upper bound.")
        out_of_range = (working["value"] < low) | (working["value"] > high)
        flagged = int(out_of_range.sum())
        if flagged:
            _warn(f"Treating {flagged} observation(s) outside [{low}, {high}] as missing.")
            working.loc[out_of_range, "value"] = np.nan

    return working.sort_values("date", kind="mergesort").reset_index(drop=True)


def aggregate_monthly(records: pd.DataFrame) -> pd.DataFrame:
    """
    Average the finite observations of each calendar month.

    Months with no finite observation produce no row at all.
    """
    _validate_columns(records, ["date", "value"])

    finite = records[np.isfinite(records["value"].astype(float))]
    finite = finite.assign(month=month_start(finite["date"]))
    monthly = (
        finite.groupby("month", as_index=False)["value"]
        .mean()
        .rename(columns={"value": "monthly_average"})
    )
    monthly = monthly[np.isfinite(monthly["monthly_average"])]
    return monthly.sort_values("month").reset_index(drop=True)


def resolve_month_gaps(monthly: pd.DataFrame, policy: str = "drop") -> Tuple[pd.DataFrame, List[pd.Timestamp]]:
    """
    Detect calendar months missing from ``monthly`` and apply ``policy`` to them.

    ``drop`` keeps the series as is (calendar-aware lags discard windows touching a gap),
    ``interpolate`` inserts linearly interpolated months and ``raise`` rejects the series.
    """
    if policy not in GAP_POLICIES:
        raise ValueError(f"gap policy must be one of {', '.join(GAP_POLICIES)}")

    gaps = missing_months(monthly["month"])
    if not gaps:
        return monthly, gaps

    labels = [month.strftime("%Y-%m") for month in gaps]
    if policy == "raise":
        raise DataQualityError(
            f"Monthly series is missing {len(gaps)} month(s): {', '.join(labels)}",
            details={"missing_months": labels},
        )

    if policy == "interpolate":
        _warn(f"Interpolating {len(gaps)} missing month(s): {', '.join(labels)}")
        full_index = month_range(monthly["month"].min(), monthly["month"].max())
        filled = (
            monthly.set_index("month")
            .reindex(full_index)
            .interpolate(method="linear")
            .rename_axis("month")
            .reset_index()
        )
        return filled, gaps

    _warn(f"Monthly series is missing {len(gaps)} month(s): {', '.join(labels)}; lag windows spanning it are dropped.")
    return monthly, gaps


def load_monthly_series(
    path: Path,
    date_column: str = DEFAULT_DATE_COLUMN,
    value_column: str = DEFAULT_VALUE_COLUMN,
    valid_range: Optional[Tuple[float, float]] = None,
    gap_policy: str = "drop",
) -> MonthlySeries:
    raw = load_raw_data(path)
    records = clean_price_records(raw, date_column=date_column, value_column=value_column, valid_range=valid_range)
    monthly = aggregate_monthly(records)
    if monthly.empty:
        raise InputError(f"No finite '{value_column}' observations in {path}.")
    monthly, gaps = resolve_month_gaps(monthly, policy=gap_policy)
    return MonthlySeries(records=records, monthly=monthly, gaps=gaps)
