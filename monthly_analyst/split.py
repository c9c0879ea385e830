"""
Date-cutoff partitioning of the engineered monthly frame.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from .errors import InputError

DEFAULT_TRAIN_CUTOFF = pd.Timestamp("2024-01-01")
DEFAULT_TEST_END = pd.Timestamp("2024-06-01")


@dataclass
class TrainTestSplit:
    train: pd.DataFrame
    test: pd.DataFrame
    # Months after the test window; part of neither subset.
    holdout: pd.DataFrame


def split_by_cutoff(
    frame: pd.DataFrame,
    train_cutoff: pd.Timestamp = DEFAULT_TRAIN_CUTOFF,
    test_end: pd.Timestamp = DEFAULT_TEST_END,
) -> TrainTestSplit:
    """
    Train on months strictly before ``train_cutoff``; test on ``train_cutoff <= month <= test_end``.
    """
    train_cutoff = pd.Timestamp(train_cutoff)
    test_end = pd.Timestamp(test_end)
    if test_end < train_cutoff:
        raise InputError(f"test_end ({test_end.date()}) precedes train_cutoff ({train_cutoff.date()}).")

    ordered = frame.sort_values("month").reset_index(drop=True)
    train_mask = ordered["month"] < train_cutoff
    test_mask = (ordered["month"] >= train_cutoff) & (ordered["month"] <= test_end)
    holdout_mask = ordered["month"] > test_end

    return TrainTestSplit(
        train=ordered[train_mask].reset_index(drop=True),
        test=ordered[test_mask].reset_index(drop=True),
        holdout=ordered[holdout_mask].reset_index(drop=True),
    )
