"""
Regressor construction, fitting and accuracy metrics for the forecasting pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
from sklearn.base import BaseEstimator, clone
from sklearn.ensemble import HistGradientBoostingRegressor
from sklearn.metrics import mean_absolute_error, mean_squared_error
from xgboost import XGBRegressor

from .errors import ModelError

DEFAULT_MODEL = "xgboost"


@dataclass
class CandidateModel:
    name: str
    estimator: BaseEstimator


@dataclass
class ModelArtifact:
    name: str
    estimator: BaseEstimator
    feature_columns: List[str]
    feature_importances: Dict[str, float]

    def predict(self, X: np.ndarray) -> np.ndarray:
        return np.asarray(self.estimator.predict(np.asarray(X, dtype=float)), dtype=float)


@dataclass(frozen=True)
class RegressionMetrics:
    mae: float
    mse: float
    rmse: float

    def as_dict(self) -> Dict[str, float]:
        return {"mae": self.mae, "mse": self.mse, "rmse": self.rmse}


def default_candidates(random_state: int = 42) -> Dict[str, CandidateModel]:
    """
    Gradient-boosted tree regressors available to the pipeline, keyed by name.
    """
    xgb = CandidateModel(
        name="xgboost",
        estimator=XGBRegressor(
            objective="reg:squarederror",
            learning_rate=0.1,
            max_depth=6,
            n_estimators=100,
            random_state=random_state,
            n_jobs=1,
        ),
    )

    hist = CandidateModel(
        name="hist_gradient_boosting",
        estimator=HistGradientBoostingRegressor(
            loss="squared_error",
            learning_rate=0.1,
            max_depth=6,
            max_iter=100,
            random_state=random_state,
        ),
    )

    return {candidate.name: candidate for candidate in (xgb, hist)}


def fit_model(
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Sequence[str],
    name: str = DEFAULT_MODEL,
    random_state: int = 42,
) -> ModelArtifact:
    """
    Fit a fresh copy of the named candidate once; the result is not refitted afterwards.
    """
    candidates = default_candidates(random_state=random_state)
    if name not in candidates:
        raise ModelError(f"Unknown model '{name}'; choose from {', '.join(candidates)}.")

    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    if X.ndim != 2 or X.shape[0] != y.shape[0]:
        raise ModelError(f"Feature matrix shape {X.shape} does not match target length {y.shape[0]}.")
    if X.shape[0] < 2:
        raise ModelError(
            f"Not enough samples ({X.shape[0]}) to train '{name}'.",
            details={"samples": int(X.shape[0])},
        )
    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
        raise ModelError("Training data contains missing or non-finite values.")

    estimator = clone(candidates[name].estimator)
    try:
        estimator.fit(X, y)
    except (ValueError, RuntimeError) as exc:
        raise ModelError(f"Fitting '{name}' failed: {exc}") from exc

    return ModelArtifact(
        name=name,
        estimator=estimator,
        feature_columns=list(feature_names),
        feature_importances=extract_feature_importances(estimator, feature_names),
    )


def compute_metrics(actual, predicted) -> RegressionMetrics:
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.size == 0:
        raise ModelError("Cannot compute error metrics for an empty subset.")
    if not (np.all(np.isfinite(actual)) and np.all(np.isfinite(predicted))):
        raise ModelError("Cannot compute error metrics over missing or non-finite values.")

    mse = float(mean_squared_error(actual, predicted))
    return RegressionMetrics(
        mae=float(mean_absolute_error(actual, predicted)),
        mse=mse,
        rmse=float(np.sqrt(mse)),
    )


def extract_feature_importances(estimator: BaseEstimator, feature_names: Sequence[str]) -> Dict[str, float]:
    """
    Attempt to compute a normalised mapping of feature importances for the fitted estimator.
    """
    if not hasattr(estimator, "feature_importances_"):
        return {}

    importances = np.asarray(getattr(estimator, "feature_importances_"), dtype=float)
    total = float(np.sum(importances))
    if total == 0.0 or not np.isfinite(total):
        return {name: 0.0 for name in feature_names}

    normalised = importances / total
    return {
        name: float(value)
        for name, value in zip(feature_names, normalised)
    }
