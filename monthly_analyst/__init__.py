# flake8: noqa
"""
Monthly commodity price forecasting.

This package aggregates daily price records to calendar months, engineers lag and
calendar features, fits a gradient-boosted tree regressor, scores it on a held-out
window and forecasts the months that follow.
"""

from .errors import AnalystError, DataQualityError, InputError, ModelError, OutputError  # noqa: F401
from .pipeline import ForecastResult, MonthlyForecastPipeline  # noqa: F401
