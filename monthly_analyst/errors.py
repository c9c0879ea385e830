"""
Error types raised by the monthly forecasting pipeline.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AnalystError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InputError(AnalystError, ValueError):
    """The input file is missing, unreadable, or lacks required columns."""


class DataQualityError(AnalystError, ValueError):
    """The aggregated series cannot be used as-is (month gaps, empty windows)."""


class ModelError(AnalystError, RuntimeError):
    """Model fitting or scoring received degenerate input or failed."""


class OutputError(AnalystError, OSError):
    """An output artefact could not be written."""
