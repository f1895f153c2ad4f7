"""Regression detection module for benchledger.

This module detects task/variant pairs whose recent scores dropped
compared to an older window of runs.

Example:
    >>> from benchledger.regression import RegressionOptions
    >>>
    >>> regressions = await storage.detect_regressions(
    ...     RegressionOptions(threshold=0.1, recent_window=3, baseline_window=7)
    ... )
    >>> for regression in regressions:
    ...     print(regression.message)
"""

from __future__ import annotations

from benchledger.regression.detector import RegressionDetector
from benchledger.regression.models import Regression, RegressionOptions

__all__ = [
    "Regression",
    "RegressionDetector",
    "RegressionOptions",
]
