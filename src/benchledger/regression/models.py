"""Models for regression detection.

This module provides dataclasses for regression detection options and
detected regressions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RegressionOptions:
    """Parameters for windowed regression detection.

    The recent_window most recent runs form the "current" window; the next
    baseline_window runs (older, not overlapping) form the baseline.

    Attributes:
        threshold: Relative score drop that counts as a regression (0.05 = 5%).
        recent_window: Number of most recent runs averaged as current.
        baseline_window: Number of runs, after the recent ones, averaged as baseline.
        variant_id: Only consider this variant (None for all).

    Example:
        >>> options = RegressionOptions(threshold=0.2, recent_window=1, baseline_window=5)
        >>> options.threshold
        0.2
    """

    threshold: float = 0.05
    recent_window: int = 3
    baseline_window: int = 7
    variant_id: str | None = None

    def __post_init__(self) -> None:
        """Reject negative window sizes."""
        if self.recent_window < 0 or self.baseline_window < 0:
            raise ValueError("Regression windows must not be negative")


@dataclass
class Regression:
    """A task/variant pair whose recent average score dropped.

    Attributes:
        task_id: Task that regressed.
        variant_id: Variant that regressed.
        baseline_score: Average score in the baseline window.
        current_score: Average score in the recent window.
        change_pct: Percentage change (negative = regression).

    Example:
        >>> regression = Regression("CG-AL-E001", "openai/gpt-4o", 80.0, 60.0, -25.0)
        >>> regression.message
        'CG-AL-E001 on openai/gpt-4o dropped by 25.0% (80.0 -> 60.0)'
    """

    task_id: str
    variant_id: str
    baseline_score: float
    current_score: float
    change_pct: float

    @property
    def message(self) -> str:
        """Human-readable regression message."""
        return (
            f"{self.task_id} on {self.variant_id} dropped by {abs(self.change_pct):.1f}% "
            f"({self.baseline_score:.1f} -> {self.current_score:.1f})"
        )
