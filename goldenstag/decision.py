"""Pass/warn/fail policy for a computed diff.

The decision only depends on whether a golden exists, the diff rate and the
failure threshold:

- no golden: NEW_BASELINE
- rate == 0: PASS
- 0 < rate < threshold: WARN (reported, but the run isn't failed)
- rate >= threshold: FAIL

Thresholds above 1 are allowed and mean "warn, never fail".
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .comparison import DiffResult
from .constants import OK_STATUS
from .image import Image


class Decision(Enum):
    """Outcome of judging a screenshot against its golden."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    NEW_BASELINE = "new_baseline"

    @property
    def writes_artifacts(self) -> bool:
        """True if comparison artifacts are written for this decision."""
        return self in (Decision.WARN, Decision.FAIL)


def validate_threshold(max_diff_rate_failure: float) -> float:
    """Validate a failure threshold.

    Raises:
        ValueError: If the threshold is negative or NaN
    """
    if math.isnan(max_diff_rate_failure) or max_diff_rate_failure < 0.0:
        raise ValueError(
            f"max_diff_rate_failure must be a non-negative number, got {max_diff_rate_failure}"
        )
    return max_diff_rate_failure


def decide(
    golden: Image | None,
    diff: DiffResult | None,
    max_diff_rate_failure: float,
) -> Decision:
    """Decide whether a rendering is acceptable.

    Args:
        golden: The stored golden, or None if no baseline exists yet
        diff: The comparison result (ignored when there is no golden)
        max_diff_rate_failure: Diff rate at or above which the run fails.
            With 0, every nonzero rate fails.

    Returns:
        The decision
    """
    if golden is None:
        return Decision.NEW_BASELINE
    validate_threshold(max_diff_rate_failure)
    if diff is None:
        raise ValueError("A diff is required when a golden is present")
    if diff.rate == 0:
        return Decision.PASS
    if diff.rate < max_diff_rate_failure:
        return Decision.WARN
    return Decision.FAIL


@dataclass(frozen=True)
class ComparisonArtifacts:
    """Files written for a warning or failing comparison."""
    actual: Path
    diff: Path
    expected: Path
    report: Path
    summary: str

    @property
    def paths(self) -> tuple[Path, Path, Path, Path]:
        return self.actual, self.diff, self.expected, self.report


@dataclass(frozen=True)
class Outcome:
    """Tagged result of a screenshot comparison.

    ``status`` collapses the outcome to the string convention used by test
    harnesses: ``"OK"`` for everything but FAIL, the failure message for FAIL.
    """
    decision: Decision
    message: str = ""
    diff: DiffResult | None = None
    artifacts: ComparisonArtifacts | None = None

    @property
    def status(self) -> str:
        if self.decision is Decision.FAIL:
            return self.message
        return OK_STATUS

    @property
    def ok(self) -> bool:
        return self.decision is not Decision.FAIL


__all__ = [
    "Decision",
    "validate_threshold",
    "decide",
    "ComparisonArtifacts",
    "Outcome",
]
