"""Execution mode classification.

A run is either local, or tracked by the remote golden service. Remote runs
are split into pre-submit (try-job for a pending change) and post-submit
(continuous ingestion of merged changes).
"""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from .constants import CI_TASK_ID_ENV, GOLDEN_SERVICE_ENV, TRYJOB_ENV


class ExecutionMode(Enum):
    """Where the results of a comparison run end up."""

    LOCAL = "local"
    PRE_SUBMIT = "pre_submit"
    POST_SUBMIT = "post_submit"

    @property
    def is_remote(self) -> bool:
        """True if screenshots are uploaded to the golden service."""
        return self is not ExecutionMode.LOCAL


def resolve_mode(env: Mapping[str, str]) -> ExecutionMode:
    """Classify a run from an environment snapshot.

    Only the presence of the signals matters, not their values.

    Args:
        env: Environment variables

    Returns:
        PRE_SUBMIT or POST_SUBMIT when both the CI task id and the golden
        service credential are set, LOCAL otherwise.
    """
    if CI_TASK_ID_ENV not in env or GOLDEN_SERVICE_ENV not in env:
        return ExecutionMode.LOCAL
    if TRYJOB_ENV in env:
        return ExecutionMode.PRE_SUBMIT
    return ExecutionMode.POST_SUBMIT


__all__ = ["ExecutionMode", "resolve_mode"]
