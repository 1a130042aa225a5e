"""Comparison artifacts for mismatching screenshots.

When a screenshot differs from its golden (a WARN or FAIL decision) the
reporter writes, into the results directory:

    {results}/{base}.actual.png    the screenshot produced by the test
    {results}/{base}.diff.png      the diff visualization
    {results}/{base}.expected.png  copy of the screenshot file (see below)
    {results}/{base}.report.html   Expected | Diff | Actual side by side

``base`` is the screenshot file name without directory and extension, so
concurrent comparisons of differently named screenshots never collide.

The expected artifact is copied from the screenshot written for this run,
not from the stored golden's bytes.
"""
from __future__ import annotations

import html
import logging
import shutil
from pathlib import Path

from .comparison import DiffResult
from .config import ensure_dir
from .constants import ACTUAL_SUFFIX, DIFF_SUFFIX, EXPECTED_SUFFIX, REPORT_SUFFIX
from .decision import ComparisonArtifacts, Decision
from .exceptions import ArtifactWriteError
from .image import Image

logger = logging.getLogger(__name__)

REPORT_TEMPLATE = """\
Golden file {name} did not match the image generated by the test.

<table>
  <tr>
    <th>Expected</th>
    <th>Diff</th>
    <th>Actual</th>
  </tr>
  <tr>
    <td>
      <img src="{expected}">
    </td>
    <td>
      <img src="{diff}">
    </td>
    <td>
      <img src="{actual}">
    </td>
  </tr>
</table>
"""


def get_base_name(filename: str) -> str:
    """Strip directories and the extension from a screenshot file name."""
    return Path(filename).stem


def format_diff_rate(rate: float, max_rate: float) -> str:
    """Human-readable statement of a diff rate and the allowed maximum.

    Example:
        >>> format_diff_rate(0.0625, 0.5)
        '(6.2500% of pixels were different. Maximum allowed rate is: 50.0000%).'
    """
    return (
        f"({rate * 100:.4f}% of pixels were different. "
        f"Maximum allowed rate is: {max_rate * 100:.4f}%)."
    )


def build_summary(
    filename: str,
    rate: float,
    max_rate: float,
    report_path: Path,
    expected_path: Path,
    actual_path: Path,
) -> str:
    """Build the multi-line mismatch summary shown to the developer."""
    return "\n".join([
        f"Golden file {filename} did not match the image generated by the test.",
        format_diff_rate(rate, max_rate),
        "You can view the test report in your browser by opening:",
        str(report_path),
        f"Golden file: {expected_path}",
        f"Actual file: {actual_path}",
    ])


def render_report_html(filename: str, base_name: str) -> str:
    """Render the HTML page embedding expected, diff and actual images."""
    return REPORT_TEMPLATE.format(
        name=html.escape(filename),
        expected=html.escape(base_name + EXPECTED_SUFFIX, quote=True),
        diff=html.escape(base_name + DIFF_SUFFIX, quote=True),
        actual=html.escape(base_name + ACTUAL_SUFFIX, quote=True),
    )


class ArtifactReporter:
    """Writes comparison artifacts into a results directory."""

    def __init__(self, results_dir: Path | str):
        self.results_dir = Path(results_dir).absolute()

    def artifact_paths(self, filename: str) -> tuple[Path, Path, Path, Path]:
        """Get the (actual, diff, expected, report) paths for a screenshot."""
        base = get_base_name(filename)
        return (
            self.results_dir / f"{base}{ACTUAL_SUFFIX}",
            self.results_dir / f"{base}{DIFF_SUFFIX}",
            self.results_dir / f"{base}{EXPECTED_SUFFIX}",
            self.results_dir / f"{base}{REPORT_SUFFIX}",
        )

    def report(
        self,
        filename: str,
        screenshot: Image,
        diff: DiffResult,
        decision: Decision,
        max_diff_rate_failure: float,
        screenshot_path: Path | None = None,
    ) -> ComparisonArtifacts | None:
        """Write the artifacts of a comparison.

        Args:
            filename: Screenshot file name (e.g. "button_hover.png")
            screenshot: The screenshot produced by the test
            diff: The comparison result
            decision: The decision taken for this diff
            max_diff_rate_failure: The failure threshold, for the summary
            screenshot_path: The screenshot file written for this run. The
                expected artifact is a byte copy of it; without it the
                screenshot is encoded again.

        Returns:
            The written artifacts, or None for decisions which don't report
            (PASS, NEW_BASELINE)

        Raises:
            ArtifactWriteError: If any artifact can't be written
        """
        if not decision.writes_artifacts:
            return None

        actual_path, diff_path, expected_path, report_path = self.artifact_paths(filename)
        try:
            ensure_dir(self.results_dir)
            screenshot.save(actual_path)
            diff.diff_image.save(diff_path)
            if screenshot_path is not None:
                shutil.copyfile(screenshot_path, expected_path)
            else:
                screenshot.save(expected_path)
            report_path.write_text(
                render_report_html(filename, get_base_name(filename)),
                encoding="utf-8",
            )
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to write comparison artifacts for {filename} to "
                f"{self.results_dir}: {e}"
            ) from e

        summary = build_summary(
            filename,
            diff.rate,
            max_diff_rate_failure,
            report_path,
            expected_path,
            actual_path,
        )
        logger.debug(f"Wrote comparison artifacts for {filename} to {self.results_dir}")
        return ComparisonArtifacts(
            actual=actual_path,
            diff=diff_path,
            expected=expected_path,
            report=report_path,
            summary=summary,
        )


__all__ = [
    "REPORT_TEMPLATE",
    "get_base_name",
    "format_diff_rate",
    "build_summary",
    "render_report_html",
    "ArtifactReporter",
]
