"""Screenshot comparison entry point for test harnesses.

``compare_image`` writes the screenshot, then depending on the run's
execution mode either uploads it to the golden service (pre-submit and
post-submit runs) or compares it locally against its golden:

    golden missing      -> NEW_BASELINE, "OK"
    no difference       -> PASS, "OK"
    rate < threshold    -> WARN, artifacts written, warning logged, "OK"
    rate >= threshold   -> FAIL, artifacts written, summary returned

Usage:
    from goldenstag import Image, PixelComparisonMode, DirectoryGoldenClient
    from goldenstag import compare_image

    result = await compare_image(
        Image.from_file("render.png"),
        False,
        "button_hover.png",
        PixelComparisonMode.precise(),
        0.01,
        DirectoryGoldenClient("goldens"),
    )
    assert result == "OK", result
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .comparison import PixelComparisonMode, compare
from .config import RunConfig, ensure_dir, get_run_config
from .decision import Decision, Outcome, decide, validate_threshold
from .exceptions import ArtifactWriteError, DimensionMismatchError
from .golden_client import GoldenClient, UploadDispatcher, accept_golden, fetch_golden
from .image import Image
from .report import ArtifactReporter

logger = logging.getLogger(__name__)


def judge(
    golden: Image,
    screenshot: Image,
    filename: str,
    pixel_comparison: PixelComparisonMode,
    max_diff_rate_failure: float,
    reporter: ArtifactReporter,
    screenshot_path: Path | None = None,
) -> Outcome:
    """Compare a screenshot with an existing golden, decide and report.

    Args:
        golden: The stored golden
        screenshot: The screenshot produced by the test
        filename: Screenshot file name
        pixel_comparison: Pixel equality policy
        max_diff_rate_failure: Diff rate at or above which the comparison fails
        reporter: Writes the artifacts of warning and failing comparisons
        screenshot_path: The screenshot file written for this run, if any

    Returns:
        The outcome

    Raises:
        ValueError: If the threshold is negative or NaN
        DimensionMismatchError: If golden and screenshot differ in size
        ArtifactWriteError: If the artifacts can't be written
    """
    validate_threshold(max_diff_rate_failure)
    try:
        diff = compare(golden, screenshot, pixel_comparison)
    except DimensionMismatchError as e:
        raise DimensionMismatchError(e.golden_size, e.candidate_size, name=filename) from e

    decision = decide(golden, diff, max_diff_rate_failure)
    logger.debug(f"{filename}: diff rate {diff.rate:.6f} -> {decision.value}")
    if decision is Decision.PASS:
        return Outcome(decision, diff=diff)

    artifacts = reporter.report(
        filename,
        screenshot,
        diff,
        decision,
        max_diff_rate_failure,
        screenshot_path=screenshot_path,
    )
    if decision is Decision.WARN:
        logger.warning(f"WARNING:\n{artifacts.summary}")
    return Outcome(decision, message=artifacts.summary, diff=diff, artifacts=artifacts)


def _write_screenshot(screenshot: Image, path: Path) -> None:
    try:
        ensure_dir(path.parent)
        screenshot.save(path)
    except OSError as e:
        raise ArtifactWriteError(f"Failed to write screenshot {path}: {e}") from e


async def compare_image_outcome(
    screenshot: Image,
    update_goldens: bool,
    filename: str,
    pixel_comparison: PixelComparisonMode,
    max_diff_rate_failure: float,
    golden_client: GoldenClient | None,
    *,
    fuzzy_matching: bool = False,
    config: RunConfig | None = None,
) -> Outcome:
    """Compare a screenshot with its golden and return the full outcome.

    Args:
        screenshot: The screenshot produced by the test
        update_goldens: Accept the screenshot as the new golden instead of
            comparing
        filename: Screenshot file name, e.g. "button_hover.png"
        pixel_comparison: Pixel equality policy for local comparisons
        max_diff_rate_failure: Diff rate at or above which the comparison fails
        golden_client: Golden lookup/submission client. Without a client the
            comparison is skipped.
        fuzzy_matching: Ask the golden service for fuzzy matching on upload
        config: Run configuration (defaults to the process-wide one)

    Returns:
        The outcome

    Raises:
        ValueError: If a local comparison is given a negative or NaN threshold
        DimensionMismatchError: If golden and screenshot differ in size
        CollaboratorUnavailableError: If the golden service fails
        ArtifactWriteError: If the screenshot or artifacts can't be written
    """
    if golden_client is None:
        return Outcome(
            Decision.PASS,
            message=f"No golden client configured, skipped comparison of {filename}",
        )
    if config is None:
        config = get_run_config()

    screenshot_path = config.screenshot_path(filename)
    await asyncio.to_thread(_write_screenshot, screenshot, screenshot_path)

    if config.mode.is_remote:
        await UploadDispatcher(golden_client).submit(
            config.mode,
            filename,
            screenshot_path,
            screenshot.pixel_count,
            fuzzy_matching,
        )
        return Outcome(
            Decision.PASS,
            message=f"Screenshot {filename} submitted to the golden service ({config.mode.value})",
        )

    if update_goldens:
        golden_path = await accept_golden(golden_client, filename, screenshot)
        return Outcome(Decision.NEW_BASELINE, message=f"Golden updated: file://{golden_path}")

    golden = await fetch_golden(golden_client, filename)
    if golden is None:
        message = f"Screenshot generated: file://{screenshot_path}"
        logger.info(message)
        return Outcome(Decision.NEW_BASELINE, message=message)

    return await asyncio.to_thread(
        judge,
        golden,
        screenshot,
        filename,
        pixel_comparison,
        max_diff_rate_failure,
        ArtifactReporter(config.results_dir),
        screenshot_path,
    )


async def compare_image(
    screenshot: Image,
    update_goldens: bool,
    filename: str,
    pixel_comparison: PixelComparisonMode,
    max_diff_rate_failure: float,
    golden_client: GoldenClient | None,
    *,
    fuzzy_matching: bool = False,
    config: RunConfig | None = None,
) -> str:
    """Compare a screenshot with its golden.

    Same arguments as compare_image_outcome().

    Returns:
        "OK" when the screenshot is acceptable (including warnings and new
        baselines), otherwise a multi-line failure message naming the golden,
        the actual file and the HTML report
    """
    outcome = await compare_image_outcome(
        screenshot,
        update_goldens,
        filename,
        pixel_comparison,
        max_diff_rate_failure,
        golden_client,
        fuzzy_matching=fuzzy_matching,
        config=config,
    )
    return outcome.status


__all__ = ["judge", "compare_image_outcome", "compare_image"]
