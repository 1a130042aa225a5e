# Compare CLI
"""
Compare a screenshot against a golden PNG from the command line.

Runs the same comparison, decision and reporting steps as compare_image()
in a local run, without a golden client.

Usage:
    # Exact comparison, any difference fails
    python -m goldenstag.tools.compare_cli goldens/button.png out/button.png

    # Fuzzy comparison, warn below 1% differing pixels
    python -m goldenstag.tools.compare_cli goldens/button.png out/button.png \\
        --fuzzy --max-diff-rate 0.01

    # Custom results directory
    python -m goldenstag.tools.compare_cli g.png a.png --results-dir tmp/report

Exit codes:
    0: Screenshot accepted (pass, warning or missing golden)
    1: Screenshot rejected, the summary is printed
    2: Golden and screenshot differ in size
    3: The screenshot file doesn't exist
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from goldenstag.comparison import PixelComparisonMode
from goldenstag.config import get_settings
from goldenstag.constants import DEFAULT_FUZZY_TOLERANCE, OK_STATUS
from goldenstag.golden_compare import judge
from goldenstag.decision import Decision
from goldenstag.exceptions import DimensionMismatchError
from goldenstag.image import Image
from goldenstag.report import ArtifactReporter

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_DIMENSION_MISMATCH = 2
EXIT_MISSING_INPUT = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goldenstag-compare",
        description="Compare a screenshot against its golden image",
    )
    parser.add_argument("golden", type=Path, help="Golden PNG file")
    parser.add_argument("actual", type=Path, help="Screenshot PNG file")
    parser.add_argument(
        "--name",
        help="Screenshot name used for artifacts (default: actual file name)",
    )
    parser.add_argument(
        "--fuzzy",
        type=int,
        nargs="?",
        const=DEFAULT_FUZZY_TOLERANCE,
        default=None,
        metavar="TOLERANCE",
        help=f"Fuzzy per-channel tolerance (default when given: {DEFAULT_FUZZY_TOLERANCE})",
    )
    parser.add_argument(
        "--max-diff-rate",
        type=float,
        default=None,
        help="Diff rate at or above which the comparison fails",
    )
    parser.add_argument("--results-dir", type=Path, default=None)
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    settings = get_settings()
    name = args.name or args.actual.name
    max_rate = (
        args.max_diff_rate if args.max_diff_rate is not None
        else settings.MAX_DIFF_RATE_FAILURE
    )
    if args.fuzzy is not None:
        mode = PixelComparisonMode.fuzzy(args.fuzzy)
    else:
        mode = PixelComparisonMode.precise()

    try:
        screenshot = Image.from_file(args.actual)
    except FileNotFoundError:
        print(f"Screenshot not found: {args.actual}", file=sys.stderr)
        return EXIT_MISSING_INPUT
    if not args.golden.is_file():
        print(f"Screenshot generated: file://{args.actual.absolute()}")
        return EXIT_OK
    golden = Image.from_file(args.golden)

    reporter = ArtifactReporter(args.results_dir or settings.RESULTS_DIR)
    # The expected artifact is a byte copy, so only PNG input can be copied
    screenshot_path = args.actual if args.actual.suffix.lower() == ".png" else None
    try:
        outcome = judge(
            golden, screenshot, name, mode, max_rate, reporter,
            screenshot_path=screenshot_path,
        )
    except DimensionMismatchError as e:
        print(str(e), file=sys.stderr)
        return EXIT_DIMENSION_MISMATCH

    if outcome.decision is Decision.FAIL:
        print(outcome.message)
        return EXIT_FAILED
    print(OK_STATUS)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
