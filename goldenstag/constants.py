"""Constants for golden image comparison.

This module defines the sentinel values, diff rendering colors and default
tolerances shared by the comparer, the reporter and the golden clients.
"""

# =============================================================================
# Status
# =============================================================================

# The only success value returned by compare_image(); anything else is a
# failure message to be shown verbatim.
OK_STATUS = "OK"

# =============================================================================
# Environment Signals
# =============================================================================

# CI task identity (set by the swarming bot running the test shard)
CI_TASK_ID_ENV = "SWARMING_TASK_ID"

# Golden service credential / path of the goldctl tool
GOLDEN_SERVICE_ENV = "GOLDCTL"

# Try-job identity, only present for pre-submit runs
TRYJOB_ENV = "GOLD_TRYJOB"

# =============================================================================
# Comparison Tolerances
# =============================================================================

# Per-channel tolerance (0-255) used by PixelComparisonMode.fuzzy()
DEFAULT_FUZZY_TOLERANCE = 8

MAX_CHANNEL_VALUE = 255

# =============================================================================
# Diff Rendering
# =============================================================================

# Mismatched pixels are painted opaque red
DIFF_MISMATCH_COLOR = (255, 0, 0, 255)

# Matched pixels are dimmed toward white: base + channel // divisor
DIFF_DIM_BASE = 192
DIFF_DIM_DIVISOR = 4

# =============================================================================
# Artifact Naming
# =============================================================================

ACTUAL_SUFFIX = ".actual.png"
DIFF_SUFFIX = ".diff.png"
EXPECTED_SUFFIX = ".expected.png"
REPORT_SUFFIX = ".report.html"

# Fixed zlib level so repeated runs produce byte-identical PNGs
PNG_COMPRESS_LEVEL = 6

# =============================================================================
# Golden Service (goldctl)
# =============================================================================

# Fraction of the screenshot allowed to differ when fuzzy matching is requested
FUZZY_MAX_DIFFERENT_PIXELS_RATE = 0.01

# Maximum per-pixel delta tolerated by the service's fuzzy matcher
FUZZY_PIXEL_DELTA_THRESHOLD = 3

__all__ = [
    "OK_STATUS",
    "CI_TASK_ID_ENV",
    "GOLDEN_SERVICE_ENV",
    "TRYJOB_ENV",
    "DEFAULT_FUZZY_TOLERANCE",
    "MAX_CHANNEL_VALUE",
    "DIFF_MISMATCH_COLOR",
    "DIFF_DIM_BASE",
    "DIFF_DIM_DIVISOR",
    "ACTUAL_SUFFIX",
    "DIFF_SUFFIX",
    "EXPECTED_SUFFIX",
    "REPORT_SUFFIX",
    "PNG_COMPRESS_LEVEL",
    "FUZZY_MAX_DIFFERENT_PIXELS_RATE",
    "FUZZY_PIXEL_DELTA_THRESHOLD",
]
