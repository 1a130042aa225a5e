"""Visual regression comparison of rendered screenshots against goldens.

Given a freshly rendered screenshot and its golden, goldenstag decides whether
the rendering is acceptable and, if not, writes artifacts explaining the
discrepancy.

## Usage

```python
from goldenstag import (
    Image,
    PixelComparisonMode,
    DirectoryGoldenClient,
    compare_image,
)

result = await compare_image(
    Image.from_file("render.png"),
    False,                           # update goldens
    "button_hover.png",
    PixelComparisonMode.fuzzy(),
    0.01,                            # fail at 1% differing pixels
    DirectoryGoldenClient("goldens"),
)
assert result == "OK", result
```

## Execution Modes

- Local: compared against goldens on disk, artifacts written on mismatch
- Pre-submit (``SWARMING_TASK_ID``, ``GOLDCTL`` and ``GOLD_TRYJOB`` set):
  uploaded as try-job
- Post-submit (``SWARMING_TASK_ID`` and ``GOLDCTL`` set): uploaded for ingestion

## Results Directory

Default: ``tmp/test_results/`` below the working directory.

Can be overridden with the GOLDENSTAG_RESULTS_DIR environment variable.
"""

from .constants import OK_STATUS, DEFAULT_FUZZY_TOLERANCE

from .exceptions import (
    GoldenStagError,
    DimensionMismatchError,
    CollaboratorUnavailableError,
    ArtifactWriteError,
)

from .image import Image, ImageSourceTypes

from .mode import ExecutionMode, resolve_mode

from .config import (
    Settings,
    RunConfig,
    ensure_dir,
    get_settings,
    get_run_config,
)

from .comparison import (
    PixelComparison,
    PixelComparisonMode,
    DiffResult,
    compare,
    images_match,
)

from .decision import (
    Decision,
    ComparisonArtifacts,
    Outcome,
    decide,
)

from .report import (
    ArtifactReporter,
    format_diff_rate,
    build_summary,
)

from .golden_client import (
    GoldenClient,
    DirectoryGoldenClient,
    GoldctlClient,
    UploadDispatcher,
    fetch_golden,
)

from .golden_compare import (
    judge,
    compare_image,
    compare_image_outcome,
)

__all__ = [
    # Constants
    "OK_STATUS",
    "DEFAULT_FUZZY_TOLERANCE",
    # Errors
    "GoldenStagError",
    "DimensionMismatchError",
    "CollaboratorUnavailableError",
    "ArtifactWriteError",
    # Image
    "Image",
    "ImageSourceTypes",
    # Mode & config
    "ExecutionMode",
    "resolve_mode",
    "Settings",
    "RunConfig",
    "ensure_dir",
    "get_settings",
    "get_run_config",
    # Comparison
    "PixelComparison",
    "PixelComparisonMode",
    "DiffResult",
    "compare",
    "images_match",
    # Decision
    "Decision",
    "ComparisonArtifacts",
    "Outcome",
    "decide",
    # Reporting
    "ArtifactReporter",
    "format_diff_rate",
    "build_summary",
    # Golden service
    "GoldenClient",
    "DirectoryGoldenClient",
    "GoldctlClient",
    "UploadDispatcher",
    "fetch_golden",
    # Entry points
    "judge",
    "compare_image",
    "compare_image_outcome",
]

__version__ = "0.1.0"
