"""Golden service collaborators.

A golden client looks up stored goldens by screenshot name and submits new
screenshots to the golden review service. All calls are coroutines; fetches
and submissions may block on disk or network I/O.

Two clients are provided:

- DirectoryGoldenClient: goldens are PNG files in a local directory. Remote
  submission is not available.
- GoldctlClient: same local goldens, submissions go through the ``goldctl``
  command line tool. The goldctl work directory must have been initialised by
  the CI harness (``goldctl imgtest init`` or ``goldctl tryjob init``).

Failures of a collaborator surface as CollaboratorUnavailableError. Nothing
is retried: a blind retry of a submission could ingest a screenshot twice.
"""
from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from .config import Settings, ensure_dir, get_settings
from .constants import FUZZY_MAX_DIFFERENT_PIXELS_RATE, FUZZY_PIXEL_DELTA_THRESHOLD
from .exceptions import CollaboratorUnavailableError, GoldenStagError
from .image import Image
from .mode import ExecutionMode
from .report import get_base_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class GoldenClient(Protocol):
    """Protocol for golden lookup and submission.

    ``fetch`` returns None when no baseline exists for a name; that's a
    legitimate outcome, not an error. Fetches must be idempotent.
    """

    async def fetch(self, name: str) -> Image | None:
        """Get the stored golden for a screenshot name, or None."""
        ...

    async def accept(self, name: str, image: Image) -> Path:
        """Store an image as the new accepted golden. Returns its location."""
        ...

    async def tryjob_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        """Submit a screenshot for a pre-submit try-job."""
        ...

    async def imgtest_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        """Submit a screenshot for post-submit (continuous) ingestion."""
        ...


async def _call_collaborator(description: str, awaitable: Awaitable[T]) -> T:
    """Await a collaborator call, mapping its failures.

    Raises:
        CollaboratorUnavailableError: For any failure which isn't already a
            goldenstag error (including timeouts and OS errors)
    """
    try:
        return await awaitable
    except GoldenStagError:
        raise
    except Exception as e:
        raise CollaboratorUnavailableError(
            f"Golden service failed during {description}: {e!r}"
        ) from e


async def fetch_golden(client: GoldenClient, name: str) -> Image | None:
    """Fetch a golden through a client, see GoldenClient.fetch."""
    return await _call_collaborator(f"fetch of {name}", client.fetch(name))


async def accept_golden(client: GoldenClient, name: str, image: Image) -> Path:
    """Accept an image as golden through a client, see GoldenClient.accept."""
    return await _call_collaborator(f"update of {name}", client.accept(name, image))


class DirectoryGoldenClient:
    """Goldens stored as PNG files below a local directory."""

    def __init__(self, goldens_dir: Path | str):
        self.goldens_dir = Path(goldens_dir)

    def golden_path(self, name: str) -> Path:
        return self.goldens_dir / name

    async def fetch(self, name: str) -> Image | None:
        path = self.golden_path(name)
        if not path.is_file():
            return None
        return await asyncio.to_thread(Image.from_file, path)

    async def accept(self, name: str, image: Image) -> Path:
        path = self.golden_path(name)
        ensure_dir(path.parent)
        await asyncio.to_thread(image.save, path)
        logger.info(f"Golden updated: file://{path}")
        return path

    async def tryjob_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        raise CollaboratorUnavailableError(
            f"No golden service configured, can't submit try-job for {name}"
        )

    async def imgtest_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        raise CollaboratorUnavailableError(
            f"No golden service configured, can't submit {name} for ingestion"
        )


def fuzzy_optional_keys(size_hint: int) -> list[str]:
    """goldctl arguments requesting fuzzy matching on the service side.

    Args:
        size_hint: Number of pixels of the screenshot (width * height)

    Returns:
        ``--add-test-optional-key`` arguments
    """
    max_different_pixels = math.ceil(size_hint * FUZZY_MAX_DIFFERENT_PIXELS_RATE)
    return [
        "--add-test-optional-key", "image_matching_algorithm:fuzzy",
        "--add-test-optional-key", f"fuzzy_max_different_pixels:{max_different_pixels}",
        "--add-test-optional-key", f"fuzzy_pixel_delta_threshold:{FUZZY_PIXEL_DELTA_THRESHOLD}",
    ]


class GoldctlClient(DirectoryGoldenClient):
    """Submits screenshots to the golden service through ``goldctl``.

    Goldens are still looked up from a local directory.
    """

    def __init__(
        self,
        goldctl: str,
        work_dir: Path | str,
        goldens_dir: Path | str,
        timeout: float = 120.0,
    ):
        super().__init__(goldens_dir)
        self.goldctl = goldctl
        self.work_dir = Path(work_dir)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, goldctl: str, settings: Settings | None = None) -> GoldctlClient:
        """Create a client using the configured work dir, goldens and timeout.

        Args:
            goldctl: Path of the goldctl binary, usually the value of the
                ``GOLDCTL`` environment variable
            settings: Settings (defaults to the process-wide ones)
        """
        if settings is None:
            settings = get_settings()
        return cls(
            goldctl,
            settings.GOLDCTL_WORK_DIR,
            settings.GOLDENS_DIR,
            timeout=settings.GOLDCTL_TIMEOUT,
        )

    def imgtest_add_args(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> list[str]:
        """Build the ``goldctl imgtest add`` command line (without the binary)."""
        args = [
            "imgtest", "add",
            "--work-dir", str(self.work_dir),
            "--test-name", get_base_name(name),
            "--png-file", str(png_path),
        ]
        if fuzzy_matching:
            args += fuzzy_optional_keys(size_hint)
        return args

    async def run(self, args: list[str]) -> str:
        """Run goldctl and return its standard output.

        Raises:
            CollaboratorUnavailableError: If goldctl can't be started, times
                out or exits with a nonzero code
        """
        cmd = [self.goldctl, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CollaboratorUnavailableError(
                f"Failed to start goldctl ({self.goldctl}): {e}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise CollaboratorUnavailableError(
                f"goldctl timed out after {self.timeout}s: {' '.join(cmd)}"
            ) from e

        if proc.returncode != 0:
            raise CollaboratorUnavailableError(
                f"goldctl exited with code {proc.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        return stdout.decode("utf-8", errors="replace")

    async def tryjob_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        output = await self.run(
            self.imgtest_add_args(name, png_path, size_hint, fuzzy_matching)
        )
        if "Untriaged" in output:
            logger.info(f"Try-job screenshot {name} is untriaged, review it in the golden service")

    async def imgtest_add(
        self, name: str, png_path: Path, size_hint: int, fuzzy_matching: bool
    ) -> None:
        await self.run(self.imgtest_add_args(name, png_path, size_hint, fuzzy_matching))


class UploadDispatcher:
    """Routes rendered screenshots to the golden service by execution mode.

    PRE_SUBMIT runs go to the try-job path, POST_SUBMIT runs to continuous
    ingestion. The mode is fixed for the whole process, so the two paths are
    never mixed within a run.
    """

    def __init__(self, client: GoldenClient):
        self.client = client

    async def submit(
        self,
        mode: ExecutionMode,
        filename: str,
        png_path: Path,
        size_hint: int,
        fuzzy_matching: bool = False,
    ) -> None:
        """Submit a screenshot.

        Args:
            mode: The run's execution mode (PRE_SUBMIT or POST_SUBMIT)
            filename: Screenshot file name
            png_path: The written screenshot file
            size_hint: Number of pixels of the screenshot
            fuzzy_matching: Ask the service for fuzzy instead of exact matching

        Raises:
            ValueError: For LOCAL runs, which never upload
            CollaboratorUnavailableError: If the submission fails
        """
        if mode is ExecutionMode.PRE_SUBMIT:
            call = self.client.tryjob_add
        elif mode is ExecutionMode.POST_SUBMIT:
            call = self.client.imgtest_add
        else:
            raise ValueError("Screenshots are only uploaded in pre-submit or post-submit runs")

        logger.info(f"Uploading {filename} to the golden service ({mode.value})")
        await _call_collaborator(
            f"upload of {filename}",
            call(filename, png_path, size_hint, fuzzy_matching),
        )


__all__ = [
    "GoldenClient",
    "fetch_golden",
    "accept_golden",
    "DirectoryGoldenClient",
    "fuzzy_optional_keys",
    "GoldctlClient",
    "UploadDispatcher",
]
