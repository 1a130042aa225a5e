"""
Pytest fixtures for goldenstag tests
"""

from pathlib import Path

import pytest

from goldenstag import DirectoryGoldenClient, ExecutionMode, Image, RunConfig


class RecordingGoldenClient(DirectoryGoldenClient):
    """Directory client which records calls and can simulate an outage."""

    def __init__(self, goldens_dir: Path):
        super().__init__(goldens_dir)
        self.calls: list[tuple] = []
        self.fail_with: Exception | None = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch(self, name):
        self.calls.append(("fetch", name))
        self._maybe_fail()
        return await super().fetch(name)

    async def accept(self, name, image):
        self.calls.append(("accept", name))
        self._maybe_fail()
        return await super().accept(name, image)

    async def tryjob_add(self, name, png_path, size_hint, fuzzy_matching):
        self.calls.append(("tryjob_add", name, png_path, size_hint, fuzzy_matching))
        self._maybe_fail()

    async def imgtest_add(self, name, png_path, size_hint, fuzzy_matching):
        self.calls.append(("imgtest_add", name, png_path, size_hint, fuzzy_matching))
        self._maybe_fail()


@pytest.fixture
def white_4x4() -> Image:
    """
    A 4x4 all-white opaque image.
    """
    return Image.solid(4, 4, (255, 255, 255, 255))


@pytest.fixture
def one_black_pixel(white_4x4) -> Image:
    """
    The white 4x4 image with the pixel at x=1, y=2 changed to black.
    """
    return white_4x4.with_pixel(1, 2, (0, 0, 0, 255))


@pytest.fixture
def run_config(tmp_path) -> RunConfig:
    """
    A local run writing everything below the test's temp directory.
    """
    return RunConfig(
        mode=ExecutionMode.LOCAL,
        results_dir=tmp_path / "results",
        screenshots_dir=tmp_path / "screenshots",
        goldens_dir=tmp_path / "goldens",
    )


@pytest.fixture
def golden_client(run_config) -> RecordingGoldenClient:
    """
    A recording client reading goldens from the run's goldens directory.
    """
    return RecordingGoldenClient(run_config.goldens_dir)


@pytest.fixture
def store_golden(run_config):
    """
    Stores an image as golden under a name.
    """
    def _store(name: str, image: Image) -> Path:
        path = run_config.goldens_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path)
        return path

    return _store
