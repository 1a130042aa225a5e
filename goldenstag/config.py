"""Golden comparison configuration.

Settings are read once from ``GOLDENSTAG_*`` environment variables. The
execution mode and directories of a run are captured in an immutable
:class:`RunConfig` which is threaded through every comparison, so a batch of
comparisons never observes a change of mode partway through.
"""
from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from .mode import ExecutionMode, resolve_mode


class Settings(BaseSettings):
    """Comparison settings."""

    # Paths
    BASE_DIR: Path = Field(default_factory=Path.cwd)
    RESULTS_DIR: Path | None = None  # <BASE_DIR>/tmp/test_results
    SCREENSHOTS_DIR: Path | None = None  # <BASE_DIR>/tmp/screenshots
    GOLDENS_DIR: Path | None = None  # <BASE_DIR>/goldens
    GOLDCTL_WORK_DIR: Path | None = None  # <BASE_DIR>/tmp/goldctl

    # Golden service
    GOLDCTL_TIMEOUT: float = 120.0  # Seconds

    # Default failure threshold for the CLI
    MAX_DIFF_RATE_FAILURE: float = 0.0

    model_config = {"env_prefix": "GOLDENSTAG_"}

    @model_validator(mode="after")
    def _derive_dirs(self) -> "Settings":
        if self.RESULTS_DIR is None:
            self.RESULTS_DIR = self.BASE_DIR / "tmp" / "test_results"
        if self.SCREENSHOTS_DIR is None:
            self.SCREENSHOTS_DIR = self.BASE_DIR / "tmp" / "screenshots"
        if self.GOLDENS_DIR is None:
            self.GOLDENS_DIR = self.BASE_DIR / "goldens"
        if self.GOLDCTL_WORK_DIR is None:
            self.GOLDCTL_WORK_DIR = self.BASE_DIR / "tmp" / "goldctl"
        if math.isnan(self.MAX_DIFF_RATE_FAILURE) or self.MAX_DIFF_RATE_FAILURE < 0.0:
            raise ValueError("MAX_DIFF_RATE_FAILURE must be a non-negative number")
        return self

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> Settings:
        """Read settings from an environment snapshot instead of ``os.environ``.

        Only ``GOLDENSTAG_*`` entries naming a known setting are used.
        """
        prefix = cls.model_config["env_prefix"]
        values = {
            key[len(prefix):]: value
            for key, value in environ.items()
            if key.startswith(prefix) and key[len(prefix):] in cls.model_fields
        }
        return _SnapshotSettings(**values)


class _SnapshotSettings(Settings):
    """Settings taken from init values only, ignoring the process environment."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def ensure_dir(path: Path) -> Path:
    """Create a directory if it doesn't exist.

    Safe to call concurrently from several workers.

    Args:
        path: Directory path

    Returns:
        The same path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass(frozen=True)
class RunConfig:
    """Immutable per-process configuration of a comparison run."""

    mode: ExecutionMode
    results_dir: Path
    screenshots_dir: Path
    goldens_dir: Path

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> RunConfig:
        """Build the run configuration from an environment snapshot.

        Args:
            environ: Environment variables (defaults to ``os.environ``)
            settings: Settings instance (defaults to one read from ``environ``,
                so an injected snapshot also controls the directories)

        Returns:
            The run configuration
        """
        if settings is None:
            settings = Settings() if environ is None else Settings.from_environ(environ)
        if environ is None:
            environ = dict(os.environ)
        return cls(
            mode=resolve_mode(environ),
            results_dir=settings.RESULTS_DIR,
            screenshots_dir=settings.SCREENSHOTS_DIR,
            goldens_dir=settings.GOLDENS_DIR,
        )

    def screenshot_path(self, filename: str) -> Path:
        """Get the path the candidate screenshot is written to."""
        return self.screenshots_dir / filename


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Get the process-wide settings (read once)."""
    return Settings()


@lru_cache(maxsize=None)
def get_run_config() -> RunConfig:
    """Get the process-wide run configuration.

    The environment is evaluated on the first call only; later calls return
    the same value for the rest of the process.
    """
    return RunConfig.from_environment(settings=get_settings())


__all__ = [
    "Settings",
    "RunConfig",
    "ensure_dir",
    "get_settings",
    "get_run_config",
]
