"""Pixel-level image comparison.

Compares a candidate image against its golden, classifying every pixel as
matched or mismatched, and renders a diff image for human inspection.

All comparisons are done on 8-bit RGBA channels. In precise mode a pixel
matches only if all four channels are identical; in fuzzy mode every channel
may differ by up to ``tolerance``.
"""
from __future__ import annotations

from enum import Enum
from typing import NamedTuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    DEFAULT_FUZZY_TOLERANCE,
    DIFF_DIM_BASE,
    DIFF_DIM_DIVISOR,
    DIFF_MISMATCH_COLOR,
    MAX_CHANNEL_VALUE,
)
from .exceptions import DimensionMismatchError
from .image import Image


class PixelComparison(Enum):
    """How two pixels are judged equal."""
    PRECISE = "precise"  # all channels identical
    FUZZY = "fuzzy"      # all channel deltas <= tolerance


class PixelComparisonMode(BaseModel):
    """Pixel equality policy, fixed for a single comparison."""

    model_config = ConfigDict(frozen=True)

    comparison: PixelComparison = PixelComparison.PRECISE
    tolerance: int = Field(default=0, ge=0, le=MAX_CHANNEL_VALUE)

    @classmethod
    def precise(cls) -> PixelComparisonMode:
        return cls(comparison=PixelComparison.PRECISE)

    @classmethod
    def fuzzy(cls, tolerance: int = DEFAULT_FUZZY_TOLERANCE) -> PixelComparisonMode:
        return cls(comparison=PixelComparison.FUZZY, tolerance=tolerance)

    @property
    def effective_tolerance(self) -> int:
        """Per-channel tolerance actually applied (0 in precise mode)."""
        if self.comparison is PixelComparison.PRECISE:
            return 0
        return self.tolerance


class DiffResult(NamedTuple):
    """Result of comparing two images."""
    rate: float
    diff_image: Image
    mismatched_pixel_count: int
    total_pixel_count: int
    max_delta: int = 0  # Maximum per-channel difference (0-255)

    @property
    def width(self) -> int:
        return self.diff_image.width

    @property
    def height(self) -> int:
        return self.diff_image.height

    @property
    def is_identical(self) -> bool:
        return self.mismatched_pixel_count == 0


def compute_mismatch_mask(
    golden: np.ndarray,
    candidate: np.ndarray,
    tolerance: int = 0,
) -> tuple[np.ndarray, int]:
    """Compute the per-pixel mismatch mask of two RGBA arrays.

    Args:
        golden: Golden pixels (H, W, 4) uint8
        candidate: Candidate pixels (H, W, 4) uint8
        tolerance: Maximum allowed per-channel difference (0-255)

    Returns:
        Tuple of (mismatch_mask, max_delta)
        - mismatch_mask: Boolean array (H, W) where True = pixel differs
        - max_delta: Maximum per-channel difference found
    """
    # int16 so the subtraction can't wrap around
    delta = np.abs(golden.astype(np.int16) - candidate.astype(np.int16))
    max_delta = int(delta.max()) if delta.size else 0

    # A pixel is "different" if ANY channel differs by more than tolerance
    mask = np.any(delta > tolerance, axis=2)
    return mask, max_delta


def render_diff_image(candidate: Image, mismatch_mask: np.ndarray) -> Image:
    """Render the diff visualization.

    Mismatched pixels are painted with DIFF_MISMATCH_COLOR, matched pixels
    show the candidate dimmed toward white so the content stays recognizable.

    Args:
        candidate: The candidate image
        mismatch_mask: Boolean array (H, W) where True = pixel differs

    Returns:
        New image with the candidate's dimensions
    """
    source = candidate.pixels
    out = np.empty_like(source)
    out[:, :, :3] = DIFF_DIM_BASE + source[:, :, :3] // DIFF_DIM_DIVISOR
    out[:, :, 3] = 255
    out[mismatch_mask] = DIFF_MISMATCH_COLOR
    return Image(out)


def compare(
    golden: Image,
    candidate: Image,
    mode: PixelComparisonMode | None = None,
) -> DiffResult:
    """Compare a candidate image with its golden.

    Deterministic and free of side effects: equal inputs always produce a
    bit-identical result.

    Args:
        golden: The reference image
        candidate: The freshly rendered image
        mode: Pixel equality policy (precise by default)

    Returns:
        DiffResult with the mismatch rate and the diff image

    Raises:
        DimensionMismatchError: If the images differ in width or height
    """
    if mode is None:
        mode = PixelComparisonMode.precise()
    if golden.size != candidate.size:
        raise DimensionMismatchError(golden.size, candidate.size)

    mask, max_delta = compute_mismatch_mask(
        golden.pixels, candidate.pixels, mode.effective_tolerance
    )
    total_pixels = int(mask.size)
    mismatched = int(np.count_nonzero(mask))
    rate = mismatched / total_pixels if total_pixels else 0.0

    return DiffResult(
        rate=rate,
        diff_image=render_diff_image(candidate, mask),
        mismatched_pixel_count=mismatched,
        total_pixel_count=total_pixels,
        max_delta=max_delta,
    )


def images_match(
    img1: Image,
    img2: Image,
    mode: PixelComparisonMode | None = None,
) -> bool:
    """Check if two images match under the given comparison mode.

    Args:
        img1: First image
        img2: Second image
        mode: Pixel equality policy (precise by default)

    Returns:
        True if no pixel differs; False on any difference, including size
    """
    if img1.size != img2.size:
        return False
    return compare(img1, img2, mode).is_identical


__all__ = [
    "PixelComparison",
    "PixelComparisonMode",
    "DiffResult",
    "compute_mismatch_mask",
    "render_diff_image",
    "compare",
    "images_match",
]
