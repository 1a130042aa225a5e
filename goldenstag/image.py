"""
Implements the class :class:`.Image`, the immutable RGBA raster compared by
goldenstag.

Screenshots and goldens are decoded into this type, the comparer reads it and
the reporter encodes it back to PNG. The pixel buffer is never modified in
place; every transformation creates a new image.
"""

from __future__ import annotations

import io
import os
from typing import Union

import numpy as np
import PIL.Image

from .constants import PNG_COMPRESS_LEVEL

ImageSourceTypes = Union[str, os.PathLike, bytes, np.ndarray, PIL.Image.Image]
"The valid source types for creating an image"


class Image:
    """
    A raster of ``width * height`` RGBA pixels, stored as a read-only numpy
    array of shape (height, width, 4) and dtype uint8.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray):
        """
        :param pixels: Pixel data with shape (height, width) for grayscale or
            (height, width, C) with C in 1, 3 or 4. Anything that isn't RGBA
            is converted to RGBA with an opaque alpha channel.

        Raises a ValueError if the array can't be interpreted as an image
        """
        pixels = np.asarray(pixels)
        if pixels.dtype != np.uint8:
            if not np.issubdtype(pixels.dtype, np.integer):
                raise ValueError(f"Unsupported pixel dtype: {pixels.dtype}")
            if pixels.size and (pixels.min() < 0 or pixels.max() > 255):
                raise ValueError("Pixel values must be within 0..255")
            pixels = pixels.astype(np.uint8)
        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]
        if pixels.ndim != 3:
            raise ValueError(f"Expected 2D or 3D pixel array, got {pixels.ndim}D")
        channels = pixels.shape[2]
        if channels == 1:
            pixels = np.repeat(pixels, 3, axis=2)
            channels = 3
        if channels == 3:
            alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels, alpha], axis=2)
        elif channels != 4:
            raise ValueError(f"Unsupported channel count: {channels}")
        pixels = np.ascontiguousarray(pixels).copy()
        pixels.setflags(write=False)
        self._pixels = pixels

    @classmethod
    def from_pil(cls, pil_image: PIL.Image.Image) -> Image:
        """
        Creates an image from a PILLOW image (any mode).

        :param pil_image: The PILLOW image
        :return: The new image
        """
        if pil_image.mode != "RGBA":
            pil_image = pil_image.convert("RGBA")
        return cls(np.array(pil_image))

    @classmethod
    def from_bytes(cls, data: bytes) -> Image:
        """
        Decodes an encoded image (PNG or any format PILLOW can read).

        :param data: The encoded image
        :return: The decoded image
        """
        with PIL.Image.open(io.BytesIO(data)) as pil_image:
            pil_image.load()
            return cls.from_pil(pil_image)

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> Image:
        """
        Loads an image from disk.

        :param path: The file path
        :return: The loaded image

        Raises FileNotFoundError if the file does not exist
        """
        with PIL.Image.open(path) as pil_image:
            pil_image.load()
            return cls.from_pil(pil_image)

    @classmethod
    def load(cls, source: ImageSourceTypes) -> Image:
        """
        Creates an image from any of the supported source types.

        :param source: File path, encoded bytes, numpy array or PILLOW image
        :return: The image
        """
        if isinstance(source, Image):
            return source
        if isinstance(source, bytes):
            return cls.from_bytes(source)
        if isinstance(source, np.ndarray):
            return cls(source)
        if isinstance(source, PIL.Image.Image):
            return cls.from_pil(source)
        if isinstance(source, (str, os.PathLike)):
            return cls.from_file(source)
        raise ValueError(f"Unsupported image source: {type(source).__name__}")

    @classmethod
    def solid(
        cls,
        width: int,
        height: int,
        color: tuple[int, int, int] | tuple[int, int, int, int] = (255, 255, 255, 255),
    ) -> Image:
        """
        Creates an image filled with a single color.

        :param width: Width in pixels
        :param height: Height in pixels
        :param color: RGB or RGBA color
        :return: The new image
        """
        if width < 0 or height < 0:
            raise ValueError(f"Invalid size: {width}x{height}")
        if len(color) == 3:
            color = (*color, 255)
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @property
    def width(self) -> int:
        "The image's width in pixels"
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        "The image's height in pixels"
        return int(self._pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        "The image's size as (width, height)"
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        "The number of pixels, width * height"
        return self.width * self.height

    @property
    def pixels(self) -> np.ndarray:
        "The read-only RGBA pixel array of shape (height, width, 4)"
        return self._pixels

    def get_pixels(self) -> np.ndarray:
        """
        Returns a writable copy of the pixel data.

        :return: RGBA array of shape (height, width, 4)
        """
        return self._pixels.copy()

    def with_pixel(
        self, x: int, y: int, color: tuple[int, int, int, int]
    ) -> Image:
        """
        Returns a copy of this image with a single pixel replaced.

        :param x: X coordinate
        :param y: Y coordinate
        :param color: The new RGBA color
        :return: The modified copy
        """
        pixels = self.get_pixels()
        pixels[y, x] = color
        return Image(pixels)

    def to_pil(self) -> PIL.Image.Image:
        """
        Converts the image to a PILLOW RGBA image.

        :return: The PILLOW image
        """
        return PIL.Image.fromarray(self._pixels)

    def to_png(self) -> bytes:
        """
        Encodes the image as PNG.

        The encoding doesn't add any metadata, so equal images always
        produce equal bytes.

        :return: The PNG data
        """
        buffer = io.BytesIO()
        self.to_pil().save(buffer, format="PNG", compress_level=PNG_COMPRESS_LEVEL)
        return buffer.getvalue()

    def save(self, path: str | os.PathLike) -> None:
        """
        Writes the image to disk as PNG.

        :param path: Target file path. The parent directory must exist.
        """
        with open(path, "wb") as f:
            f.write(self.to_png())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Image):
            return NotImplemented
        return self.size == other.size and np.array_equal(self._pixels, other._pixels)

    def __hash__(self) -> int:
        return hash((self.size, self._pixels.tobytes()))

    def __repr__(self) -> str:
        return f"Image(width={self.width}, height={self.height})"


__all__ = ["Image", "ImageSourceTypes"]
