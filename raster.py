from __future__ import annotations

from typing import Tuple

import numpy as np
from PIL import Image

from errors import InvalidParameter

__all__ = ["Raster", "luma"]

# Rec.709 weights in fixed point, same integer rounding as 8-bit RGB -> L
LUMA_WEIGHTS = (2126, 7152, 722)
LUMA_DIV = 10000


def luma(pixels: np.ndarray) -> np.ndarray:
    """Integer luma of RGBA pixels, shape (..., 4) -> (...). Alpha is ignored."""
    arr = np.asarray(pixels, dtype=np.int64)
    r, g, b = arr[..., 0], arr[..., 1], arr[..., 2]
    return (LUMA_WEIGHTS[0] * r + LUMA_WEIGHTS[1] * g + LUMA_WEIGHTS[2] * b) // LUMA_DIV


class Raster:
    """
    Immutable RGBA image: a read-only uint8 array of shape (height, width, 4).

    The array is copied on construction, so callers may keep mutating the buffer
    they passed in without affecting the raster.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        arr = np.array(pixels, dtype=np.uint8, copy=True, order="C")
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise InvalidParameter(f"Raster needs an (H, W, 4) array, got shape {arr.shape}")
        arr.setflags(write=False)
        self._pixels = arr

    # ---- constructors ----
    @classmethod
    def blank(cls, width: int, height: int) -> "Raster":
        if width < 0 or height < 0:
            raise InvalidParameter(f"Negative raster size {width}x{height}")
        return cls(np.zeros((height, width, 4), np.uint8))

    @classmethod
    def from_image(cls, img: Image.Image) -> "Raster":
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        w, h = img.size
        if w == 0 or h == 0:
            return cls.blank(w, h)
        return cls(np.asarray(img, dtype=np.uint8))

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "Raster":
        if width < 0 or height < 0:
            raise InvalidParameter(f"Negative raster size {width}x{height}")
        expected = width * height * 4
        if len(data) != expected:
            raise InvalidParameter(f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}")
        return cls(np.frombuffer(data, np.uint8).reshape(height, width, 4))

    # ---- accessors ----
    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def get_pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} raster")
        r, g, b, a = (int(c) for c in self._pixels[y, x])
        return r, g, b, a

    def tobytes(self) -> bytes:
        return self._pixels.tobytes()

    def to_image(self) -> Image.Image:
        if self.width == 0 or self.height == 0:
            return Image.new("RGBA", self.size)
        return Image.fromarray(np.ascontiguousarray(self._pixels))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return self._pixels.shape == other._pixels.shape and bool(np.array_equal(self._pixels, other._pixels))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Raster({self.width}x{self.height})"
