"""Shared fixtures: small rasters and on-disk images."""
from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from codec import save_raster
from raster import Raster

BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)


@pytest.fixture
def checker() -> Raster:
    """2x2: (0,0) black, (0,1) white, (1,0) white, (1,1) black (x, y)."""
    arr = np.empty((2, 2, 4), np.uint8)
    arr[0, 0] = BLACK
    arr[1, 0] = WHITE
    arr[0, 1] = WHITE
    arr[1, 1] = BLACK
    return Raster(arr)


@pytest.fixture
def noisy() -> Raster:
    """Non-square raster with random RGBA content."""
    rng = np.random.default_rng(1234)
    return Raster(rng.integers(0, 256, size=(37, 53, 4), dtype=np.uint8))


@pytest.fixture
def png_path(tmp_path: Path, noisy: Raster) -> Path:
    return save_raster(noisy, tmp_path / "in.png")
