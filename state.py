"""
state.py: host shell around the contaminate engine.

ContaminateSession owns two image slots, the current input and the last output,
each behind its own lock. `generate` copies the input under its lock, runs the
(slow) pixel loop with no lock held, then installs the result under the output
lock. If the input is replaced while a run is in flight, that run finishes on
its snapshot; concurrent runs install in completion order.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Mapping, Optional, Union

import numpy as np

from codec import FileFetcher, ImageLoader, encode, resize_to_bound, save_raster
from contaminate import DEFAULT_SEED, distort
from errors import InvalidParameter
from raster import Raster
from styles import Style

log = logging.getLogger("contaminate.state")

PLACEHOLDER_SIZE = (1024, 924)


def default_raster() -> Raster:
    """The placeholder shown before any image is loaded: three flat color regions."""
    w, h = PLACEHOLDER_SIZE
    arr = np.full((h, w, 4), 255, np.uint8)
    arr[: h // 2, : w // 2] = (150, 55, 10, 255)
    arr[h // 2 + 1:, w // 2 + 1:] = (140, 135, 165, 255)
    return Raster(arr)


class ContaminateSession:
    def __init__(
        self,
        image: Optional[Raster] = None,
        *,
        fetcher: Optional[FileFetcher] = None,
        loader: Optional[ImageLoader] = None,
        seed: Optional[int] = DEFAULT_SEED,
    ) -> None:
        img = image if image is not None else default_raster()
        self.fetcher = fetcher or FileFetcher()
        self.loader = loader or ImageLoader()
        self.seed = seed
        self._in_lock = threading.Lock()
        self._out_lock = threading.Lock()
        self._input = img
        self._output = img

    @property
    def input(self) -> Raster:
        with self._in_lock:
            return self._input

    @property
    def output(self) -> Raster:
        with self._out_lock:
            return self._output

    def set_input(self, raster: Raster) -> None:
        with self._in_lock:
            self._input = raster

    def load(self, src: str, *, max_size: Optional[int] = None) -> Raster:
        """Fetch + decode `src` (path, file:// or http(s) URL) and make it the input."""
        raw, ctype = self.fetcher.fetch(src)
        raster = self.loader.load(raw, ctype, max_size=max_size)
        self.set_input(raster)
        log.info("Loaded %s (%dx%d)", src, raster.width, raster.height)
        return raster

    def generate(
        self,
        scale: float,
        bias: float = 0.0,
        style: Union[Style, str] = "always",
        *,
        multipliers: Optional[Mapping[str, float]] = None,
    ) -> Raster:
        # Raster is immutable, so holding a reference is a point-in-time copy
        snapshot = self.input
        t0 = time.perf_counter()
        out = distort(snapshot, scale, bias, style, self.seed, multipliers=multipliers)
        dt = time.perf_counter() - t0
        with self._out_lock:
            self._output = out
        log.info("Generated %dx%d style=%s scale=%g bias=%g in %.1f ms",
                 out.width, out.height, style if isinstance(style, str) else style.name, scale, bias, dt * 1000)
        return out

    def save(self, path: Union[str, Path]) -> Path:
        return save_raster(self.output, path)

    def show(self) -> bytes:
        """PNG bytes of the current input."""
        return encode(self.input, "PNG")

    def preview(self, which: str = "input", max_dimension: int = 1024) -> Raster:
        if which == "input":
            raster = self.input
        elif which == "output":
            raster = self.output
        else:
            raise InvalidParameter(f"preview: expected 'input' or 'output', got {which!r}")
        return resize_to_bound(raster, max_dimension)
