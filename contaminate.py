# contaminate.py: seeded Gaussian pixel displacement ("contaminate" effect)
# -----------------------------------------------------------------------------
# Every output pixel is resampled from a randomly displaced source pixel. The
# displacement is Gaussian (mean = bias, sd = scale * multiplier * W / 4000) and
# the final color is chosen by a Style (see styles.py).
#
# Usage:
#   from contaminate import distort
#   out = distort(raster, scale=40, bias=0, style="darkest")
#
# Notes:
# - The RNG is re-seeded on every run, so identical inputs give identical output.
# - Samples are consumed x-major (outer x, inner y), dx before dy. Changing that
#   order changes every pixel for a given seed.
# - Candidates are always read from the untouched input raster.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from errors import InvalidParameter
from raster import Raster
from styles import ALWAYS, STYLES, Style

__all__ = ["DEFAULT_SEED", "DisplacementSampler", "resolve", "resolve_many", "distort", "get_params"]

log = logging.getLogger("contaminate.engine")

DEFAULT_SEED = 0
SPREAD_DIVISOR = 4000.0
OFFSET_LIMIT = float(2 ** 62)
# pixels per column band; bounds the engine's scratch memory regardless of image size
BAND_PIXELS = 1 << 18


# ============================ sampler ============================

def spread(scale: float, style: Style, width: int) -> float:
    """Standard deviation of the displacement for an image `width` pixels wide."""
    return style.effective_scale(scale) * width / SPREAD_DIVISOR


def round_half_away(v: np.ndarray) -> np.ndarray:
    """Round to nearest integer, halves away from zero (np.rint would round to even)."""
    # saturate so the int64 cast keeps the sign
    v = np.clip(np.asarray(v, dtype=np.float64), -OFFSET_LIMIT, OFFSET_LIMIT)
    return (np.sign(v) * np.floor(np.abs(v) + 0.5)).astype(np.int64)


class DisplacementSampler:
    """Reproducible stream of Gaussian offsets backed by numpy's default_rng."""

    def __init__(self, *, bias: float = 0.0, std: float = 0.0, seed: Optional[int] = DEFAULT_SEED) -> None:
        bias = float(bias)
        std = float(std)
        if not math.isfinite(bias):
            raise InvalidParameter(f"bias must be finite, got {bias!r}")
        if not std >= 0.0 or not math.isfinite(std):
            raise InvalidParameter(f"standard deviation must be finite and >= 0, got {std!r}")
        self.bias = bias
        self.std = std
        self.seed = DEFAULT_SEED if seed is None else int(seed)
        if self.seed < 0:
            raise InvalidParameter(f"seed must be >= 0, got {self.seed}")
        self._rng = np.random.default_rng(self.seed)

    @classmethod
    def for_run(cls, width: int, scale: float, bias: float, style: Style,
                seed: Optional[int] = DEFAULT_SEED) -> "DisplacementSampler":
        return cls(bias=bias, std=spread(scale, style, width), seed=seed)

    def sample(self) -> float:
        return float(self._rng.normal(self.bias, self.std))

    def offsets(self, width: int, height: int) -> np.ndarray:
        """
        Rounded (dx, dy) for every coordinate, shape (width, height, 2).

        Drawn as one C-ordered block, so element [x, y, 0] is the same draw the
        scalar loop `for x: for y: dx = sample(); dy = sample()` would produce.
        """
        raw = self._rng.normal(self.bias, self.std, size=(width, height, 2))
        return round_half_away(raw)


# ============================ boundary ============================

def resolve(coord: int, delta: int, dimension: int) -> int:
    """
    Map `coord + delta` into [0, dimension).

    Overflow past the high edge reflects the offset (coord - delta); underflow
    below zero is only clamped.
    """
    if dimension <= 0:
        raise InvalidParameter(f"dimension must be positive, got {dimension}")
    cand = coord - delta if coord + delta >= dimension else coord + delta
    return min(max(cand, 0), dimension - 1)


def resolve_many(coords: np.ndarray, deltas: np.ndarray, dimension: int) -> np.ndarray:
    """Array form of resolve()."""
    if dimension <= 0:
        raise InvalidParameter(f"dimension must be positive, got {dimension}")
    c = np.asarray(coords, dtype=np.int64)
    d = np.asarray(deltas, dtype=np.int64)
    cand = np.where(c + d >= dimension, c - d, c + d)
    return np.clip(cand, 0, dimension - 1)


# ============================ engine ============================

def distort(
    raster: Raster,
    scale: float,
    bias: float = 0.0,
    style: Union[Style, str] = ALWAYS,
    seed: Optional[int] = DEFAULT_SEED,
    *,
    multipliers: Optional[Mapping[str, float]] = None,
) -> Raster:
    """
    Contaminate `raster`; returns a new raster of the same size.

    Raises InvalidParameter before any work is done if the style is unknown,
    the seed is negative or the resulting spread is negative/NaN.
    """
    st = STYLES.resolve(style, multipliers)
    scale = float(scale)
    if not scale >= 0.0:
        raise InvalidParameter(f"scale must be >= 0, got {scale!r}")

    W, H = raster.width, raster.height
    sampler = DisplacementSampler.for_run(W, scale, bias, st, seed=seed)
    log.debug("contaminate %dx%d style=%s scale=%.3f bias=%.3f sd=%.4f seed=%d",
              W, H, st.name, scale, sampler.bias, sampler.std, sampler.seed)
    if W == 0 or H == 0:
        return Raster.blank(W, H)

    # Draws are x-major, so consecutive column bands consume the stream in order
    src = raster.pixels                  # (H, W, 4)
    out = np.empty_like(src)
    ys = np.arange(H, dtype=np.int64)[None, :]
    band = max(1, BAND_PIXELS // H)
    for x0 in range(0, W, band):
        x1 = min(W, x0 + band)
        offsets = sampler.offsets(x1 - x0, H)                    # (bw, H, 2)
        xs = np.arange(x0, x1, dtype=np.int64)[:, None]
        sx = resolve_many(xs, offsets[..., 0], W)
        sy = resolve_many(ys, offsets[..., 1], H)
        original = src[:, x0:x1].transpose(1, 0, 2)              # (bw, H, 4), indexed [x, y]
        candidate = src[sy, sx]
        out[:, x0:x1] = st.select(original, candidate).transpose(1, 0, 2)
    return Raster(out)


# ============================ parameters ============================

def get_params() -> List[Dict[str, Any]]:
    """Parameter descriptors for UIs: name, type, default, range or choices, help."""
    return [
        {
            "name": "scale",
            "type": float,
            "default": 40.0,
            "min": 0.0, "max": 200.0,
            "help": "Spread of the displacement (sd = scale * style multiplier * width / 4000)."
        },
        {
            "name": "bias",
            "type": float,
            "default": 0.0,
            "min": -100.0, "max": 100.0,
            "help": "Mean displacement in pixels."
        },
        {
            "name": "style",
            "type": str,
            "default": "always",
            "choices": STYLES.names(),
            "help": "always: take the candidate; darkest/lightest: keep whichever has lower/higher luma; mix: average."
        },
    ]
