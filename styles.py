"""
styles.py: pixel selection policies for the contaminate effect.

A Style bundles the two things that vary per policy:
  * `multiplier`: widens the Gaussian spread before sampling (comparison styles
    need a bigger search radius since most nearby candidates lose and the
    original is kept)
  * `select`: vectorised (original, candidate) -> output over RGBA arrays

Styles are looked up by name (case-insensitive) through the STYLES registry,
which is what the CLI and GUI use.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from errors import InvalidParameter
from raster import luma

__all__ = ["Style", "StyleRegistry", "STYLES", "ALWAYS", "DARKEST", "LIGHTEST", "MIX", "select"]

Selector = Callable[[np.ndarray, np.ndarray], np.ndarray]
Pixel = Tuple[int, int, int, int]


# =============== Selection rules ===============
def _always(original: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    return candidate


def _darkest(original: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    # strict: ties keep the original
    take = luma(candidate) < luma(original)
    return np.where(take[..., None], candidate, original)


def _lightest(original: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    take = luma(candidate) > luma(original)
    return np.where(take[..., None], candidate, original)


def _mix(original: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    # floor(0.5*c + 0.5*o) on every channel, alpha included
    total = candidate.astype(np.uint16) + original.astype(np.uint16)
    return (total // 2).astype(np.uint8)


# =============== Style ===============
@dataclass(frozen=True)
class Style:
    name: str
    multiplier: float
    selector: Selector

    def select(self, original: np.ndarray, candidate: np.ndarray) -> np.ndarray:
        """Apply the policy to matching (..., 4) uint8 arrays of pixels."""
        out = self.selector(np.asarray(original, np.uint8), np.asarray(candidate, np.uint8))
        return np.asarray(out, np.uint8)

    def select_pixel(self, original: Sequence[int], candidate: Sequence[int]) -> Pixel:
        r, g, b, a = (int(c) for c in self.select(np.asarray(original), np.asarray(candidate)))
        return r, g, b, a

    def effective_scale(self, scale: float) -> float:
        return float(scale) * self.multiplier

    def with_multiplier(self, multiplier: float) -> "Style":
        m = float(multiplier)
        if not np.isfinite(m) or m < 0:
            raise InvalidParameter(f"Style '{self.name}': multiplier must be finite and >= 0, got {multiplier!r}")
        return replace(self, multiplier=m)


ALWAYS = Style("always", 1.0, _always)
DARKEST = Style("darkest", 2.0, _darkest)
LIGHTEST = Style("lightest", 2.0, _lightest)
MIX = Style("mix", 2.5, _mix)


# =============== Registry ===============
class StyleRegistry:
    def __init__(self) -> None:
        self._by_name: Dict[str, Style] = {}

    def register(self, style: Style) -> None:
        self._by_name[style.name.strip().lower()] = style

    def names(self) -> list[str]:
        return list(self._by_name.keys())

    def get(self, name: str) -> Style:
        key = name.strip().lower()
        if key not in self._by_name:
            raise InvalidParameter(f"Unknown style '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_name[key]

    def resolve(self, style: Union[Style, str], multipliers: Optional[Mapping[str, float]] = None) -> Style:
        """Style or style name -> Style, applying a style-keyed multiplier override if given."""
        st = style if isinstance(style, Style) else self.get(str(style))
        if multipliers:
            for k, v in multipliers.items():
                if k.strip().lower() == st.name:
                    st = st.with_multiplier(v)
        return st


STYLES = StyleRegistry()
for _s in (ALWAYS, LIGHTEST, DARKEST, MIX):
    STYLES.register(_s)


def select(style: Union[Style, str], original: Sequence[int], candidate: Sequence[int]) -> Pixel:
    return STYLES.resolve(style).select_pixel(original, candidate)
