from __future__ import annotations


class ContaminateError(Exception):
    """Base class for every error raised by the contaminate modules."""


class InvalidParameter(ContaminateError, ValueError):
    """Bad distortion parameters (negative/NaN spread, unknown style, bad bounds)."""


class DecodeError(ContaminateError, ValueError):
    pass


class EncodeError(ContaminateError, ValueError):
    pass


class ImageIOError(ContaminateError, OSError):
    """Reading or writing image bytes failed (missing file, HTTP error, disk full)."""
