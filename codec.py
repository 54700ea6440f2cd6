from __future__ import annotations

import hashlib
import io
import logging
import mimetypes
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import urlparse, unquote

import requests
from PIL import Image

from errors import DecodeError, EncodeError, ImageIOError, InvalidParameter
from raster import Raster

try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    pass

log = logging.getLogger("contaminate.codec")

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp", ".bmp")


# =============== Fetch ===============
class FileFetcher:
    """Fetch bytes from http(s) / file:// / local path with a tiny on-disk cache for URLs."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "contaminate_cache"
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "contaminate/1.0 (+https://local)"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            return self._fetch_http_cached(src)
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        # bare paths, including Windows drive letters ("C:\...") that urlparse reads as a scheme
        if scheme == "" or len(scheme) == 1:
            return self._fetch_local(src)
        raise ImageIOError(f"Unsupported URL scheme: {scheme}")

    def _cache_key(self, url: str) -> Path:
        h = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{h}.bin"

    def _fetch_http_cached(self, url: str) -> Tuple[bytes, Optional[str]]:
        key = self._cache_key(url)
        if key.exists():
            log.info("Cache hit: %s", key.name)
            try:
                return key.read_bytes(), mimetypes.guess_type(url)[0]
            except OSError as e:
                log.warning("Unreadable cache entry %s (%s), refetching", key.name, e)
        log.info("Fetching: %s", url)
        try:
            r = self._session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ImageIOError(f"Failed to fetch {url}: {e}") from e
        raw = r.content
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            key.write_bytes(raw)
        except OSError as e:
            log.debug("Could not cache %s: %s", url, e)
        return raw, r.headers.get("Content-Type")

    def _fetch_local(self, path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.is_file():
            raise ImageIOError(f"Input file not found: {p}")
        try:
            raw = p.read_bytes()
        except OSError as e:
            raise ImageIOError(f"Failed to read {p}: {e}") from e
        return raw, mimetypes.guess_type(p.name)[0]


# =============== Decode / encode ===============
def decode(raw: bytes) -> Raster:
    """Decode image bytes (any format Pillow reads) into an RGBA raster."""
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except Exception as e:
        raise DecodeError(f"Failed to decode image: {e}") from e
    return Raster.from_image(img)


class ImageLoader:
    """Decode bytes → RGBA raster. Optional max-size for speed/RAM."""

    def load(self, raw: bytes, content_type: Optional[str] = None, *, max_size: Optional[int] = None) -> Raster:
        if content_type and not content_type.lower().startswith("image/"):
            log.debug("Decoding despite content type %s", content_type)
        raster = decode(raw)
        if max_size:
            raster = resize_to_bound(raster, max_size)
        return raster


def infer_format(path: Union[str, Path]) -> str:
    ext = Path(path).suffix.lower()
    if ext in (".jpg", ".jpeg"):
        return "JPEG"
    if ext == ".webp":
        return "WEBP"
    if ext == ".bmp":
        return "BMP"
    return "PNG"


def encode(raster: Raster, fmt: str = "PNG") -> bytes:
    fmt = fmt.upper()
    if raster.width == 0 or raster.height == 0:
        raise EncodeError(f"Cannot encode an empty {raster.width}x{raster.height} image")
    img = raster.to_image()
    if fmt in ("JPEG", "BMP"):
        img = img.convert("RGB")  # no alpha channel in these formats
    opts = {"optimize": True} if fmt in ("PNG", "JPEG") else {}
    buf = io.BytesIO()
    try:
        img.save(buf, format=fmt, **opts)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode {fmt}: {e}") from e
    return buf.getvalue()


def save_raster(raster: Raster, path: Union[str, Path]) -> Path:
    """Encode by file suffix (png/jpg/webp/bmp, default PNG) and write to `path`."""
    p = Path(path)
    data = encode(raster, infer_format(p))
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    except OSError as e:
        raise ImageIOError(f"Failed to write {p}: {e}") from e
    log.info("Saved %s (%dx%d)", p, raster.width, raster.height)
    return p


# =============== Preview ===============
def resize_to_bound(raster: Raster, max_dimension: int) -> Raster:
    """Aspect-preserving Lanczos downscale so the longest side is <= max_dimension."""
    if max_dimension <= 0:
        raise InvalidParameter(f"max_dimension must be positive, got {max_dimension}")
    if max(raster.width, raster.height) <= max_dimension:
        return raster
    img = raster.to_image()
    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
    return Raster.from_image(img)
