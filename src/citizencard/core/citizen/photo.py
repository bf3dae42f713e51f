"""Budget-constrained JPEG encoding for the on-card photo.

compress_to_budget() runs a fixed two-phase search: quality first on the
pre-scaled image, then scale and quality together. The search order and
encoder settings are fixed so the same input always yields the same bytes.
"""

from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from citizencard.core.base.errors import CannotFitBudget
from citizencard.core.citizen.constants import PHOTO_BUDGET

lg = logging.getLogger(__name__)

MAX_DIMENSION = 800
MAX_SOURCE_SIZE = 50 * 1024 * 1024

# JPEG quality on Pillow's 1..95 scale (0.9 -> 90)
QUALITY_STEPS = (90, 80, 70, 60, 50)
SCALE_QUALITIES = (70, 50)
SCALE_FACTORS = tuple(step / 10 for step in range(9, 0, -1))

_WHITE = (255, 255, 255)
_RESAMPLE = Image.Resampling.LANCZOS

JPEG_SIGNATURE = b"\xff\xd8"
PNG_SIGNATURE = b"\x89PNG"


@dataclass
class PhotoInfo:
    width: int | None
    height: int | None
    format_name: str
    length: int

    def __str__(self) -> str:
        if self.width is None:
            return f"{self.format_name} ({self.length} bytes, unreadable)"
        return f"{self.width}x{self.height}, {self.format_name} ({self.length} bytes)"


def _normalize(image: Image.Image) -> Image.Image:
    """Flatten any transparency onto white and convert to RGB."""
    # A tRNS colour key lives in info, not in an alpha band
    if image.mode in ("P", "PA") or "transparency" in image.info:
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, _WHITE)
        background.paste(image.convert("RGBA"), mask=image.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _prescale(image: Image.Image) -> Image.Image:
    width, height = image.size
    longest = max(width, height)
    if longest <= MAX_DIMENSION:
        return image
    ratio = MAX_DIMENSION / longest
    size = (
        MAX_DIMENSION if width == longest else max(1, round(width * ratio)),
        MAX_DIMENSION if height == longest else max(1, round(height * ratio)),
    )
    lg.debug("pre-scale %dx%d -> %dx%d", width, height, *size)
    return image.resize(size, _RESAMPLE)


def _encode(image: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality, subsampling=2, optimize=False)
    return buf.getvalue()


def compress_to_budget(image: Image.Image, max_bytes: int = PHOTO_BUDGET) -> bytes:
    """Encode image as a JPEG no larger than max_bytes.

    Raises CannotFitBudget if no combination of scale and quality fits.
    """
    if max_bytes <= 0:
        raise ValueError(f"budget must be positive: {max_bytes}")

    base = _prescale(_normalize(image))
    smallest = None

    for quality in QUALITY_STEPS:
        data = _encode(base, quality)
        lg.debug("quality %d: %d bytes", quality, len(data))
        if len(data) <= max_bytes:
            lg.info("photo %dx%d q%d: %d bytes", *base.size, quality, len(data))
            return data
        smallest = len(data) if smallest is None else min(smallest, len(data))

    width, height = base.size
    for factor in SCALE_FACTORS:
        size = (max(1, int(width * factor)), max(1, int(height * factor)))
        scaled = base.resize(size, _RESAMPLE)
        for quality in SCALE_QUALITIES:
            data = _encode(scaled, quality)
            lg.debug("scale %.1f (%dx%d) quality %d: %d bytes", factor, *size, quality, len(data))
            if len(data) <= max_bytes:
                lg.info("photo %dx%d q%d: %d bytes", *size, quality, len(data))
                return data
            smallest = min(smallest, len(data))

    raise CannotFitBudget(max_bytes, smallest)


def decompress(data: bytes) -> Image.Image | None:
    """Decode photo bytes, or None if they are not a readable image."""
    if not data:
        lg.warning("photo is empty")
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (
        OSError,
        ValueError,
        SyntaxError,
        EOFError,
        IndexError,
        struct.error,
        Image.DecompressionBombError,
    ) as exc:
        lg.warning("cannot decode photo (%d bytes): %s", len(data), exc)
        return None
    return image


def format_name(data: bytes) -> str:
    if data.startswith(JPEG_SIGNATURE):
        return "JPEG"
    if data.startswith(PNG_SIGNATURE):
        return "PNG"
    return "Unknown"


def describe(data: bytes) -> PhotoInfo:
    """Best-effort metadata for display. Format comes from signature bytes."""
    image = decompress(data) if data else None
    return PhotoInfo(
        width=image.width if image is not None else None,
        height=image.height if image is not None else None,
        format_name=format_name(data),
        length=len(data),
    )


def load_source(path: str | Path) -> Image.Image:
    """Open a source photo from disk after basic validation."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"file not found: {path}")
    if not path.is_file():
        raise ValueError(f"not a file: {path}")
    size = path.stat().st_size
    if size == 0:
        raise ValueError(f"file is empty: {path}")
    if size > MAX_SOURCE_SIZE:
        raise ValueError(f"file too large (max 50MB): {path}")
    image = decompress(path.read_bytes())
    if image is None:
        raise ValueError(f"not a valid image file: {path}")
    lg.info("source photo %s: %dx%d %s", path.name, image.width, image.height, image.mode)
    return image
