"""Palette colors from text (hex codes) and from image bytes."""

from __future__ import annotations

import io
import re
from collections import Counter
from typing import List

from PIL import Image

MAX_PALETTE_COLORS = 12
IMAGE_PALETTE_COLORS = 5
CHANNEL_PRECISION = 16
SAMPLE_SIZE = 4000
MIN_ALPHA = 16

_HEX_RE = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")


def _expand_hex(value: str) -> str:
    digits = value.lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits.upper()}"


def extract_hex_colors(text: str, limit: int = MAX_PALETTE_COLORS) -> List[str]:
    """Distinct ``#RRGGBB`` colors mentioned in ``text``, in order of appearance."""
    colors: List[str] = []
    for match in _HEX_RE.finditer(text or ""):
        color = _expand_hex(match.group(0))
        if color not in colors:
            colors.append(color)
        if len(colors) >= limit:
            break
    return colors


def _quantize(channel: int) -> int:
    return min(255, int(round(channel / CHANNEL_PRECISION)) * CHANNEL_PRECISION)


def extract_palette(image_bytes: bytes, max_colors: int = IMAGE_PALETTE_COLORS) -> List[str]:
    """Most frequent quantized colors of an image as ``#RRGGBB`` strings.

    Roughly ``SAMPLE_SIZE`` pixels are sampled; near-transparent pixels are
    ignored. Raises ``PIL.UnidentifiedImageError`` for undecodable input.
    """
    with Image.open(io.BytesIO(image_bytes)) as image:
        rgba = image.convert("RGBA")
        raw = rgba.tobytes()

    pixel_count = len(raw) // 4
    if pixel_count == 0:
        return []
    step = max(1, pixel_count // SAMPLE_SIZE)

    counts: Counter = Counter()
    for idx in range(0, pixel_count, step):
        offset = idx * 4
        red, green, blue, alpha = raw[offset:offset + 4]
        if alpha < MIN_ALPHA:
            continue
        counts[(_quantize(red), _quantize(green), _quantize(blue))] += 1

    return ["#{:02X}{:02X}{:02X}".format(*rgb) for rgb, _ in counts.most_common(max_colors)]
