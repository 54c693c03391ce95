# src/pagehealth/auditor/color.py
"""
WCAG 2.x color math: CSS color parsing, relative luminance and contrast ratio.

Pure functions, no I/O. Colors are normalized to (r, g, b) integer tuples.
"""
import re
from typing import Optional, Tuple, Union

RGB = Tuple[int, int, int]

# AA thresholds are the ones enforced by the contrast score
AA_NORMAL_RATIO = 4.5
AA_LARGE_RATIO = 3.0
# AAA thresholds are advisory only (normal, large)
AAA_RATIOS = (7.0, 4.5)

LARGE_TEXT_PX = 24.0
LARGE_BOLD_TEXT_PX = 18.66

NAMED_COLORS = {
    "black": (0, 0, 0), "white": (255, 255, 255), "red": (255, 0, 0),
    "green": (0, 128, 0), "blue": (0, 0, 255), "yellow": (255, 255, 0),
    "cyan": (0, 255, 255), "magenta": (255, 0, 255), "silver": (192, 192, 192),
    "gray": (128, 128, 128), "grey": (128, 128, 128), "orange": (255, 165, 0),
    "navy": (0, 0, 128), "teal": (0, 128, 128), "purple": (128, 0, 128),
    "maroon": (128, 0, 0), "lime": (0, 255, 0), "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169), "lightgray": (211, 211, 211), "lightgrey": (211, 211, 211),
}

_RGB_RE = re.compile(r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([\d.]+%?)\s*)?\)$")
_HEX6_RE = re.compile(r"^#([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$")
_HEX3_RE = re.compile(r"^#([0-9a-f])([0-9a-f])([0-9a-f])$")


def parse_color(value: Optional[str]) -> Optional[RGB]:
    """
    Parses a CSS color string into an (r, g, b) tuple.

    Accepts rgb()/rgba(), #rrggbb, #rgb and a small named-color table.
    Returns None for anything else (including 'transparent' and fully
    transparent rgba), so callers skip the element instead of failing.
    """
    if not value:
        return None
    color = value.strip().lower()
    color = color.replace("!important", "").strip()

    match = _RGB_RE.match(color)
    if match:
        alpha = match.group(4)
        if alpha is not None and _alpha_value(alpha) == 0:
            return None
        channels = tuple(int(match.group(i)) for i in (1, 2, 3))
        if any(c > 255 for c in channels):
            return None
        return channels

    match = _HEX6_RE.match(color)
    if match:
        return tuple(int(part, 16) for part in match.groups())

    match = _HEX3_RE.match(color)
    if match:
        return tuple(int(part * 2, 16) for part in match.groups())

    return NAMED_COLORS.get(color)


def _alpha_value(raw: str) -> float:
    try:
        return float(raw[:-1]) / 100 if raw.endswith("%") else float(raw)
    except ValueError:
        return 1.0


def to_hex(color: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*color)


def _linearize(channel: int) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGB) -> float:
    r, g, b = color
    return 0.2126 * _linearize(r) + 0.7152 * _linearize(g) + 0.0722 * _linearize(b)


def contrast_ratio(color_a: RGB, color_b: RGB) -> float:
    """WCAG contrast ratio, symmetric, in [1.0, 21.0]."""
    lum_a = relative_luminance(color_a)
    lum_b = relative_luminance(color_b)
    brightest = max(lum_a, lum_b)
    darkest = min(lum_a, lum_b)
    return (brightest + 0.05) / (darkest + 0.05)


def is_bold(font_weight: Union[str, int, None]) -> bool:
    if font_weight is None:
        return False
    weight = str(font_weight).strip().lower()
    if weight in ("bold", "bolder"):
        return True
    try:
        return int(float(weight)) >= 700
    except ValueError:
        return False


def is_large_text(font_size_px: float, font_weight: Union[str, int, None] = "normal") -> bool:
    return font_size_px >= LARGE_TEXT_PX or (font_size_px >= LARGE_BOLD_TEXT_PX and is_bold(font_weight))


def required_ratio(large_text: bool) -> float:
    return AA_LARGE_RATIO if large_text else AA_NORMAL_RATIO
