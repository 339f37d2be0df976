"""
Font name and color mapping utilities for annotation styling
Normalizes font family names for the fallback chain and converts between
hex color strings and PDF color operands.
"""

import re
import logging
from functools import lru_cache
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_COLOR_HEX = "#000000"

_HEX_COLOR_RE = re.compile(r'^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{8}|[0-9a-fA-F]{3})$')

# Family names of the PDF base-14 fonts that every reader provides
STANDARD_FONT_NAMES = {
    'helvetica': 'Helvetica',
    'helveticabold': 'Helvetica-Bold',
    'times': 'Times-Roman',
    'timesroman': 'Times-Roman',
    'timesbold': 'Times-Bold',
    'courier': 'Courier',
    'courierbold': 'Courier-Bold',
}


@lru_cache(maxsize=128)
def normalize_family_name(font_name: str) -> str:
    """
    Strip subset prefixes and style suffixes from a font name.

    "ABCDEF+Arial-BoldMT" -> "Arial", "Malgun Gothic" -> "Malgun Gothic"
    """
    if not font_name:
        return ""

    base_name = font_name.split(',')[0].strip().strip('\'"').lstrip('/')
    base_name = re.sub(r'^[A-Z]{6}\+', '', base_name)
    base_name = re.sub(r'-(BoldItalic|Bold|Italic|Regular|Roman|MT|PS)+$', '', base_name, flags=re.IGNORECASE)
    base_name = re.sub(r'(BoldMT|MT)$', '', base_name)
    return base_name.strip()


@lru_cache(maxsize=128)
def family_key(font_name: str) -> str:
    """Lower-case, separator-free key used for table lookups."""
    return normalize_family_name(font_name).lower().replace('-', '').replace('_', '').replace(' ', '')


def standard_font_name(font_name: str, bold: bool = False) -> Optional[str]:
    """
    Map a family to its base-14 PostScript name, or None if it is not one.
    """
    key = family_key(font_name)
    if bold and key + 'bold' in STANDARD_FONT_NAMES:
        return STANDARD_FONT_NAMES[key + 'bold']
    return STANDARD_FONT_NAMES.get(key)


def parse_hex_color(color: Optional[str], default: str = DEFAULT_COLOR_HEX) -> Tuple[float, float, float]:
    """
    Convert "#RRGGBB", "#AARRGGBB" or "#RGB" into PDF rgb operands (0..1).

    Malformed input falls back to ``default`` instead of raising.
    """
    match = _HEX_COLOR_RE.match((color or '').strip())
    if not match:
        if color:
            logger.warning(f"Invalid color '{color}', using {default}")
        match = _HEX_COLOR_RE.match(default)
        if not match:
            return 0.0, 0.0, 0.0

    digits = match.group(1)
    if len(digits) == 3:
        digits = ''.join(c * 2 for c in digits)
    elif len(digits) == 8:
        # Leading alpha byte is ignored
        digits = digits[2:]

    r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    return r / 255.0, g / 255.0, b / 255.0


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """
    Convert PDF rgb operands (0..1) to an upper-case "#RRGGBB" string.
    Example: (1, 0, 0.5) -> "#FF0080"
    """
    def channel(value: float) -> int:
        return max(0, min(255, int(round(float(value) * 255))))

    return "#{:02X}{:02X}{:02X}".format(channel(r), channel(g), channel(b))


def normalize_hex_color(color: Optional[str], default: str = DEFAULT_COLOR_HEX) -> str:
    """Canonical "#RRGGBB" form of any accepted color string."""
    return rgb_to_hex(*parse_hex_color(color, default))
