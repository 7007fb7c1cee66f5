"""
Variant attribute normalization (sizes and colors).
"""

import re
from typing import Dict, Optional, Tuple

from ..models import SourceVariant

DEFAULT_SIZE = 'One Size'

_MONTH_RANGE_RE = re.compile(
    r'^(\d{1,2})\s*(?:-|to|~)\s*(\d{1,2})\s*(?:m|mo|mos|mth|mths|month|months)\.?$',
    re.IGNORECASE,
)
_HEX_RE = re.compile(r'#([0-9A-Fa-f]{6})\b')


def normalize_size(raw: str, size_map: Dict[str, str]) -> str:
    """
    Map a marketplace size label to the catalog's canonical form.

    Lookup table first, then month ranges ("3-6 months" -> "3-6M").
    Unknown labels pass through trimmed.
    """
    value = (raw or '').strip()
    if not value:
        return DEFAULT_SIZE

    key = re.sub(r'\s+', ' ', value.lower())
    if key in size_map:
        return size_map[key]

    match = _MONTH_RANGE_RE.match(key)
    if match:
        return f"{int(match.group(1))}-{int(match.group(2))}M"

    return value


def split_color(raw: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a color attribute into (name, "#RRGGBB").

    Example:
        >>> split_color("Pink #ffc0cb")
        ('Pink', '#FFC0CB')
    """
    value = (raw or '').strip()
    if not value:
        return None, None

    match = _HEX_RE.search(value)
    if not match:
        return value, None

    code = f"#{match.group(1).upper()}"
    name = re.sub(r'\s+', ' ', _HEX_RE.sub(' ', value)).strip(' -/()')
    return name or code, code


def is_size_key(key: str) -> bool:
    return 'size' in key.lower()


def is_color_key(key: str) -> bool:
    lower = key.lower()
    return 'color' in lower or 'colour' in lower


def extract_attributes(variant: SourceVariant, size_map: Dict[str, str]) -> Dict[str, Optional[str]]:
    """
    Pull size, color and color_code out of a variant's attributes.

    Returns:
        Dict with keys size (always set), color, color_code
    """
    size = DEFAULT_SIZE
    color = None
    color_code = None

    for key, value in variant.attributes.items():
        if is_size_key(key):
            size = normalize_size(value, size_map)
        if is_color_key(key):
            color, color_code = split_color(value)

    return {'size': size, 'color': color, 'color_code': color_code}


def variant_display_name(variant: SourceVariant, size_map: Dict[str, str]) -> str:
    """
    Human-readable variant name: attribute values joined with " - ".

    Falls back to the marketplace name, then "Default".
    """
    parts = []
    for key, value in variant.attributes.items():
        value = str(value).strip()
        if not value:
            continue
        if is_size_key(key):
            parts.append(normalize_size(value, size_map))
        elif is_color_key(key):
            parts.append(split_color(value)[0])
        else:
            parts.append(value)

    return ' - '.join(parts) or (variant.name or '').strip() or 'Default'
