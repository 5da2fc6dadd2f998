"""
Color helpers shared by the palette store, the reverse mapper and the extractor.
Canonical form is "#RRGGBB" with uppercase hex digits.
"""
import re

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")

# fill="#abc" / stroke='#AABBCC' (attribute form) or fill: #abc (inline style / CSS form).
# One alternation so matches come back in document order across both niches.
# Suffixed attributes such as data-fill are not colors.
_COLOR_RE = re.compile(
    r"""(?:(?<![\w-])(?:fill|stroke)\s*=\s*["'](\#[0-9a-f]{6}|\#[0-9a-f]{3})["'])"""
    r"""|(?:(?<![\w-])(?:fill|stroke)\s*:\s*(\#[0-9a-f]{6}|\#[0-9a-f]{3})\b)""",
    re.IGNORECASE,
)


def normalize_hex(value: str) -> str:
    """
    Canonicalize a hex color. Accepts an optional leading '#', 3 or 6 hex digits, any case.
    Raises ValueError for anything else.
    """
    if not isinstance(value, str):
        raise ValueError(f"color must be a string, got {type(value).__name__}")
    m = _HEX_RE.match(value.strip())
    if not m:
        raise ValueError(f"invalid hex color: {value!r}")
    digits = m.group(1).upper()
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits}"


def extract_colors(doc_text: str) -> list[str]:
    """
    Colors used by fill/stroke in an SVG document, canonicalized, first occurrence first.
    Only literal hex values are collected (named colors, url(...) and placeholders are ignored).
    """
    seen: dict[str, None] = {}
    for m in _COLOR_RE.finditer(doc_text):
        raw = m.group(1) or m.group(2)
        seen.setdefault(normalize_hex(raw), None)
    return list(seen)
