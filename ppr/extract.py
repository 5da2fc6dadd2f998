"""
Palette synthesis: build a new base16 palette from a swatch SVG.

Labeled mode pairs each swatch shape with a "baseXX" text label in the same <g>.
If no labels are found, the 16 distinct colors of the document are taken in order.
"""
import logging
import re
import xml.etree.ElementTree as ET

from .colors import extract_colors, normalize_hex
from .errors import SynthesisError
from .palette import BASE16_KEYS, Palette, canonical_key

logger = logging.getLogger(__name__)

SHAPE_TAGS = ("rect", "circle", "ellipse", "path", "polygon")
SENTINEL_FILLS = {"#222222"}  # label backgrounds in common swatch sheets

_LABEL_RE = re.compile(r"\bbase([0-9A-Fa-f]{2})\b")
_CLASS_RULE_RE = re.compile(r"([^{}]+)\{([^}]*)\}")
_FILL_DECL_RE = re.compile(r"(?:^|;)\s*fill\s*:\s*([^;]+)", re.IGNORECASE)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _iter_local(root: ET.Element, name: str):
    for el in root.iter():
        if _local(el.tag) == name:
            yield el


def _usable_fill(value: str | None) -> str | None:
    """Canonical hex for a literal fill; None for none/url()/sentinels/non-hex."""
    if not value:
        return None
    value = value.strip()
    if "url(" in value:
        return None
    try:
        color = normalize_hex(value)
    except ValueError:
        return None
    if color in SENTINEL_FILLS:
        return None
    return color


def _style_fill(style: str | None) -> str | None:
    if not style:
        return None
    m = _FILL_DECL_RE.search(style)
    return m.group(1).strip() if m else None


def css_class_fills(root: ET.Element) -> dict[str, str]:
    """Class name -> fill value from <defs><style> rules ('.a, .b { fill: #123456; }')."""
    fills: dict[str, str] = {}
    for defs in _iter_local(root, "defs"):
        for style in _iter_local(defs, "style"):
            css = style.text or ""
            for selectors, body in _CLASS_RULE_RE.findall(css):
                fill = _style_fill(body)
                if fill is None:
                    continue
                for sel in selectors.split(","):
                    sel = sel.strip()
                    if sel.startswith(".") and len(sel) > 1:
                        fills[sel[1:].split(":")[0].strip()] = fill.strip()
    return fills


def _shape_fill(el: ET.Element, class_fills: dict[str, str]) -> str | None:
    for candidate in (el.get("fill"), _style_fill(el.get("style"))):
        color = _usable_fill(candidate)
        if color:
            return color
    for cls in (el.get("class") or "").split():
        color = _usable_fill(class_fills.get(cls))
        if color:
            return color
    return None


def _group_label(group: ET.Element) -> str | None:
    for text in _iter_local(group, "text"):
        m = _LABEL_RE.search("".join(text.itertext()))
        if m:
            return canonical_key("base" + m.group(1))
    return None


def labeled_colors(doc_text: str) -> dict[str, str]:
    """base key -> color from labeled swatch groups. Unparsable documents yield {}."""
    try:
        root = ET.fromstring(doc_text)
    except ET.ParseError as e:
        logger.debug("Labeled extraction skipped, document is not well-formed XML: %s", e)
        return {}
    class_fills = css_class_fills(root)
    colors: dict[str, str] = {}
    for group in _iter_local(root, "g"):
        label = _group_label(group)
        if label is None or label not in BASE16_KEYS:
            continue
        fill = None
        for child in group:
            if _local(child.tag) in SHAPE_TAGS:
                fill = _shape_fill(child, class_fills)
                if fill:
                    break
        if fill:
            colors[label] = fill
    return colors


def ordered_swatch_colors(doc_text: str) -> dict[str, str]:
    colors = extract_colors(doc_text)
    if len(colors) != len(BASE16_KEYS):
        raise SynthesisError(f"expected 16 distinct colors, found {len(colors)}", colors)
    return dict(zip(BASE16_KEYS, colors))


def synthesize_palette(doc_text: str, palette_name: str) -> Palette:
    """Extract a base16 palette. Labeled groups first, ordered swatches as fallback."""
    colors = labeled_colors(doc_text)
    if colors:
        missing = [k for k in BASE16_KEYS if k not in colors]
        if missing:
            found = [f"{k}={colors[k]}" for k in BASE16_KEYS if k in colors]
            raise SynthesisError(
                f"expected 16 labeled colors, found {len(colors)} (missing {', '.join(missing)})",
                found,
            )
    else:
        colors = ordered_swatch_colors(doc_text)
    return Palette(
        system="base16",
        name=palette_name,
        author="extracted",
        variant="dark",
        entries={k: colors[k] for k in BASE16_KEYS},
    )
