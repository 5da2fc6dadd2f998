"""
Template binder: substitute {{baseXX}} placeholders in an SVG template with palette colors.
Substitution is purely textual; the document is never parsed here.
"""
import logging
import re
from pathlib import Path

from .errors import (
    MalformedTemplateError,
    PersistenceError,
    TemplateNotFoundError,
    UnresolvedPlaceholderError,
)
from .palette import Palette

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{(base[0-9A-Fa-f]{2})\}\}")
TEMPLATE_SUFFIX = ".svg"


def _canonical(key: str) -> str:
    return "base" + key[4:].upper()


def placeholder(key: str) -> str:
    """'base0D' -> '{{base0D}}'."""
    return "{{" + key + "}}"


def find_placeholders(text: str) -> list[str]:
    """Canonical placeholder keys in order of first occurrence."""
    seen: dict[str, None] = {}
    for m in PLACEHOLDER_RE.finditer(text):
        seen.setdefault(_canonical(m.group(1)), None)
    return list(seen)


def bind(template_text: str, palette: Palette, source: Path | None = None) -> str:
    """
    Replace every {{baseXX}} with the palette's value in one pass (values are not re-scanned).
    Raises UnresolvedPlaceholderError if any placeholder survives, MalformedTemplateError if the
    result is not an SVG document.
    """
    entries = palette.entries

    def _sub(m: re.Match) -> str:
        return entries.get(_canonical(m.group(1)), m.group(0))

    bound = PLACEHOLDER_RE.sub(_sub, template_text)
    leftover = find_placeholders(bound)
    if leftover:
        raise UnresolvedPlaceholderError(leftover, source)
    if "<svg" not in bound:
        raise MalformedTemplateError("missing <svg> element", source)
    return bound


def find_templates(root: Path | str) -> list[str]:
    """All .svg files under root (recursive) as sorted relative paths with '/' separators."""
    root = Path(root)
    if not root.is_dir():
        return []
    found = [
        p.relative_to(root).as_posix()
        for p in root.rglob("*")
        if p.is_file() and p.suffix.lower() == TEMPLATE_SUFFIX
    ]
    return sorted(found)


def resolve_template_path(name: str, root: Path | str) -> Path:
    """Absolute names are used as-is; relative names live under root. Adds .svg if no suffix."""
    path = Path(name).expanduser()
    if not path.is_absolute():
        path = Path(root) / path
    if path.suffix == "":
        path = path.with_suffix(TEMPLATE_SUFFIX)
    return path


def template_stem(name: str) -> str:
    """'shapes/waves.svg' -> 'waves'."""
    base = Path(name).name
    if base.lower().endswith(TEMPLATE_SUFFIX):
        base = base[: -len(TEMPLATE_SUFFIX)]
    return base


def read_template(path: Path) -> str:
    path = Path(path)
    if not path.is_file():
        raise TemplateNotFoundError("template not found", path)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateNotFoundError("cannot read template", path) from e


def write_svg(text: str, path: Path) -> Path:
    """Write a bound document as-is (SVG output mode)."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise PersistenceError("failed to write SVG", path) from e
    return path
