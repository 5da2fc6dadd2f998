"""
Reverse color mapping: turn an existing SVG into a template by replacing its colors
with {{baseXX}} placeholders. Mappings come from a palette, explicit color=key pairs,
or an interactive prompt.
"""
import glob
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from .colors import extract_colors, normalize_hex
from .errors import ConversionError, MappingError, PersistenceError
from .palette import BASE16_KEYS, Palette, canonical_key
from .template import placeholder

logger = logging.getLogger(__name__)

MODES = ("by_palette", "interactive", "explicit")
SKIP = "skip"

# Shown before interactive prompts.
BASE16_GUIDE = (
    ("base00-base03", "background shades (darkest to lighter)"),
    ("base04-base07", "foreground shades (darker to lightest)"),
    ("base08", "red"),
    ("base09", "orange"),
    ("base0A", "yellow"),
    ("base0B", "green"),
    ("base0C", "cyan"),
    ("base0D", "blue"),
    ("base0E", "purple"),
    ("base0F", "brown"),
)


@dataclass
class ConversionResult:
    source: Path
    output_path: Path | None
    colors: list[str]
    mapping: dict[str, str]
    unmapped: list[str]


@dataclass
class BatchResult:
    converted: list[ConversionResult] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.converted) + len(self.failed)


def reverse_index(palette: Palette) -> dict[str, str]:
    """color -> key over required keys in order; the first key wins when colors collide."""
    index: dict[str, str] = {}
    for key in palette.required_keys:
        index.setdefault(palette.entries[key].upper(), key)
    return index


def map_by_palette(colors: Iterable[str], palette: Palette) -> tuple[dict[str, str], list[str]]:
    index = reverse_index(palette)
    mapping: dict[str, str] = {}
    unmapped: list[str] = []
    for color in colors:
        key = index.get(color)
        if key is None:
            unmapped.append(color)
        else:
            mapping[color] = key
    return mapping, unmapped


def _base16_key(value: str) -> str | None:
    try:
        key = canonical_key(value)
    except ValueError:
        return None
    return key if key in BASE16_KEYS else None


def parse_explicit_mappings(pairs: Iterable[str]) -> dict[str, str]:
    """Parse 'color=placeholder' pairs, e.g. '#2E3440=base00'."""
    mapping: dict[str, str] = {}
    for pair in pairs:
        if pair.count("=") != 1:
            raise MappingError(f"expected color=placeholder, got {pair!r}")
        raw_color, raw_key = (s.strip() for s in pair.split("="))
        try:
            color = normalize_hex(raw_color)
        except ValueError as e:
            raise MappingError(f"invalid color in mapping {pair!r}") from e
        key = _base16_key(raw_key)
        if key is None:
            raise MappingError(f"invalid placeholder in mapping {pair!r} (expected base00-base0F)")
        mapping[color] = key
    return mapping


def prompt_mappings(colors: Iterable[str], ask: Callable[[str], str]) -> tuple[dict[str, str], list[str]]:
    """
    Ask for a base16 key per color. ask(color) returns the raw answer;
    'skip' or an empty answer leaves the color unmapped.
    """
    mapping: dict[str, str] = {}
    unmapped: list[str] = []
    for color in colors:
        answer = (ask(color) or "").strip()
        if answer.lower() == SKIP or not answer:
            unmapped.append(color)
            continue
        key = _base16_key(answer)
        if key is None:
            logger.warning("Invalid placeholder %r for %s, skipping", answer, color)
            unmapped.append(color)
            continue
        mapping[color] = key
    return mapping, unmapped


def map_to_palette(
    doc_text: str,
    palette: Palette | None,
    mode: str = "by_palette",
    *,
    pairs: Iterable[str] | None = None,
    ask: Callable[[str], str] | None = None,
) -> tuple[dict[str, str], list[str]]:
    """Map the document's colors to placeholders. Returns (mapping, unmapped colors)."""
    colors = extract_colors(doc_text)
    if mode == "by_palette":
        if palette is None:
            raise MappingError("by_palette mapping needs a palette")
        return map_by_palette(colors, palette)
    if mode == "explicit":
        mapping = parse_explicit_mappings(pairs or [])
        return mapping, [c for c in colors if c not in mapping]
    if mode == "interactive":
        if ask is None:
            raise MappingError("interactive mapping needs a prompt")
        return prompt_mappings(colors, ask)
    raise ValueError(f"unknown mapping mode: {mode} (expected one of {', '.join(MODES)})")


# 6-digit tokens anywhere; 3-digit shorthand only as a fill/stroke value (url(#add), href="#bed" stay).
_HEX_TOKEN_RE = re.compile(
    r"""(?P<niche>(?<![\w-])(?:fill|stroke)\s*(?:=\s*["']|:\s*))(?P<short>\#[0-9A-Fa-f]{3})(?![0-9A-Fa-f])"""
    r"""|(?P<long>\#[0-9A-Fa-f]{6})(?![0-9A-Fa-f])"""
)


def _shorthand(color: str) -> str | None:
    """'#AABBCC' -> '#ABC'; None when the color has no 3-digit form."""
    d = color[1:]
    if d[0] == d[1] and d[2] == d[3] and d[4] == d[5]:
        return "#" + d[0] + d[2] + d[4]
    return None


def rewrite(doc_text: str, mapping: dict[str, str]) -> str:
    """
    Replace each mapped color, in upper and lower case, with its placeholder.
    Single pass over hex tokens, so inserted placeholders are never rewritten again.
    """
    if not mapping:
        return doc_text
    table: dict[str, str] = {}
    for color, key in mapping.items():
        token = placeholder(key)
        forms = [color]
        short = _shorthand(color)
        if short:
            forms.append(short)
        for form in forms:
            table[form.upper()] = token
            table[form.lower()] = token

    def _sub(m: re.Match) -> str:
        if m.group("short"):
            return m.group("niche") + table.get(m.group("short"), m.group("short"))
        return table.get(m.group("long"), m.group("long"))

    return _HEX_TOKEN_RE.sub(_sub, doc_text)


def _read_svg(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConversionError("failed to read SVG", path) from e


def _write_template(text: str, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise PersistenceError("failed to write template", path) from e


def output_name(source: Path, name: str | None = None, suffix: str = "-template") -> str:
    if not name:
        name = Path(source).stem + suffix
    if not name.endswith(".svg"):
        name += ".svg"
    return name


def convert_file(
    source: Path,
    output_dir: Path,
    *,
    palette: Palette | None = None,
    pairs: Iterable[str] | None = None,
    ask: Callable[[str], str] | None = None,
    name: str | None = None,
    suffix: str = "-template",
) -> ConversionResult:
    """
    Convert one SVG into a template under output_dir. Mode follows the arguments given.
    A document with no colors, or one where nothing was mapped, is a ConversionError
    and no file is written.
    """
    source = Path(source)
    text = _read_svg(source)
    colors = extract_colors(text)
    if not colors:
        raise ConversionError("no colors found in SVG", source)
    if palette is not None:
        mode = "by_palette"
    elif ask is not None:
        mode = "interactive"
    else:
        mode = "explicit"
    mapping, unmapped = map_to_palette(text, palette, mode, pairs=pairs, ask=ask)
    if not mapping:
        if palette is not None:
            raise ConversionError(f"no colors from the SVG matched palette {palette.name}", source)
        raise ConversionError("no color mappings given", source)
    out = Path(output_dir) / output_name(source, name, suffix)
    _write_template(rewrite(text, mapping), out)
    if unmapped:
        logger.warning("%s: %d colors left unchanged: %s", source, len(unmapped), ", ".join(unmapped))
    logger.info("Template created: %s (%d color mappings)", out, len(mapping))
    return ConversionResult(
        source=source,
        output_path=out,
        colors=colors,
        mapping=mapping,
        unmapped=unmapped,
    )


def collect_inputs(
    files: Iterable[str | Path] = (),
    pattern: str | None = None,
    directory: Path | str | None = None,
) -> list[Path]:
    """SVG inputs from explicit files, a glob pattern and a directory, deduplicated in order."""
    found: list[Path] = []
    for f in files:
        if str(f).lower().endswith(".svg"):
            found.append(Path(f))
    if pattern:
        found.extend(Path(p) for p in sorted(glob.glob(pattern)))
    if directory:
        d = Path(directory)
        if not d.is_dir():
            raise ConversionError("input directory not found", d)
        found.extend(p for p in sorted(d.iterdir()) if p.is_file() and p.suffix.lower() == ".svg")
    seen: dict[Path, None] = {}
    for p in found:
        seen.setdefault(p, None)
    return list(seen)


def batch_convert(
    inputs: list[Path],
    palette: Palette,
    output_dir: Path,
    suffix: str = "-template",
) -> BatchResult:
    """Convert many SVGs with one palette. Per-file failures are recorded, not raised."""
    if not inputs:
        raise ConversionError("no SVG files found to process")
    result = BatchResult()
    for source in inputs:
        try:
            converted = convert_file(Path(source), Path(output_dir), palette=palette, suffix=suffix)
        except (ConversionError, PersistenceError) as e:
            logger.warning("Failed to convert %s", e)
            result.failed.append((Path(source), str(e)))
            continue
        logger.info(
            "Created %s (mapped %d/%d colors)",
            converted.output_path, len(converted.mapping), len(converted.colors),
        )
        result.converted.append(converted)
    return result
