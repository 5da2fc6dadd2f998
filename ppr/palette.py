"""
Palette store: load, validate and index Base16/Base24 palette files (YAML) by name.
One store per invocation; files are read-only apart from save().
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import yaml

from .colors import normalize_hex
from .errors import MalformedPaletteError, PaletteNotFoundError, PersistenceError

logger = logging.getLogger(__name__)

BASE16_KEYS: tuple[str, ...] = tuple(f"base{i:02X}" for i in range(16))
BASE24_KEYS: tuple[str, ...] = BASE16_KEYS + tuple(f"base{i:02X}" for i in range(16, 24))

REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    "base16": BASE16_KEYS,
    "base24": BASE24_KEYS,
}
SYSTEMS = tuple(REQUIRED_KEYS)
VARIANTS = ("dark", "light", "any")
PALETTE_SUFFIXES = (".yaml", ".yml")


def canonical_key(key: str) -> str:
    """'base0a' / 'BASE0A' -> 'base0A'. Raises ValueError if not a baseXX key."""
    k = str(key).strip()
    if len(k) != 6 or k[:4].lower() != "base":
        raise ValueError(f"not a placeholder key: {key!r}")
    digits = k[4:]
    try:
        int(digits, 16)
    except ValueError:
        raise ValueError(f"not a placeholder key: {key!r}") from None
    return "base" + digits.upper()


@dataclass(frozen=True)
class Palette:
    """A named Base16/Base24 palette. entries maps required keys to canonical #RRGGBB."""
    system: str
    name: str
    author: str = ""
    variant: str = "any"
    entries: dict[str, str] = field(default_factory=dict)

    @property
    def required_keys(self) -> tuple[str, ...]:
        return REQUIRED_KEYS[self.system]


def parse_palette(data: Any, default_name: str = "", source: Path | None = None) -> Palette:
    """
    Validate a decoded palette document against the fixed schema.
    Fails fast with MalformedPaletteError on the first problem.
    """
    if not isinstance(data, dict):
        raise MalformedPaletteError("palette document must be a mapping", source)
    system = data.get("system")
    if not system:
        raise MalformedPaletteError("missing 'system' field", source)
    system = str(system).strip()
    if system not in REQUIRED_KEYS:
        raise MalformedPaletteError(f"unsupported system: {system}", source)

    raw = data.get("palette")
    if not isinstance(raw, dict):
        raise MalformedPaletteError("missing 'palette' mapping", source)

    by_key: dict[str, Any] = {}
    for k, v in raw.items():
        try:
            by_key[canonical_key(k)] = v
        except ValueError:
            logger.warning("%s: ignoring unknown palette key %r", source or default_name, k)

    required = REQUIRED_KEYS[system]
    entries: dict[str, str] = {}
    for key in required:
        if key not in by_key:
            raise MalformedPaletteError(f"missing required color: {key}", source)
        try:
            entries[key] = normalize_hex(str(by_key[key]))
        except ValueError as e:
            raise MalformedPaletteError(f"bad value for {key}", source) from e
    extra = sorted(set(by_key) - set(required))
    if extra:
        logger.warning("%s: ignoring keys outside %s: %s", source or default_name, system, ", ".join(extra))

    variant = str(data.get("variant") or "any").strip().lower()
    if variant not in VARIANTS:
        raise MalformedPaletteError(f"unsupported variant: {variant}", source)

    return Palette(
        system=system,
        name=str(data.get("name") or default_name),
        author=str(data.get("author") or ""),
        variant=variant,
        entries=entries,
    )


def load_palette_file(path: Path) -> Palette:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise MalformedPaletteError("cannot read palette file", path) from e
    except yaml.YAMLError as e:
        raise MalformedPaletteError("invalid YAML", path) from e
    return parse_palette(data, default_name=path.stem, source=path)


class _Quoted(str):
    pass


class _PaletteDumper(yaml.SafeDumper):
    pass


_PaletteDumper.add_representer(
    _Quoted, lambda dumper, data: dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style='"')
)


def format_palette(palette: Palette) -> str:
    """Canonical serialization: quoted values, entries in required-key order, two-space indent."""
    doc = {
        "system": _Quoted(palette.system),
        "name": _Quoted(palette.name),
        "author": _Quoted(palette.author),
        "variant": _Quoted(palette.variant),
        "palette": {
            key: _Quoted(palette.entries[key]) for key in palette.required_keys if key in palette.entries
        },
    }
    return yaml.dump(
        doc,
        Dumper=_PaletteDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        indent=2,
        width=float("inf"),
    )


class PaletteStore:
    """In-memory index of palette files under <root>/base16 and <root>/base24."""

    def __init__(self, root_dir: Path | str):
        self.root = Path(root_dir)
        self._palettes: dict[str, Palette] = {}

    def load(self) -> "PaletteStore":
        """Scan both system directories. Bad files are logged and skipped."""
        self._palettes.clear()
        for system in SYSTEMS:
            d = self.root / system
            if not d.is_dir():
                continue
            for path in sorted(d.iterdir()):
                if not path.is_file() or path.suffix.lower() not in PALETTE_SUFFIXES:
                    continue
                try:
                    palette = load_palette_file(path)
                except MalformedPaletteError as e:
                    logger.warning("Skipping palette %s", e)
                    continue
                if path.stem in self._palettes:
                    logger.warning("Palette %s defined more than once; using %s", path.stem, path)
                self._palettes[path.stem] = palette
        logger.debug("Loaded %d palettes from %s", len(self._palettes), self.root)
        return self

    def get(self, name: str) -> Palette:
        """Exact lookup, then retry without a base16-/base24- prefix."""
        if name in self._palettes:
            return self._palettes[name]
        for prefix in ("base16-", "base24-"):
            if name.startswith(prefix):
                short = name[len(prefix):]
                if short in self._palettes:
                    return self._palettes[short]
                break
        raise PaletteNotFoundError(name, self.root)

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except PaletteNotFoundError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._palettes)

    def names(self) -> list[str]:
        return sorted(self._palettes)

    def palettes(self, variant: str | None = None) -> Iterator[tuple[str, Palette]]:
        for name in self.names():
            p = self._palettes[name]
            if variant and p.variant != variant:
                continue
            yield name, p

    def path_for(self, palette: Palette) -> Path:
        return self.root / palette.system / f"{palette.name}.yaml"

    def save(self, palette: Palette) -> Path:
        """Write the canonical form to <root>/<system>/<name>.yaml and index it."""
        path = self.path_for(palette)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(format_palette(palette), encoding="utf-8")
        except OSError as e:
            raise PersistenceError("failed to write palette", path) from e
        self._palettes[palette.name] = palette
        logger.info("Saved palette %s to %s", palette.name, path)
        return path
