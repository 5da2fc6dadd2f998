"""
Pipeline: palette + template -> wallpaper image. Composes the palette store, binder, rasterizer
and platform adapters for the three user-facing flows (generate, switch current, cycle).

Every flow writes the canonical <output>/current.png plus a named variant
<output>/ppr/<palette>/<template>.png, optionally installs the result as wallpaper, and
records the new selection on the session state. Saving the state is left to the caller.
"""
import logging
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePath

from .config import ALL_TEMPLATES, SessionState, get_output_dir
from .display import Resolution, ResolutionProbe, default_probe
from .errors import (
    NotFoundError,
    PersistenceError,
    ResolutionProbeError,
    TemplateNotFoundError,
    WallpaperInstallError,
)
from .palette import Palette, PaletteStore
from .render import render
from .template import bind, find_templates, read_template, resolve_template_path, template_stem, write_svg
from .wallpaper import WallpaperSetter, default_setter

logger = logging.getLogger(__name__)

CURRENT_NAME = "current.png"
TEMP_PREFIX = "current_temp_"
TEMP_MAX_AGE_SECONDS = 3600
VARIANTS_DIR = "ppr"


@dataclass
class GenerationResult:
    palette_name: str
    template: str
    current_path: Path | None
    named_path: Path
    timestamped_path: Path | None = None
    svg_path: Path | None = None
    wallpaper_path: Path | None = None
    wallpaper_set: bool = False
    reused: bool = False
    resolution: Resolution | None = None

    @property
    def output_path(self) -> Path:
        """What the session records as last output: installed copy, else current.png, else the SVG."""
        return self.wallpaper_path or self.current_path or self.svg_path or self.named_path


def _timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


def _copy(src: Path, dst: Path) -> Path:
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
    except OSError as e:
        raise PersistenceError(f"failed to copy {src}", dst) from e
    return dst


def resolve_resolution(
    state: SessionState,
    resolution: Resolution | None = None,
    probe: ResolutionProbe | None = None,
) -> Resolution:
    """Explicit resolution, else the display probe, else the configured defaults."""
    if resolution is not None:
        return resolution
    probe = probe or default_probe()
    try:
        return probe.primary_resolution()
    except ResolutionProbeError as e:
        fallback = Resolution(state.default_width, state.default_height)
        logger.warning("Failed to detect resolution, using default %s: %s", fallback, e)
        return fallback


def sweep_temp_copies(
    output_root: Path,
    *,
    max_age: float = TEMP_MAX_AGE_SECONDS,
    now: float | None = None,
    keep: Path | None = None,
) -> list[Path]:
    """Delete current_temp_*.png older than max_age seconds. Returns the removed paths."""
    now = time.time() if now is None else now
    removed: list[Path] = []
    if not output_root.is_dir():
        return removed
    for path in output_root.glob(f"{TEMP_PREFIX}*.png"):
        if keep is not None and path == keep:
            continue
        try:
            if now - path.stat().st_mtime > max_age:
                path.unlink()
                removed.append(path)
        except OSError as e:
            logger.debug("Could not remove stale wallpaper copy %s: %s", path, e)
    return removed


def install_wallpaper(
    image: Path,
    output_root: Path,
    setter: WallpaperSetter | None = None,
    *,
    now: datetime | None = None,
    cache_bust: bool = True,
) -> tuple[Path, bool]:
    """
    Install a fresh current_temp_<ts>.png copy of image as wallpaper (or image itself when
    cache_bust is off). Returns (path handed to the setter, success). Failures are warnings.
    """
    target = image
    if cache_bust:
        copy = output_root / f"{TEMP_PREFIX}{_timestamp(now)}.png"
        try:
            _copy(image, copy)
            target = copy
            sweep_temp_copies(output_root, now=(now.timestamp() if now else None), keep=copy)
        except PersistenceError as e:
            logger.warning("Failed to create temp wallpaper file, using %s: %s", image, e)
    setter = setter or default_setter()
    try:
        setter.set_wallpaper(target.resolve())
    except WallpaperInstallError as e:
        logger.warning("Failed to set wallpaper: %s", e)
        return target, False
    logger.info("Wallpaper set: %s", target)
    return target, True


def set_wallpaper_from_image(image_path: Path, setter: WallpaperSetter | None = None) -> Path:
    """Install an arbitrary image. Raises on failure (this is the whole operation)."""
    path = Path(image_path).expanduser()
    if not path.is_file():
        raise NotFoundError("image not found", path)
    (setter or default_setter()).set_wallpaper(path.resolve())
    return path


def _load_palette(state: SessionState, name: str, store: PaletteStore | None) -> Palette:
    store = store or PaletteStore(state.themes_path).load()
    return store.get(name)


def _produce(
    state: SessionState,
    palette_name: str,
    template_name: str,
    *,
    reuse: bool,
    timestamped: bool,
    resolution: Resolution | None,
    set_wallpaper: bool,
    output_dir: Path | str | None,
    filename: str | None,
    svg: bool,
    store: PaletteStore | None,
    probe: ResolutionProbe | None,
    setter: WallpaperSetter | None,
    now: datetime | None,
) -> GenerationResult:
    palette = _load_palette(state, palette_name, store)
    template_path = resolve_template_path(template_name, state.templates_path)
    bound = bind(read_template(template_path), palette, source=template_path)

    out_root = get_output_dir(state, output_dir)
    named_dir = out_root / VARIANTS_DIR / palette_name
    stem = template_stem(template_name)
    base_name = Path(filename).stem if filename else stem
    named_png = named_dir / f"{base_name}.png"
    result = GenerationResult(
        palette_name=palette_name,
        template=template_name,
        current_path=None,
        named_path=named_png,
    )

    if svg:
        svg_path = named_dir / f"{base_name}.svg"
        if reuse and svg_path.exists():
            logger.info("Reusing existing SVG: %s", svg_path)
        else:
            write_svg(bound, svg_path)
            logger.info("Generated SVG: %s", svg_path)
        result.svg_path = svg_path
        result.named_path = svg_path

    want_wallpaper = set_wallpaper or state.auto_set_wallpaper
    if not svg or want_wallpaper:
        if reuse and named_png.exists():
            logger.info("Reusing existing wallpaper: %s", named_png)
            result.reused = True
        else:
            res = resolve_resolution(state, resolution, probe)
            render(bound, res.width, res.height, named_png)
            result.resolution = res
            logger.info("Generated wallpaper: %s (%s)", named_png, res)
        if not svg:
            result.named_path = named_png
        if timestamped:
            result.timestamped_path = _copy(
                named_png, out_root / VARIANTS_DIR / f"{palette_name}-{stem}-{_timestamp(now)}.png"
            )
        result.current_path = _copy(named_png, out_root / CURRENT_NAME)
        logger.info("Current wallpaper saved as: %s", result.current_path)

        if want_wallpaper:
            result.wallpaper_path, result.wallpaper_set = install_wallpaper(
                result.current_path, out_root, setter, now=now
            )

    record_selection(state, palette_name, template_name, result.output_path)
    return result


def record_selection(state: SessionState, palette_name: str, template_name: str, output_path: Path) -> None:
    state.current_theme = palette_name
    state.current_template = template_name
    state.last_output_path = str(output_path)


def generate(
    state: SessionState,
    palette_name: str,
    template_name: str | None = None,
    *,
    resolution: Resolution | None = None,
    set_wallpaper: bool = False,
    output_dir: Path | str | None = None,
    filename: str | None = None,
    svg: bool = False,
    store: PaletteStore | None = None,
    probe: ResolutionProbe | None = None,
    setter: WallpaperSetter | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    """Render palette_name into template_name (default template when omitted). Always re-renders."""
    if not template_name:
        template_name = state.default_template
        logger.info("Using default template: %s", template_name)
    return _produce(
        state, palette_name, template_name,
        reuse=False, timestamped=True,
        resolution=resolution, set_wallpaper=set_wallpaper, output_dir=output_dir,
        filename=filename, svg=svg, store=store, probe=probe, setter=setter, now=now,
    )


def switch_current(
    state: SessionState,
    palette_name: str,
    *,
    resolution: Resolution | None = None,
    set_wallpaper: bool = False,
    output_dir: Path | str | None = None,
    filename: str | None = None,
    svg: bool = False,
    store: PaletteStore | None = None,
    probe: ResolutionProbe | None = None,
    setter: WallpaperSetter | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    """Apply a new palette to the current template (default template if none recorded)."""
    template_name = state.current_template
    if not template_name:
        template_name = state.default_template
        logger.info("No current template found, using default: %s", template_name)
    else:
        logger.info("Using current template: %s", template_name)
    return _produce(
        state, palette_name, template_name,
        reuse=True, timestamped=False,
        resolution=resolution, set_wallpaper=set_wallpaper, output_dir=output_dir,
        filename=filename, svg=svg, store=store, probe=probe, setter=setter, now=now,
    )


def templates_to_cycle(state: SessionState) -> list[str]:
    """preferred_templates, with 'all' expanded to every template under the templates path."""
    preferred = list(state.preferred_templates or [])
    if not preferred:
        raise TemplateNotFoundError("no preferred templates configured")
    if ALL_TEMPLATES in preferred:
        templates = find_templates(state.templates_path)
    else:
        templates = preferred
    if not templates:
        raise TemplateNotFoundError("no templates available to cycle through", state.templates_path)
    return templates


def next_template(templates: list[str], current: str) -> str:
    """Element after current (wrapping); the first element when current is not in the list."""
    if not templates:
        raise TemplateNotFoundError("no templates available to cycle through")
    current_base = PurePath(current).name if current else ""
    for i, t in enumerate(templates):
        if t == current or (current_base and PurePath(t).name == current_base):
            return templates[(i + 1) % len(templates)]
    return templates[0]


def cycle_template(
    state: SessionState,
    palette_name: str | None = None,
    *,
    resolution: Resolution | None = None,
    set_wallpaper: bool = True,
    output_dir: Path | str | None = None,
    filename: str | None = None,
    svg: bool = False,
    store: PaletteStore | None = None,
    probe: ResolutionProbe | None = None,
    setter: WallpaperSetter | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    """Move to the next preferred template, keeping (or setting) the palette."""
    palette_name = palette_name or state.current_theme
    if not palette_name:
        palette_name = state.default_theme
        logger.info("No current or specified theme, using default: %s", palette_name)
    template_name = next_template(templates_to_cycle(state), state.current_template)
    logger.info("Cycling to template: %s", template_name)
    return _produce(
        state, palette_name, template_name,
        reuse=True, timestamped=False,
        resolution=resolution, set_wallpaper=set_wallpaper, output_dir=output_dir,
        filename=filename, svg=svg, store=store, probe=probe, setter=setter, now=now,
    )
