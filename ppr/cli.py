"""
CLI: themed wallpapers from SVG templates and Base16/Base24 palettes.
Usage:
  ppr init
  ppr list-themes --details --variant dark
  ppr generate --theme nord --template geometric-simple.svg --resolution 2560x1440
  ppr switch-current gruvbox-dark -w
  ppr cycle
  ppr convert-template -i design.svg --from-theme nord
  ppr batch-convert *.svg --from-theme nord
  ppr extract-colors swatches.svg my-theme
"""
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from . import __version__
from .config import (
    SessionState,
    default_state,
    ensure_directories,
    get_config_path,
    load_state,
    save_state,
)
from .convert import BASE16_GUIDE, batch_convert, collect_inputs, convert_file
from .display import ResolutionFormatError, parse_resolution
from .errors import ConversionError, PersistenceError, PPRError
from .extract import synthesize_palette
from .palette import VARIANTS, PaletteStore
from .pipeline import (
    GenerationResult,
    cycle_template,
    generate,
    set_wallpaper_from_image,
    switch_current,
)
from .template import find_placeholders, find_templates

logger = logging.getLogger(__name__)


def _resolution_arg(value: str):
    try:
        return parse_resolution(value)
    except ResolutionFormatError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _add_output_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--output", "-o", type=Path, default=None, help="Output directory (default: output_path from config).")
    p.add_argument("--filename", "-f", default=None, help="Output filename for the named variant.")
    p.add_argument("--resolution", "-r", type=_resolution_arg, default=None, help="Output resolution, e.g. 1920x1080.")
    p.add_argument("--svg", action="store_true", help="Write the themed SVG instead of a PNG.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ppr",
        description="Programmable Palette Renderer: themed wallpapers from SVG templates and base16/base24 palettes.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML (default: ~/.config/ppr/config.yaml).")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create the config file and directories.")
    p.add_argument("--force", "-f", action="store_true", help="Overwrite existing configuration.")

    p = sub.add_parser("list-themes", help="List available palettes.")
    p.add_argument("--details", "-d", action="store_true", help="Show palette details.")
    p.add_argument("--variant", "-v", choices=VARIANTS, default=None, help="Filter by variant.")

    p = sub.add_parser("list-templates", help="List available SVG templates.")
    p.add_argument("--details", "-d", action="store_true", help="Show template details.")

    p = sub.add_parser("generate", help="Generate a themed wallpaper from a template.")
    p.add_argument("--theme", "-t", required=True, help="Palette name to apply.")
    p.add_argument("--template", "-s", default=None, help="Template name or path (default: default_template).")
    p.add_argument("--set-wallpaper", "-w", action="store_true", help="Set the result as wallpaper.")
    _add_output_args(p)

    p = sub.add_parser("switch-current", help="Apply another palette to the current template.")
    p.add_argument("theme", help="Palette name to switch to.")
    p.add_argument("--set-wallpaper", "-w", action="store_true", help="Set the result as wallpaper.")
    _add_output_args(p)

    p = sub.add_parser("cycle", help="Cycle through preferred templates and set the wallpaper.")
    p.add_argument("theme", nargs="?", default=None, help="Palette name (default: current palette).")
    p.add_argument("--no-set-wallpaper", dest="set_wallpaper", action="store_false", help="Only write the image.")
    _add_output_args(p)

    p = sub.add_parser("set-wallpaper", help="Set an image as wallpaper.")
    p.add_argument("image", type=Path, help="Image path.")

    p = sub.add_parser("extract-colors", help="Create a palette from a swatch SVG.")
    p.add_argument("svg_file", type=Path, help="SVG with 16 swatches (labeled base00..base0F or in order).")
    p.add_argument("theme_name", help="Name of the new palette.")

    p = sub.add_parser("convert-template", help="Turn an SVG into a template with base16 placeholders.")
    p.add_argument("--input", "-i", type=Path, required=True, help="Input SVG file.")
    p.add_argument("--output", "-o", default=None, help="Template name (default: <input>-template).")
    p.add_argument("--map", "-m", action="append", default=[], help="color=placeholder, e.g. '#2E3440=base00' (repeatable, comma lists allowed).")
    p.add_argument("--interactive", action="store_true", help="Prompt for each color.")
    p.add_argument("--from-theme", default=None, help="Map colors found in this palette automatically.")

    p = sub.add_parser("batch-convert", help="Convert several SVGs to templates with one palette.")
    p.add_argument("files", nargs="*", help="SVG files.")
    p.add_argument("--input", dest="pattern", default=None, help="Glob pattern, e.g. '*.svg'.")
    p.add_argument("--input-dir", type=Path, default=None, help="Directory of SVG files.")
    p.add_argument("--files", dest="file_list", action="append", default=[], help="Comma-separated SVG files.")
    p.add_argument("--from-theme", required=True, help="Palette used for color mapping.")
    p.add_argument("--output-dir", type=Path, default=None, help="Output directory (default: templates_path).")
    p.add_argument("--suffix", default="-template", help="Suffix for output filenames.")

    sub.add_parser("version", help="Print version information.")
    return parser


def _save(state: SessionState, config_path: Path | None) -> None:
    try:
        save_state(state, config_path)
    except PersistenceError as e:
        logger.warning("Failed to save current state: %s", e)


def _split_list(values: list[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        out.extend(s.strip() for s in v.split(",") if s.strip())
    return out


def _report(result: GenerationResult) -> None:
    if result.svg_path:
        print(f"SVG: {result.svg_path}")
    if result.current_path:
        if not result.svg_path:
            print(f"Wallpaper: {result.named_path}")
        print(f"Current wallpaper: {result.current_path}")
    if result.timestamped_path:
        print(f"Saved copy: {result.timestamped_path}")
    if result.wallpaper_set:
        print("Wallpaper set successfully!")


def cmd_init(args: argparse.Namespace) -> int:
    path = args.config or get_config_path()
    if path.exists() and not args.force:
        print(f"Configuration already exists at {path}. Use --force to overwrite.", file=sys.stderr)
        return 1
    state = default_state()
    save_state(state, path)
    ensure_directories(state)
    print(f"Configuration initialized at: {path}")
    print(f"Themes directory: {state.themes_path}")
    print(f"Templates directory: {state.templates_path}")
    print(f"Output directory: {state.output_path}")
    print()
    print("Put base16/base24 palettes under <themes>/base16 and <themes>/base24, then try:")
    print("   ppr list-themes")
    print("   ppr generate --theme nord --template geometric-simple.svg")
    return 0


def cmd_list_themes(args: argparse.Namespace, state: SessionState) -> int:
    store = PaletteStore(state.themes_path).load()
    entries = list(store.palettes(args.variant))
    if not len(store):
        print("No themes found. Make sure your themes directory is configured correctly.")
        print(f"Themes path: {state.themes_path}")
        return 0
    if args.details:
        print(f"Found {len(entries)} themes:\n")
        for name, p in entries:
            print(name)
            print(f"   Name: {p.name}")
            print(f"   Author: {p.author}")
            print(f"   System: {p.system}")
            print(f"   Variant: {p.variant}")
            print(f"   Colors: {len(p.entries)}")
            print()
    else:
        print(f"Available themes ({len(entries)}):")
        for name, _ in entries:
            print(f"  - {name}")
    return 0


def cmd_list_templates(args: argparse.Namespace, state: SessionState) -> int:
    templates = find_templates(state.templates_path)
    if not templates:
        print("No templates found. Make sure your templates directory is configured correctly.")
        print(f"Templates path: {state.templates_path}")
        return 0
    if args.details:
        print(f"Found {len(templates)} templates:\n")
        for name in templates:
            path = Path(state.templates_path) / name
            stat = path.stat()
            keys = find_placeholders(path.read_text(encoding="utf-8", errors="replace"))
            print(name)
            print(f"   Size: {stat.st_size} bytes")
            print(f"   Modified: {datetime.fromtimestamp(stat.st_mtime):%Y-%m-%d %H:%M:%S}")
            print(f"   Placeholders: {', '.join(keys) if keys else '(none)'}")
            print()
    else:
        print(f"Available templates ({len(templates)}):")
        for name in templates:
            print(f"  - {name}")
    return 0


def cmd_generate(args: argparse.Namespace, state: SessionState) -> int:
    ensure_directories(state)
    result = generate(
        state, args.theme, args.template,
        resolution=args.resolution, set_wallpaper=args.set_wallpaper,
        output_dir=args.output, filename=args.filename, svg=args.svg,
    )
    _report(result)
    _save(state, args.config)
    return 0


def cmd_switch_current(args: argparse.Namespace, state: SessionState) -> int:
    ensure_directories(state)
    result = switch_current(
        state, args.theme,
        resolution=args.resolution, set_wallpaper=args.set_wallpaper,
        output_dir=args.output, filename=args.filename, svg=args.svg,
    )
    print(f"Switched to theme '{args.theme}' ({result.template})")
    _report(result)
    _save(state, args.config)
    return 0


def cmd_cycle(args: argparse.Namespace, state: SessionState) -> int:
    ensure_directories(state)
    result = cycle_template(
        state, args.theme,
        resolution=args.resolution, set_wallpaper=args.set_wallpaper,
        output_dir=args.output, filename=args.filename, svg=args.svg,
    )
    print(f"Cycled to template '{result.template}' with theme '{result.palette_name}'")
    _report(result)
    _save(state, args.config)
    return 0


def cmd_set_wallpaper(args: argparse.Namespace) -> int:
    path = set_wallpaper_from_image(args.image)
    print(f"Wallpaper set successfully: {path}")
    return 0


def cmd_extract_colors(args: argparse.Namespace, state: SessionState) -> int:
    try:
        text = args.svg_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConversionError("failed to read SVG file", args.svg_file) from e
    palette = synthesize_palette(text, args.theme_name)
    path = PaletteStore(state.themes_path).save(palette)
    print(f"Successfully extracted colors and created theme '{palette.name}'")
    print(f"Theme saved to: {path}")
    print("\nExtracted colors:")
    for key in palette.required_keys:
        print(f"  {key}: {palette.entries[key]}")
    return 0


def _ask_stdin(color: str) -> str:
    try:
        return input(f"Map color {color} to which base16 placeholder? (base00-base0F, or 'skip'): ")
    except EOFError:
        return ""


def cmd_convert_template(args: argparse.Namespace, state: SessionState) -> int:
    ensure_directories(state)
    palette = None
    ask = None
    if args.from_theme:
        palette = PaletteStore(state.themes_path).load().get(args.from_theme)
    elif args.interactive:
        print("Base16 color meanings:")
        for key, meaning in BASE16_GUIDE:
            print(f"  {key}: {meaning}")
        print()
        ask = _ask_stdin
    result = convert_file(
        args.input, Path(state.templates_path),
        palette=palette, pairs=_split_list(args.map), ask=ask, name=args.output,
    )
    print(f"Found {len(result.colors)} unique colors in the SVG")
    for color, key in result.mapping.items():
        print(f"  {color} -> {key}")
    if result.unmapped:
        print("\nThese colors were not mapped and remain unchanged:")
        for color in result.unmapped:
            print(f"  {color}")
        print("Use --map for manual mappings or --interactive for guided mapping.")
    print(f"\nTemplate created: {result.output_path}")
    print(f"Applied {len(result.mapping)} color mappings")
    return 0


def cmd_batch_convert(args: argparse.Namespace, state: SessionState) -> int:
    ensure_directories(state)
    palette = PaletteStore(state.themes_path).load().get(args.from_theme)
    inputs = collect_inputs(
        list(args.files) + _split_list(args.file_list),
        pattern=args.pattern,
        directory=args.input_dir,
    )
    output_dir = args.output_dir or Path(state.templates_path)
    print(f"Processing {len(inputs)} SVG files with theme '{args.from_theme}':")
    result = batch_convert(inputs, palette, output_dir, suffix=args.suffix)
    for converted in result.converted:
        print(f"  Created: {converted.output_path} (mapped {len(converted.mapping)}/{len(converted.colors)} colors)")
    for source, message in result.failed:
        print(f"  Error: {message}")
    print("\nBatch conversion completed:")
    print(f"  Successful: {len(result.converted)}")
    print(f"  Failed: {len(result.failed)}")
    print(f"  Total: {result.total}")
    return 1 if result.failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        if args.command == "version":
            print(f"ppr version {__version__}")
            return 0
        if args.command == "init":
            return cmd_init(args)
        if args.command == "set-wallpaper":
            return cmd_set_wallpaper(args)

        state = load_state(args.config)
        handlers = {
            "list-themes": cmd_list_themes,
            "list-templates": cmd_list_templates,
            "generate": cmd_generate,
            "switch-current": cmd_switch_current,
            "cycle": cmd_cycle,
            "extract-colors": cmd_extract_colors,
            "convert-template": cmd_convert_template,
            "batch-convert": cmd_batch_convert,
        }
        return handlers[args.command](args, state)
    except PPRError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
