"""
Generate / switch / cycle flows with a fake display probe and wallpaper setter.
Run from project root: python -m pytest tests/ -v
"""
import os
import sys
import tempfile
import time
import unittest
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ppr.display import Resolution, ResolutionProbe  # noqa: E402
from ppr.errors import ResolutionProbeError, WallpaperInstallError  # noqa: E402
from ppr.wallpaper import WallpaperSetter  # noqa: E402
from tests.test_palette import palette_yaml  # noqa: E402

SHAPE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="32" height="16">'
    '<rect width="32" height="16" fill="{{base00}}"/><circle cx="16" cy="8" r="4" fill="{{%s}}"/>'
    "</svg>"
)


class FixedProbe(ResolutionProbe):
    def __init__(self, resolution=Resolution(24, 12)):
        self.resolution = resolution
        self.calls = 0

    def primary_resolution(self):
        self.calls += 1
        return self.resolution


class BrokenProbe(ResolutionProbe):
    def primary_resolution(self):
        raise ResolutionProbeError("no display")


class RecordingSetter(WallpaperSetter):
    def __init__(self):
        self.paths = []

    def set_wallpaper(self, image_path):
        self.paths.append(Path(image_path))


class FailingSetter(WallpaperSetter):
    def set_wallpaper(self, image_path):
        raise WallpaperInstallError("desktop refused")


class PipelineTestCase(unittest.TestCase):
    def setUp(self):
        from ppr.config import SessionState

        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        themes = self.root / "themes" / "base16"
        themes.mkdir(parents=True)
        (themes / "nord.yaml").write_text(palette_yaml("nord"), encoding="utf-8")
        (themes / "paper.yaml").write_text(palette_yaml("paper", variant="light"), encoding="utf-8")
        templates = self.root / "templates"
        (templates / "sub").mkdir(parents=True)
        (templates / "a.svg").write_text(SHAPE % "base08", encoding="utf-8")
        (templates / "b.svg").write_text(SHAPE % "base0B", encoding="utf-8")
        (templates / "sub" / "c.svg").write_text(SHAPE % "base0D", encoding="utf-8")
        self.out = self.root / "out"
        self.state = SessionState(
            themes_path=str(self.root / "themes"),
            templates_path=str(templates),
            output_path=str(self.out),
            default_template="a.svg",
            default_width=20,
            default_height=10,
        )
        self.probe = FixedProbe()
        self.setter = RecordingSetter()
        self.now = datetime(2024, 5, 1, 12, 30, 0)

    def tearDown(self):
        self._tmp.cleanup()

    def kwargs(self, **extra):
        base = {"probe": self.probe, "setter": self.setter, "now": self.now}
        base.update(extra)
        return base


class TestGenerate(PipelineTestCase):
    def test_generate_writes_variant_copy_and_current(self):
        from PIL import Image

        from ppr.pipeline import generate

        result = generate(self.state, "nord", "b.svg", **self.kwargs())
        self.assertEqual(result.named_path, self.out / "ppr" / "nord" / "b.png")
        self.assertEqual(result.timestamped_path, self.out / "ppr" / "nord-b-20240501-123000.png")
        self.assertEqual(result.current_path, self.out / "current.png")
        for p in (result.named_path, result.timestamped_path, result.current_path):
            self.assertTrue(p.is_file(), p)
        with Image.open(result.current_path) as im:
            self.assertEqual(im.size, (24, 12))
        self.assertEqual(self.probe.calls, 1)
        self.assertFalse(result.wallpaper_set)
        self.assertEqual(self.setter.paths, [])
        self.assertEqual(self.state.current_theme, "nord")
        self.assertEqual(self.state.current_template, "b.svg")
        self.assertEqual(self.state.last_output_path, str(result.current_path))

    def test_generate_default_template_and_explicit_resolution(self):
        from ppr.pipeline import generate

        result = generate(self.state, "nord", resolution=Resolution(30, 30), **self.kwargs())
        self.assertEqual(result.template, "a.svg")
        self.assertEqual(result.resolution, Resolution(30, 30))
        self.assertEqual(self.probe.calls, 0)

    def test_probe_failure_falls_back_to_defaults(self):
        from ppr.pipeline import generate

        result = generate(self.state, "nord", "a.svg", **self.kwargs(probe=BrokenProbe()))
        self.assertEqual(result.resolution, Resolution(20, 10))

    def test_generate_svg_only(self):
        from ppr.pipeline import generate

        result = generate(self.state, "nord", "sub/c.svg", svg=True, filename="custom.png", **self.kwargs())
        self.assertEqual(result.svg_path, self.out / "ppr" / "nord" / "custom.svg")
        self.assertIn("#81A1C1", result.svg_path.read_text(encoding="utf-8"))
        self.assertIsNone(result.current_path)
        self.assertFalse((self.out / "current.png").exists())
        self.assertEqual(self.state.last_output_path, str(result.svg_path))

    def test_generate_and_set_wallpaper(self):
        """The setter receives a fresh timestamped copy beside current.png."""
        from ppr.pipeline import generate

        result = generate(self.state, "nord", "a.svg", set_wallpaper=True, **self.kwargs())
        expected = (self.out / "current_temp_20240501-123000.png").resolve()
        self.assertEqual(self.setter.paths, [expected])
        self.assertTrue(result.wallpaper_set)
        self.assertEqual(self.state.last_output_path, str(result.wallpaper_path))

    def test_setter_failure_is_not_fatal(self):
        from ppr.pipeline import generate

        result = generate(self.state, "nord", "a.svg", set_wallpaper=True, **self.kwargs(setter=FailingSetter()))
        self.assertFalse(result.wallpaper_set)
        self.assertTrue(result.current_path.is_file())

    def test_unknown_palette(self):
        from ppr.errors import PaletteNotFoundError
        from ppr.pipeline import generate

        with self.assertRaises(PaletteNotFoundError):
            generate(self.state, "solarized", "a.svg", **self.kwargs())
        self.assertEqual(self.state.current_theme, "")

    def test_missing_template(self):
        from ppr.errors import TemplateNotFoundError
        from ppr.pipeline import generate

        with self.assertRaises(TemplateNotFoundError):
            generate(self.state, "nord", "missing.svg", **self.kwargs())


class TestSwitchAndCycle(PipelineTestCase):
    def test_switch_reuses_existing_variant(self):
        from ppr.pipeline import generate, switch_current

        generate(self.state, "paper", "b.svg", **self.kwargs())
        self.probe.calls = 0
        first = switch_current(self.state, "nord", **self.kwargs())
        self.assertEqual(first.template, "b.svg")
        self.assertFalse(first.reused)
        second = switch_current(self.state, "nord", **self.kwargs())
        self.assertTrue(second.reused)
        self.assertIsNone(second.timestamped_path)
        self.assertEqual(self.probe.calls, 1)
        self.assertEqual(self.state.current_theme, "nord")

    def test_switch_without_current_uses_default(self):
        from ppr.pipeline import switch_current

        result = switch_current(self.state, "nord", **self.kwargs())
        self.assertEqual(result.template, "a.svg")

    def test_cycle_orbit(self):
        """Cycling |T| times from any template returns to it, visiting each once."""
        from ppr.pipeline import cycle_template

        self.state.current_theme = "nord"
        seen = []
        for _ in range(3):
            seen.append(cycle_template(self.state, **self.kwargs()).template)
        self.assertEqual(seen, ["a.svg", "b.svg", "sub/c.svg"])
        self.assertEqual(cycle_template(self.state, **self.kwargs()).template, "a.svg")
        self.assertEqual(len(self.setter.paths), 4)

    def test_cycle_preferred_list_and_theme_override(self):
        from ppr.pipeline import cycle_template

        self.state.preferred_templates = ["b.svg", "sub/c.svg"]
        self.state.current_template = "sub/c.svg"
        result = cycle_template(self.state, "paper", set_wallpaper=False, **self.kwargs())
        self.assertEqual(result.template, "b.svg")
        self.assertEqual(self.state.current_theme, "paper")
        self.assertEqual(self.setter.paths, [])

    def test_cycle_with_empty_template_dir(self):
        from ppr.errors import TemplateNotFoundError
        from ppr.pipeline import cycle_template

        self.state.templates_path = str(self.root / "empty")
        with self.assertRaises(TemplateNotFoundError):
            cycle_template(self.state, "nord", **self.kwargs())


class TestHelpers(unittest.TestCase):
    def test_next_template(self):
        from ppr.pipeline import next_template

        templates = ["a.svg", "shapes/b.svg", "c.svg"]
        self.assertEqual(next_template(templates, "a.svg"), "shapes/b.svg")
        self.assertEqual(next_template(templates, "c.svg"), "a.svg")
        self.assertEqual(next_template(templates, "b.svg"), "c.svg")
        self.assertEqual(next_template(templates, "zzz.svg"), "a.svg")
        self.assertEqual(next_template(templates, ""), "a.svg")

    def test_templates_to_cycle_all_anywhere(self):
        from ppr.config import SessionState
        from ppr.pipeline import templates_to_cycle

        with tempfile.TemporaryDirectory() as d:
            (Path(d) / "x.svg").write_text("<svg/>", encoding="utf-8")
            state = SessionState(templates_path=d, preferred_templates=["y.svg", "all"])
            self.assertEqual(templates_to_cycle(state), ["x.svg"])

    def test_sweep_temp_copies(self):
        from ppr.pipeline import sweep_temp_copies

        with tempfile.TemporaryDirectory() as d:
            root = Path(d)
            old = root / "current_temp_20200101-000000.png"
            new = root / "current_temp_20240101-000000.png"
            other = root / "current.png"
            for p in (old, new, other):
                p.write_bytes(b"png")
            now = time.time()
            os.utime(old, (now - 7200, now - 7200))
            os.utime(other, (now - 7200, now - 7200))
            removed = sweep_temp_copies(root, now=now)
            self.assertEqual(removed, [old])
            self.assertTrue(new.exists())
            self.assertTrue(other.exists())

    def test_set_wallpaper_from_missing_image(self):
        from ppr.errors import NotFoundError
        from ppr.pipeline import set_wallpaper_from_image

        with self.assertRaises(NotFoundError):
            set_wallpaper_from_image(Path("/nonexistent/wall.png"), RecordingSetter())


if __name__ == "__main__":
    unittest.main()
