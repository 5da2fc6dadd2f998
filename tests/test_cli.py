"""
End-to-end CLI commands against a temporary config, themes and templates tree.
"""
import contextlib
import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests.test_palette import NORD, palette_yaml  # noqa: E402

TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="32" height="16">'
    '<rect width="32" height="16" fill="{{base00}}"/></svg>'
)


class TestCLI(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self._env = mock.patch.dict(os.environ, {"PPR_CONFIG_DIR": str(self.root / "cfg"), "HOME": str(self.root)})
        self._env.start()
        self.themes = self.root / "themes"
        self.templates = self.root / "templates"
        self.out = self.root / "out"
        (self.themes / "base16").mkdir(parents=True)
        (self.themes / "base16" / "nord.yaml").write_text(palette_yaml("nord"), encoding="utf-8")
        self.templates.mkdir()
        (self.templates / "geometric-simple.svg").write_text(TEMPLATE, encoding="utf-8")
        self.config = self.root / "config.yaml"
        self.config.write_text(
            yaml.safe_dump({
                "themes_path": str(self.themes),
                "templates_path": str(self.templates),
                "output_path": str(self.out),
            }),
            encoding="utf-8",
        )

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def run_cli(self, *argv):
        from ppr.cli import main

        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = main(["--config", str(self.config), *argv])
        return code, stdout.getvalue(), stderr.getvalue()

    def test_version(self):
        from ppr import __version__

        code, out, _ = self.run_cli("version")
        self.assertEqual(code, 0)
        self.assertIn(__version__, out)

    def test_init_refuses_to_overwrite(self):
        config = self.root / "cfg" / "config.yaml"
        from ppr.cli import main

        with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(io.StringIO()):
            self.assertEqual(main(["init"]), 0)
            self.assertTrue(config.is_file())
            self.assertTrue((self.root / "cfg" / "themes").is_dir())
            self.assertEqual(main(["init"]), 1)
            self.assertEqual(main(["init", "--force"]), 0)

    def test_list_themes(self):
        code, out, _ = self.run_cli("list-themes", "--details")
        self.assertEqual(code, 0)
        self.assertIn("nord", out)
        self.assertIn("Variant: dark", out)
        code, out, _ = self.run_cli("list-themes", "-v", "light")
        self.assertIn("Available themes (0)", out)

    def test_list_templates(self):
        code, out, _ = self.run_cli("list-templates", "-d")
        self.assertEqual(code, 0)
        self.assertIn("geometric-simple.svg", out)
        self.assertIn("Placeholders: base00", out)

    def test_generate_saves_state(self):
        code, out, err = self.run_cli("generate", "-t", "nord", "-r", "40x20")
        self.assertEqual(code, 0, err)
        self.assertTrue((self.out / "current.png").is_file())
        self.assertTrue((self.out / "ppr" / "nord" / "geometric-simple.png").is_file())
        saved = yaml.safe_load(self.config.read_text(encoding="utf-8"))
        self.assertEqual(saved["current_theme"], "nord")
        self.assertEqual(saved["current_template"], "geometric-simple.svg")

    def test_generate_unknown_theme(self):
        code, _, err = self.run_cli("generate", "-t", "solarized", "-r", "40x20")
        self.assertEqual(code, 1)
        self.assertIn("palette not found: solarized", err)

    def test_bad_resolution_is_usage_error(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                self.run_cli("generate", "-t", "nord", "-r", "big")
        self.assertEqual(cm.exception.code, 2)

    def test_switch_then_cycle_without_wallpaper(self):
        code, _, err = self.run_cli("switch-current", "nord", "-r", "40x20")
        self.assertEqual(code, 0, err)
        code, out, err = self.run_cli("cycle", "--no-set-wallpaper", "-r", "40x20")
        self.assertEqual(code, 0, err)
        self.assertIn("Cycled to template 'geometric-simple.svg' with theme 'nord'", out)

    def test_extract_colors_creates_theme(self):
        rects = "".join(f'<rect fill="{c}"/>' for c in NORD.values())
        swatches = self.root / "swatches.svg"
        swatches.write_text(f"<svg>{rects}</svg>", encoding="utf-8")
        code, out, err = self.run_cli("extract-colors", str(swatches), "my-theme")
        self.assertEqual(code, 0, err)
        self.assertTrue((self.themes / "base16" / "my-theme.yaml").is_file())
        self.assertIn("base0D: #81A1C1", out)

    def test_convert_template_from_theme(self):
        design = self.root / "design.svg"
        design.write_text('<svg><rect fill="#2e3440"/><rect fill="#010203"/></svg>', encoding="utf-8")
        code, out, err = self.run_cli("convert-template", "-i", str(design), "--from-theme", "nord")
        self.assertEqual(code, 0, err)
        created = self.templates / "design-template.svg"
        self.assertEqual(created.read_text(encoding="utf-8"), '<svg><rect fill="{{base00}}"/><rect fill="#010203"/></svg>')
        self.assertIn("#010203", out)

    def test_convert_template_explicit_maps(self):
        design = self.root / "design.svg"
        design.write_text('<svg><rect fill="#010203"/><rect fill="#0A0B0C"/></svg>', encoding="utf-8")
        code, _, err = self.run_cli(
            "convert-template", "-i", str(design), "-o", "mapped",
            "-m", "#010203=base08,#0A0B0C=base09",
        )
        self.assertEqual(code, 0, err)
        text = (self.templates / "mapped.svg").read_text(encoding="utf-8")
        self.assertEqual(text, '<svg><rect fill="{{base08}}"/><rect fill="{{base09}}"/></svg>')

    def test_batch_convert_reports_failures(self):
        src = self.root / "designs"
        src.mkdir()
        (src / "one.svg").write_text('<svg><rect fill="#2E3440"/></svg>', encoding="utf-8")
        (src / "two.svg").write_text('<svg><rect fill="#010203"/></svg>', encoding="utf-8")
        code, out, _ = self.run_cli("batch-convert", "--input-dir", str(src), "--from-theme", "nord", "--output-dir", str(self.out))
        self.assertEqual(code, 1)
        self.assertTrue((self.out / "one-template.svg").is_file())
        self.assertIn("Successful: 1", out)
        self.assertIn("Failed: 1", out)


if __name__ == "__main__":
    unittest.main()
