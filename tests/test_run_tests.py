"""
Tests for scripts/run_tests.py - area selection.
"""

import runpy
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
runner = runpy.run_path(str(PROJECT_ROOT / "scripts" / "run_tests.py"))


class TestAreaSelection(unittest.TestCase):
    def test_every_area_points_at_an_existing_module(self):
        for area, modules in runner["AREAS"].items():
            for module in modules:
                self.assertTrue((PROJECT_ROOT / "tests" / module).is_file(), f"{area}: {module}")

    def test_every_test_module_belongs_to_an_area(self):
        mapped = {module for modules in runner["AREAS"].values() for module in modules}
        on_disk = {path.name for path in (PROJECT_ROOT / "tests").glob("test_*.py")}
        self.assertEqual(on_disk - mapped - {"test_run_tests.py"}, set())

    def test_selected_areas(self):
        self.assertEqual(
            runner["select_modules"](["server", "cli"]),
            ["tests/test_server.py", "tests/test_cli.py"],
        )

    def test_offline_skips_socket_suites(self):
        modules = runner["select_modules"]([], offline=True)
        self.assertIn("tests/test_protocol.py", modules)
        self.assertNotIn("tests/test_server.py", modules)
        self.assertNotIn("tests/test_client.py", modules)
        self.assertNotIn("tests/test_cli.py", modules)

    def test_unknown_area_is_rejected(self):
        with self.assertRaises(SystemExit) as context:
            runner["main"](["teapot"])
        self.assertEqual(context.exception.code, 2)


if __name__ == "__main__":
    unittest.main()
