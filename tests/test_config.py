"""
Tests for config loading and validation in `neurobridge.core.configs`.
"""

import os
import unittest
import tempfile
from pathlib import Path
from unittest.mock import patch

from neurobridge.core.configs import (
    DEFAULT_SOCKET_PATH,
    BridgeSettings,
    get_bridge_settings,
    load_raw_config,
)


class TestConfig(unittest.TestCase):
    """Test cases for configuration helpers."""

    def setUp(self):
        """Set up test environment with temporary directories."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = Path(self.temp_dir) / "config.cfg"
        self.env_file = Path(self.temp_dir) / ".env"

        # Keep the real environment out of these tests
        env_patch = patch.dict(
            os.environ,
            {"NEUROBRIDGE_SOCKET": "", "NEUROBRIDGE_TIMEOUT_S": "", "NEUROBRIDGE_GPU_PROBE": ""},
        )
        env_patch.start()
        self.addCleanup(env_patch.stop)

    def tearDown(self):
        """Clean up temporary files."""
        import shutil

        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, *, defaults: dict[str, str], server: dict[str, str]) -> None:
        import configparser

        cfg = configparser.ConfigParser()
        cfg["DEFAULT"] = defaults
        cfg["SERVER"] = server
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as handle:
            cfg.write(handle)

    def test_load_raw_config_lowercases_keys(self):
        self._write_config(
            defaults={"SOCKET_PATH": "/run/nb.sock", "TIMEOUT": "12"},
            server={"GPU_PROBE": "nvml"},
        )

        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["socket_path"], "/run/nb.sock")
        self.assertEqual(raw["timeout"], "12")
        self.assertEqual(raw["gpu_probe"], "nvml")

    def test_load_raw_config_missing_file_returns_empty_dict(self):
        self.assertFalse(self.config_file.exists())
        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw, {}, "Should return empty dict when config does not exist")

    def test_load_raw_config_falls_back_to_env_file(self):
        self.env_file.write_text("SOCKET_PATH=/tmp/from-env.sock\nGPU_PROBE=static\n")

        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["socket_path"], "/tmp/from-env.sock")
        self.assertEqual(raw["gpu_probe"], "static")

    def test_config_file_wins_over_env_file(self):
        self.env_file.write_text("GPU_PROBE=static\n")
        self._write_config(defaults={}, server={"GPU_PROBE": "vulkan"})

        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["gpu_probe"], "vulkan")

    def test_defaults(self):
        settings = get_bridge_settings({})
        self.assertEqual(settings.socket_path, Path(DEFAULT_SOCKET_PATH))
        self.assertEqual(settings.socket_mode, 0o777)
        self.assertEqual(settings.timeout, 30.0)
        self.assertEqual(settings.query_timeout, 10.0)
        self.assertEqual(settings.gpu_probe, "vulkan")
        self.assertIsNone(settings.vulkan_library)
        self.assertEqual(settings.log_level, "INFO")

    def test_values_are_parsed(self):
        settings = get_bridge_settings(
            {
                "socket_path": "/run/nb.sock",
                "socket_mode": "660",
                "timeout": "2.5",
                "query_timeout": "0",
                "gpu_probe": "Static",
                "static_device_name": "Adreno",
                "log_level": "debug",
            }
        )
        self.assertEqual(settings.socket_path, Path("/run/nb.sock"))
        self.assertEqual(settings.socket_mode, 0o660)
        self.assertEqual(settings.timeout, 2.5)
        self.assertEqual(settings.query_timeout, 0.0)
        self.assertEqual(settings.gpu_probe, "static")
        self.assertEqual(settings.static_device_name, "Adreno")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_environment_overrides(self):
        with patch.dict(
            os.environ,
            {"NEUROBRIDGE_SOCKET": "/tmp/env.sock", "NEUROBRIDGE_TIMEOUT_S": "42"},
        ):
            settings = get_bridge_settings({"socket_path": "/run/nb.sock", "timeout": "1"})

        self.assertEqual(settings.socket_path, Path("/tmp/env.sock"))
        self.assertEqual(settings.timeout, 42.0)

    def test_invalid_numbers_raise(self):
        with self.assertRaises(ValueError) as context:
            get_bridge_settings({"timeout": "soon"})
        self.assertIn("timeout", str(context.exception))

        with self.assertRaises(ValueError):
            get_bridge_settings({"socket_mode": "rwx"})

    def test_invalid_log_level_raises(self):
        with self.assertRaises(ValueError) as context:
            get_bridge_settings({"log_level": "verbose"})
        self.assertIn("log_level", str(context.exception))

        self.assertEqual(get_bridge_settings({"log_level": " warning "}).log_level, "WARNING")

    def test_raw_dict_is_not_mutated(self):
        raw = {"timeout": "1"}
        with patch.dict(os.environ, {"NEUROBRIDGE_TIMEOUT_S": "9"}):
            get_bridge_settings(raw)
        self.assertEqual(raw, {"timeout": "1"})

    def test_settings_dataclass_defaults_match(self):
        self.assertEqual(BridgeSettings(), get_bridge_settings({}))


if __name__ == "__main__":
    unittest.main()
