import os
import unittest
from unittest import mock

from config import Settings, load_settings


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.db_path, "rigstock.db")
        self.assertFalse(settings.enforce_required_slots)
        self.assertEqual(settings.build_name_max_length, 52)

    def test_environment_overrides(self) -> None:
        env = {
            "RIGSTOCK_DB_PATH": "/tmp/shop.db",
            "RIGSTOCK_ENFORCE_REQUIRED_SLOTS": "yes",
            "RIGSTOCK_BUILD_NAME_MAX_LENGTH": "40",
            "RIGSTOCK_LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.db_path, "/tmp/shop.db")
        self.assertTrue(settings.enforce_required_slots)
        self.assertEqual(settings.build_name_max_length, 40)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_bad_values_rejected(self) -> None:
        with mock.patch.dict(os.environ, {"RIGSTOCK_BUILD_NAME_MAX_LENGTH": "long"}, clear=True):
            with self.assertRaises(ValueError):
                load_settings()
        with self.assertRaises(ValueError):
            Settings(build_name_max_length=3)


if __name__ == "__main__":
    unittest.main(verbosity=2)
