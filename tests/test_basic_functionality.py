"""
Basic functionality tests for the ScreenEye attention monitor.
"""

import sys
import os
import json
import logging
import tempfile
import unittest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from screeneye.core.events import Event, EventKind
from screeneye.utils.config import CALIBRATION_WINDOWS_MS, Config, config
from screeneye.utils.logger import (
    get_logger, log_function_call, log_performance_metrics, logger, set_console_level,
)


class TestBasicFunctionality(unittest.TestCase):
    """Test basic system functionality."""

    def setUp(self):
        """Set up test environment."""
        logger.info("Setting up test environment")

    def test_config_loading(self):
        """Test configuration loading."""
        self.assertIsNotNone(config)
        for section in Config.SECTIONS:
            self.assertIsNotNone(getattr(config, section))

        defaults = Config()
        self.assertEqual(defaults.calibration.duration_ms, 5000)
        self.assertEqual(defaults.calibration.min_samples, 20)
        self.assertEqual(defaults.alert.soft_after_ms, 2000)
        self.assertEqual(defaults.alert.strong_after_ms, 5000)
        self.assertEqual(defaults.shift.duration_ms, 10_000)
        self.assertEqual(defaults.storage.recent_limit, 200)

        logger.info("Configuration loading test passed")

    def test_config_validation(self):
        """Test configuration validation."""
        settings = Config()
        self.assertTrue(settings.validate_config())
        self.assertEqual(settings.validation_errors, [])

        settings.camera.width = -1
        self.assertFalse(settings.validate_config())
        self.assertEqual(len(settings.validation_errors), 1)

        settings = Config()
        settings.calibration.min_eye_samples = 30
        settings.gaze.eye_closed_probability = 1.5
        self.assertFalse(settings.validate_config())
        self.assertEqual(len(settings.validation_errors), 2)

        logger.info("Configuration validation test passed")

    def test_calibration_windows(self):
        settings = Config()
        settings.set_calibration_window("extended")
        self.assertEqual(settings.calibration.duration_ms, CALIBRATION_WINDOWS_MS["extended"])
        settings.set_calibration_window("standard")
        self.assertEqual(settings.calibration.duration_ms, 5000)

        with self.assertRaises(ValueError):
            settings.set_calibration_window("instant")

    def test_config_file_round_trip(self):
        """Saved settings load back; unknown keys are ignored."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "configs", "settings.json")
            settings = Config()
            settings.shift.duration_ms = 30 * 60 * 1000
            settings.save_to_file(path)

            with open(path) as f:
                data = json.load(f)
            data['alert']['unknown_key'] = 1
            data['not_a_section'] = {'x': 1}
            with open(path, 'w') as f:
                json.dump(data, f)

            loaded = Config(path)
            self.assertEqual(loaded.shift.duration_ms, 30 * 60 * 1000)
            self.assertFalse(hasattr(loaded.alert, 'unknown_key'))
            self.assertEqual(loaded.to_dict()['audio']['tone_frequencies']['shift'], 660.0)

    def test_malformed_config_file_keeps_defaults(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "broken.json")
            with open(path, 'w') as f:
                f.write("{not json")
            loaded = Config(path)
            self.assertEqual(loaded.alert.strong_after_ms, 5000)

    def test_logger_functionality(self):
        """Test logger functionality."""
        test_logger = get_logger("screeneye.test")
        test_logger.debug("Test debug message")
        test_logger.info("Test info message")
        test_logger.warning("Test warning message")
        test_logger.log_engine_event(Event(timestamp_ms=1, kind=EventKind.LOOK_AWAY_END, duration_ms=10))
        test_logger.log_frame_drop(3)

        # Handlers are attached once per logger name
        self.assertEqual(len(get_logger("screeneye.test").logger.handlers),
                         len(test_logger.logger.handlers))
        self.assertFalse(test_logger.logger.propagate)

    def test_set_console_level(self):
        test_logger = get_logger("screeneye.console_level")
        set_console_level(logging.WARNING)
        console_levels = [h.level for h in test_logger.logger.handlers
                          if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)]
        self.assertTrue(console_levels)
        self.assertTrue(all(level == logging.WARNING for level in console_levels))
        set_console_level(logging.ERROR)

    def test_logging_decorators(self):
        @log_function_call
        def add(a, b):
            """Add two numbers."""
            return a + b

        @log_performance_metrics
        def fail():
            raise KeyError("missing")

        self.assertEqual(add(2, 3), 5)
        self.assertEqual(add.__name__, "add")
        self.assertEqual(add.__doc__, "Add two numbers.")
        with self.assertRaises(KeyError):
            fail()


if __name__ == '__main__':
    unittest.main()
