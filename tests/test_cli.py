"""
Tests for command line option handling.
"""

import sys
import os
import io
import queue
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import main
from screeneye.core.attention_engine import AttentionEngine, EnginePhase
from screeneye.core.events import Event, EventKind
from screeneye.core.signals import FaceSignal, FrameSignal
from screeneye.storage.event_log import EventLogStore
from screeneye.utils.config import Config


class TestCommandLine(unittest.TestCase):
    """Test argument parsing, overrides and the log listing."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.temp_dir.name, "settings.json")
        self.db_path = os.path.join(self.temp_dir.name, "events.db")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_overrides(self):
        args = main.parse_arguments([
            "--config", self.config_path, "--calibration-window", "extended",
            "--shift-seconds", "90", "--db", self.db_path, "--no-audio", "--camera", "2",
        ])
        settings = main.build_settings(args)

        self.assertEqual(settings.calibration.duration_ms, 10_000)
        self.assertEqual(settings.shift.duration_ms, 90_000)
        self.assertEqual(settings.storage.database_path, self.db_path)
        self.assertFalse(settings.audio.enabled)
        self.assertEqual(settings.camera.device_id, 2)

    def test_defaults_keep_config_values(self):
        args = main.parse_arguments(["--config", self.config_path])
        settings = main.build_settings(args)
        self.assertEqual(settings.calibration.duration_ms, 5000)
        self.assertTrue(settings.audio.enabled)

    def test_show_logs(self):
        with EventLogStore(self.db_path) as store:
            store.append(Event(timestamp_ms=1000, kind=EventKind.CALIBRATION_START))
            store.append(Event(timestamp_ms=2000, kind=EventKind.ALERT_START, message="soft"))

        output = io.StringIO()
        with redirect_stdout(output):
            main.main(["--config", self.config_path, "--db", self.db_path, "--show-logs", "5"])

        lines = output.getvalue().strip().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].endswith("ALERT_START - soft"))
        self.assertTrue(lines[1].endswith("CALIBRATION_START"))

    def test_show_logs_rejects_non_positive_counts(self):
        for value in ("0", "-5", "many"):
            with redirect_stderr(io.StringIO()):
                with self.assertRaises(SystemExit):
                    main.parse_arguments(["--show-logs", value])

    def test_show_logs_default_count_from_config(self):
        settings = Config()
        settings.storage.recent_limit = 2
        settings.save_to_file(self.config_path)
        self.assertEqual(main.parse_arguments(["--show-logs"]).show_logs, 0)

        with EventLogStore(self.db_path) as store:
            for t in (1000, 2000, 3000):
                store.append(Event(timestamp_ms=t, kind=EventKind.ALERT_STOP))

        output = io.StringIO()
        with redirect_stdout(output):
            main.main(["--config", self.config_path, "--db", self.db_path, "--show-logs"])
        self.assertEqual(len(output.getvalue().strip().splitlines()), 2)

    def test_show_logs_empty(self):
        output = io.StringIO()
        with redirect_stdout(output):
            main.show_logs(self.db_path, 10)
        self.assertIn("No events logged yet", output.getvalue())


class TestControlCommands(unittest.TestCase):
    """Test the key and headless command handling."""

    def setUp(self):
        self.engine = AttentionEngine(Config(), clock=lambda: 0)

    def monitor_until_shift_expires(self):
        face = FrameSignal(faces=[FaceSignal(yaw=0.0, pitch=0.0, tracking_id=1)])
        self.engine.start(0)
        for t in range(0, 5001, 250):
            self.engine.process_frame(face, t)
        self.assertEqual(self.engine.phase, EnginePhase.MONITORING)
        self.engine.tick(15_000)
        self.assertTrue(self.engine.shift_timer.awaiting_acknowledgment)

    def test_read_commands(self):
        commands = queue.Queue()
        main.read_commands(io.StringIO("a\n\n  Reset\nQUIT\n"), commands)
        self.assertEqual([commands.get_nowait() for _ in range(commands.qsize())], ["a", "r", "q"])

    def test_quit_and_start(self):
        output = io.StringIO()
        with redirect_stdout(output):
            self.assertFalse(main.handle_command(self.engine, 'q'))
            self.assertTrue(main.handle_command(self.engine, ' '))
        self.assertEqual(self.engine.phase, EnginePhase.CALIBRATING)

    def test_acknowledge_command_rotates_shift(self):
        self.monitor_until_shift_expires()

        output = io.StringIO()
        with redirect_stdout(output):
            self.assertTrue(main.handle_command(self.engine, 'a'))
        self.assertTrue(self.engine.shift_timer.awaiting_acknowledgment)
        self.assertIn("Same operator", output.getvalue())

        self.engine.process_frame(FrameSignal(faces=[FaceSignal(yaw=0.0, pitch=0.0, tracking_id=2)]), 15_500)
        with redirect_stdout(output):
            self.assertTrue(main.handle_command(self.engine, 'a'))
        self.assertEqual(self.engine.shift_timer.state.last_observed_tracking_id, 2)
        self.assertFalse(self.engine.shift_timer.awaiting_acknowledgment)

    def test_headless_reader_thread(self):
        commands = main.start_command_reader(io.StringIO("a\n"))
        self.assertEqual(commands.get(timeout=2), "a")


if __name__ == '__main__':
    unittest.main()
