"""
Integration tests for the attention engine.
"""

import sys
import os
import unittest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from screeneye.core.alert_escalation import AlertLevel, ToneKind
from screeneye.core.attention_engine import AttentionEngine, EnginePhase
from screeneye.core.events import EventKind
from screeneye.core.gaze_classifier import GazeDecision
from screeneye.core.shift_timer import AckOutcome
from screeneye.core.signals import FaceSignal, FrameSignal
from screeneye.utils.config import Config


def frame(yaw=0.0, pitch=0.0, tracking_id=1, **kwargs):
    return FrameSignal(faces=[FaceSignal(yaw=yaw, pitch=pitch, tracking_id=tracking_id, **kwargs)],
                       width=640, height=480)


def empty_frame():
    return FrameSignal(width=640, height=480)


class TestAttentionEngine(unittest.TestCase):
    """Drive the engine with explicit timestamps."""

    def setUp(self):
        self.settings = Config()
        self.events = []
        self.tones = []
        self.engine = AttentionEngine(self.settings, event_sink=self.events.append,
                                      tone_sink=self.tones.append, clock=lambda: 0)

    def calibrate(self, end=0, tracking_id=1):
        """Start and complete calibration so that monitoring begins at `end`."""
        self.engine.start(end - 6000)
        for t in range(end - 5000, end + 1, 250):
            self.engine.process_frame(frame(tracking_id=tracking_id), t)
        self.assertEqual(self.engine.phase, EnginePhase.MONITORING)
        self.events.clear()
        self.tones.clear()

    def kinds(self):
        return [e.kind for e in self.events]

    def test_invalid_config_raises(self):
        settings = Config()
        settings.alert.soft_after_ms = 6000
        with self.assertRaises(ValueError):
            AttentionEngine(settings)

    def test_frames_ignored_before_start(self):
        outcome = self.engine.process_frame(frame(), 100)
        self.assertEqual(outcome.phase, EnginePhase.IDLE)
        self.assertEqual(self.events, [])
        self.assertEqual(self.engine.processed_frames, 0)
        self.assertEqual(self.engine.snapshot(100).status_text, "Press SPACE to start")

    def test_start_emits_calibration_start(self):
        self.engine.start(0)
        self.assertEqual(self.kinds(), [EventKind.CALIBRATION_START])
        self.assertEqual(self.engine.phase, EnginePhase.CALIBRATING)

    def test_calibration_completes_into_monitoring(self):
        self.engine.start(0)
        for t in range(1000, 6001, 250):
            self.engine.process_frame(frame(yaw=4.0, pitch=-2.0), t)

        self.assertEqual(self.engine.phase, EnginePhase.MONITORING)
        self.assertEqual(self.kinds(), [EventKind.CALIBRATION_START, EventKind.CALIBRATION_COMPLETE])
        self.assertAlmostEqual(self.engine.baseline.yaw, 4.0)
        self.assertAlmostEqual(self.engine.baseline.pitch, -2.0)

        snapshot = self.engine.snapshot(7000)
        self.assertEqual(snapshot.shift_text, "Shift 00:09")
        self.assertEqual(snapshot.stats.focus_percent, 100)
        self.assertEqual(snapshot.status_text, "Looking at screen")

    def test_calibration_waits_for_face(self):
        self.engine.start(0)
        self.engine.process_frame(empty_frame(), 100)
        snapshot = self.engine.snapshot(100)
        self.assertEqual(snapshot.phase, EnginePhase.CALIBRATING)
        self.assertEqual(snapshot.calibration_prompt, "Waiting for face...")

        self.engine.process_frame(frame(), 200)
        self.assertEqual(self.engine.snapshot(1200).calibration_prompt, "Calibrating... 5 s")

    def test_example_scenario(self):
        """Looking away at yaw 25 escalates Soft then Strong and recovers on one looking frame."""
        self.calibrate(end=0)

        for t in range(100, 2000, 100):
            outcome = self.engine.process_frame(frame(yaw=25.0), t)
            self.assertEqual(outcome.decision, GazeDecision.AWAY)
            self.assertEqual(outcome.alert_level, AlertLevel.INACTIVE)

        outcome = self.engine.process_frame(frame(yaw=25.0), 2100)
        self.assertEqual(outcome.alert_level, AlertLevel.SOFT)

        outcome = self.engine.process_frame(frame(yaw=25.0), 5200)
        self.assertEqual(outcome.alert_level, AlertLevel.STRONG)
        self.assertTrue(self.engine.snapshot(5200).shake_active)
        self.assertEqual(self.engine.snapshot(5200).warning_text, "LOOK AT SCREEN")

        self.assertEqual([(t.kind, t.duration_ms) for t in self.tones],
                         [(ToneKind.SOFT, 200), (ToneKind.STRONG, 350)])

        self.events.clear()
        outcome = self.engine.process_frame(frame(yaw=0.0), 5300)
        self.assertEqual(outcome.alert_level, AlertLevel.INACTIVE)
        self.assertEqual(self.kinds(), [EventKind.ALERT_STOP, EventKind.LOOK_AWAY_END])
        self.assertEqual(self.events[1].duration_ms, 5200)

    def test_no_face_counts_as_away(self):
        self.calibrate(end=0)
        outcome = self.engine.process_frame(empty_frame(), 100)
        self.assertEqual(outcome.decision, GazeDecision.AWAY)
        self.assertEqual(self.kinds(), [EventKind.LOOK_AWAY_START])
        self.assertEqual(self.engine.snapshot(100).status_text, "Look away detected")

    def test_only_first_face_is_classified(self):
        self.calibrate(end=0)
        away_face = FaceSignal(yaw=35.0, pitch=0.0, tracking_id=1)
        looking_face = FaceSignal(yaw=0.0, pitch=0.0, tracking_id=2)

        outcome = self.engine.process_frame(FrameSignal(faces=[away_face, looking_face]), 500)
        self.assertEqual(outcome.decision, GazeDecision.AWAY)
        self.assertEqual(self.engine.current_tracking_id, 1)

        outcome = self.engine.process_frame(FrameSignal(faces=[looking_face, away_face]), 700)
        self.assertEqual(outcome.decision, GazeDecision.LOOKING)
        self.assertEqual(self.engine.current_tracking_id, 2)

    def test_shift_rotation(self):
        """Shift expiry requires a different tracking id to acknowledge."""
        self.calibrate(end=0, tracking_id=1)

        self.assertFalse(self.engine.tick(5000).expired)
        tick = self.engine.tick(10_000)
        self.assertTrue(tick.expired)
        self.assertIn(EventKind.SHIFT_ALERT, self.kinds())
        self.assertEqual(self.tones[-1].kind, ToneKind.SHIFT)

        snapshot = self.engine.snapshot(10_500)
        self.assertTrue(snapshot.shift_pending)
        self.assertEqual(snapshot.shift_prompt, "Please switch operator and acknowledge.")

        self.engine.process_frame(frame(tracking_id=1), 11_000)
        result = self.engine.acknowledge_shift(11_000)
        self.assertEqual(result.outcome, AckOutcome.SAME_OPERATOR)
        self.assertEqual(self.events[-1].message, "tracking_id=1")
        self.assertEqual(self.engine.snapshot(11_000).shift_prompt, "Same operator detected. Please switch.")

        self.engine.process_frame(empty_frame(), 12_000)
        result = self.engine.acknowledge_shift(12_000)
        self.assertEqual(result.outcome, AckOutcome.NO_FACE)

        self.engine.process_frame(frame(tracking_id=2), 13_000)
        result = self.engine.acknowledge_shift(13_000)
        self.assertEqual(result.outcome, AckOutcome.ACCEPTED)
        self.assertEqual(self.events[-1].kind, EventKind.SHIFT_ACK)

        snapshot = self.engine.snapshot(14_000)
        self.assertFalse(snapshot.shift_pending)
        self.assertEqual(snapshot.shift_text, "Shift 00:09")

    def test_tick_ignored_before_monitoring(self):
        self.engine.start(0)
        tick = self.engine.tick(60_000)
        self.assertFalse(tick.expired)
        self.assertIsNone(tick.remaining_ms)

    def test_frame_gate_drops_while_busy(self):
        self.engine.start(0)
        self.engine._frame_gate.acquire()
        try:
            self.assertIsNone(self.engine.submit_frame(frame(), 100))
            self.assertIsNone(self.engine.submit_frame(frame(), 200))
        finally:
            self.engine._frame_gate.release()

        self.assertEqual(self.engine.dropped_frames, 2)
        self.assertEqual(self.engine.processed_frames, 0)

        outcome = self.engine.submit_frame(frame(), 300)
        self.assertIsNotNone(outcome)
        self.assertEqual(self.engine.processed_frames, 1)
        self.assertEqual(self.engine.snapshot(300).dropped_frames, 2)

    def test_reset_recalibrates(self):
        self.calibrate(end=0)
        self.engine.process_frame(frame(yaw=40.0), 6000)
        self.engine.tick(10_000)

        self.engine.reset(11_000)

        snapshot = self.engine.snapshot(11_000)
        self.assertEqual(snapshot.phase, EnginePhase.CALIBRATING)
        self.assertIsNone(snapshot.baseline)
        self.assertEqual(snapshot.alert_level, AlertLevel.INACTIVE)
        self.assertFalse(snapshot.shift_pending)
        self.assertIsNone(snapshot.stats)
        self.assertEqual(self.events[-1].kind, EventKind.CALIBRATION_START)
        self.assertEqual(self.engine.calibrator.accumulator.sample_count, 0)

    def test_sink_errors_are_contained(self):
        def failing_sink(event):
            raise RuntimeError("sink down")

        engine = AttentionEngine(self.settings, event_sink=failing_sink, tone_sink=failing_sink)
        engine.start(0)
        for t in range(0, 5001, 250):
            engine.process_frame(frame(), t)
        self.assertEqual(engine.phase, EnginePhase.MONITORING)
        engine.process_frame(frame(yaw=30.0), 10_000)
        self.assertEqual(engine.alerts.level, AlertLevel.STRONG)

    def test_close_stops_processing(self):
        self.engine.start(0)
        self.engine.close()
        self.engine.close()
        self.engine.process_frame(frame(), 100)
        self.assertEqual(self.engine.processed_frames, 0)

    def test_session_summary(self):
        self.calibrate(end=0)
        self.assertEqual(self.engine.session_summary(2000)['longest_focus'], "00:00")
        self.engine.process_frame(frame(yaw=30.0), 3000)
        self.engine.process_frame(frame(), 4000)

        summary = self.engine.session_summary(5000)
        self.assertEqual(summary['session_duration_ms'], 5000)
        self.assertEqual(summary['look_away_count'], 1)
        self.assertEqual(summary['focus_percent'], 80)
        self.assertEqual(summary['longest_focus'], "00:03")

    def test_clock_used_when_now_omitted(self):
        engine = AttentionEngine(self.settings, event_sink=self.events.append, clock=lambda: 42)
        self.events.clear()
        engine.start()
        self.assertEqual(self.events[0].timestamp_ms, 42)


if __name__ == '__main__':
    unittest.main()
