"""
Attention State Engine

Wires calibration, gaze classification, alert escalation, the shift timer
and session statistics into one single-writer state machine. The host feeds
it frames (`process_frame` / `submit_frame`) and wall-clock ticks (`tick`),
and receives events and tone requests through the optional sinks.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .alert_escalation import AlertEscalation, AlertLevel, ToneRequest
from .calibration import Baseline, CalibrationResult, CalibrationStatus, Calibrator
from .events import Event, EventKind
from .gaze_classifier import GazeClassifier, GazeDecision
from .session_stats import StatisticsAggregator, StatsSnapshot
from .shift_timer import AckResult, ShiftTick, ShiftTimer, format_mm_ss
from .signals import FrameSignal
from ..utils.config import Config, config
from ..utils.logger import get_logger

logger = get_logger(__name__)

EventSink = Callable[[Event], None]
ToneSink = Callable[[ToneRequest], None]

WARNING_TEXT = {
    AlertLevel.INACTIVE: "",
    AlertLevel.SOFT: "Eyes on screen",
    AlertLevel.STRONG: "LOOK AT SCREEN",
}


class EnginePhase(Enum):
    IDLE = "idle"
    CALIBRATING = "calibrating"
    MONITORING = "monitoring"


@dataclass
class FrameOutcome:
    """What processing one frame did to the engine."""
    phase: EnginePhase
    decision: Optional[GazeDecision] = None
    calibration: Optional[CalibrationResult] = None
    alert_level: AlertLevel = AlertLevel.INACTIVE
    tone: Optional[ToneRequest] = None
    events: List[Event] = field(default_factory=list)


@dataclass(frozen=True)
class EngineSnapshot:
    """Consistent read-only view of the engine for display."""
    phase: EnginePhase
    status_text: str
    calibration_prompt: str
    calibration_remaining_seconds: int
    alert_level: AlertLevel
    pulse_active: bool
    shake_active: bool
    warning_text: str
    shift_text: str
    shift_pending: bool
    shift_prompt: str
    stats: Optional[StatsSnapshot]
    stats_text: str
    baseline: Optional[Baseline]
    processed_frames: int
    dropped_frames: int


class AttentionEngine:
    """Single-writer attention state machine for one monitored face stream."""

    def __init__(self, settings: Optional[Config] = None,
                 event_sink: Optional[EventSink] = None,
                 tone_sink: Optional[ToneSink] = None,
                 clock: Optional[Callable[[], int]] = None):
        """
        Initialize the engine.

        Args:
            settings: Configuration; the global config when omitted
            event_sink: Called with every emitted Event
            tone_sink: Called with every ToneRequest
            clock: Millisecond clock used when a call omits `now`

        Raises:
            ValueError: If the configuration does not validate
        """
        self.settings = settings if settings is not None else config
        if not self.settings.validate_config():
            raise ValueError("Invalid configuration: " + "; ".join(self.settings.validation_errors))

        self.event_sink = event_sink
        self.tone_sink = tone_sink
        self.clock = clock or (lambda: int(time.time() * 1000))

        cal = self.settings.calibration
        gaze = self.settings.gaze
        alert = self.settings.alert
        shift = self.settings.shift

        self.calibrator = Calibrator(
            duration_ms=cal.duration_ms,
            min_samples=cal.min_samples,
            min_eye_samples=cal.min_eye_samples,
        )
        self.classifier = GazeClassifier(
            yaw_tolerance_deg=gaze.yaw_tolerance_deg,
            pitch_tolerance_deg=gaze.pitch_tolerance_deg,
            eye_down_ratio_threshold=gaze.eye_down_ratio_threshold,
            eye_closed_probability=gaze.eye_closed_probability,
        )
        self.alerts = AlertEscalation(
            soft_after_ms=alert.soft_after_ms,
            strong_after_ms=alert.strong_after_ms,
            soft_cooldown_ms=alert.soft_cooldown_ms,
            strong_cooldown_ms=alert.strong_cooldown_ms,
            soft_tone_ms=alert.soft_tone_ms,
            strong_tone_ms=alert.strong_tone_ms,
        )
        self.shift_timer = ShiftTimer(duration_ms=shift.duration_ms, alert_tone_ms=shift.alert_tone_ms)
        self.stats = StatisticsAggregator()

        self.phase = EnginePhase.IDLE
        self.last_decision: Optional[GazeDecision] = None
        self.last_calibration: Optional[CalibrationResult] = None
        self.current_tracking_id: Optional[int] = None
        self.processed_frames = 0
        self.dropped_frames = 0
        self.is_closed = False

        # All state mutations happen under _lock; _frame_gate admits one frame at a time
        self._lock = threading.RLock()
        self._frame_gate = threading.Lock()

        logger.info("Attention engine initialized")

    def _now(self, now: Optional[int]) -> int:
        return self.clock() if now is None else now

    @property
    def baseline(self) -> Optional[Baseline]:
        return self.calibrator.baseline

    def start(self, now: Optional[int] = None) -> List[Event]:
        """Begin a session: clear calibration and statistics and start calibrating."""
        now = self._now(now)
        with self._lock:
            self._clear_session()
            self.phase = EnginePhase.CALIBRATING
            events = [Event(timestamp_ms=now, kind=EventKind.CALIBRATION_START)]
            logger.info("Session started, calibrating")
            self._dispatch(events, None)
        return events

    def reset(self, now: Optional[int] = None) -> List[Event]:
        """Recalibrate: abandon the current baseline and every dependent state."""
        now = self._now(now)
        with self._lock:
            if self.phase is EnginePhase.IDLE:
                self._clear_session()
                return []
            logger.info("Engine reset requested")
            return self.start(now)

    def _clear_session(self) -> None:
        self.calibrator.reset()
        self.alerts.reset()
        self.shift_timer.reset()
        self.stats.reset()
        self.last_decision = None
        self.last_calibration = None

    def submit_frame(self, frame_signal: FrameSignal, now: Optional[int] = None) -> Optional[FrameOutcome]:
        """
        Process a frame unless another one is still being processed.

        Returns:
            The FrameOutcome, or None when the frame was dropped
        """
        if not self._frame_gate.acquire(blocking=False):
            with self._lock:
                self.dropped_frames += 1
                dropped = self.dropped_frames
            logger.log_frame_drop(dropped)
            return None
        try:
            return self.process_frame(frame_signal, now)
        finally:
            self._frame_gate.release()

    def process_frame(self, frame_signal: FrameSignal, now: Optional[int] = None) -> FrameOutcome:
        """Route one frame through calibration or classification."""
        now = self._now(now)
        with self._lock:
            face = frame_signal.primary_face()
            self.current_tracking_id = face.tracking_id if face is not None else None
            self.shift_timer.observe_tracking_id(self.current_tracking_id)

            if self.phase is EnginePhase.IDLE or self.is_closed:
                return FrameOutcome(phase=self.phase)

            self.processed_frames += 1
            if self.phase is EnginePhase.CALIBRATING:
                outcome = self._calibrate(face, now)
            else:
                outcome = self._monitor(face, now)

            self._dispatch(outcome.events, outcome.tone)
            return outcome

    def _calibrate(self, face, now: int) -> FrameOutcome:
        result = self.calibrator.observe(face, now)
        self.last_calibration = result
        events: List[Event] = []

        if result.status is CalibrationStatus.WAITING:
            events.extend(self.alerts.stop(now))
        elif result.status is CalibrationStatus.COMPLETE:
            self.phase = EnginePhase.MONITORING
            self.alerts.reset(now)
            self.stats.update(now, True)
            self.last_decision = GazeDecision.LOOKING
            self.shift_timer.start(now)
            events.append(Event(timestamp_ms=now, kind=EventKind.CALIBRATION_COMPLETE))

        return FrameOutcome(phase=self.phase, calibration=result,
                            alert_level=self.alerts.level, events=events)

    def _monitor(self, face, now: int) -> FrameOutcome:
        decision = self.classifier.classify(face, self.calibrator.baseline)
        looking = decision is GazeDecision.LOOKING
        if decision is not self.last_decision:
            logger.debug(f"Gaze decision changed to {decision.value}")
        self.last_decision = decision

        update = self.alerts.update(looking, now)
        events = list(update.events)
        events.extend(self.stats.update(now, looking))

        return FrameOutcome(phase=self.phase, decision=decision, alert_level=update.level,
                            tone=update.tone, events=events)

    def tick(self, now: Optional[int] = None) -> ShiftTick:
        """Advance the shift countdown; called on the host's wall-clock cadence."""
        now = self._now(now)
        with self._lock:
            if self.phase is not EnginePhase.MONITORING or self.is_closed:
                return ShiftTick(remaining_ms=self.shift_timer.remaining_ms(now))
            result = self.shift_timer.tick(now)
            self._dispatch(result.events, result.tone)
            return result

    def acknowledge_shift(self, now: Optional[int] = None) -> AckResult:
        """Acknowledge a pending shift change with the face currently in front of the camera."""
        now = self._now(now)
        with self._lock:
            result = self.shift_timer.acknowledge(self.current_tracking_id, now)
            self._dispatch(result.events, None)
            return result

    def snapshot(self, now: Optional[int] = None) -> EngineSnapshot:
        """Take a consistent view of everything the display needs."""
        now = self._now(now)
        with self._lock:
            stats = None
            stats_text = ""
            if self.phase is EnginePhase.MONITORING:
                stats = self.stats.snapshot(now)
                stats_text = stats.text

            return EngineSnapshot(
                phase=self.phase,
                status_text=self._status_text(),
                calibration_prompt=self._calibration_prompt(now),
                calibration_remaining_seconds=(self.calibrator.remaining_seconds(now)
                                               if self.phase is EnginePhase.CALIBRATING else 0),
                alert_level=self.alerts.level,
                pulse_active=self.alerts.pulse_active,
                shake_active=self.alerts.shake_active,
                warning_text=WARNING_TEXT[self.alerts.level],
                shift_text=self.shift_timer.display_text(now),
                shift_pending=self.shift_timer.awaiting_acknowledgment,
                shift_prompt=self.shift_timer.prompt_message if self.shift_timer.awaiting_acknowledgment else "",
                stats=stats,
                stats_text=stats_text,
                baseline=self.calibrator.baseline,
                processed_frames=self.processed_frames,
                dropped_frames=self.dropped_frames,
            )

    def _status_text(self) -> str:
        if self.phase is EnginePhase.IDLE:
            return "Press SPACE to start"
        if self.phase is EnginePhase.CALIBRATING:
            return "Calibrating"
        if self.last_decision is GazeDecision.AWAY:
            return "Look away detected"
        return "Looking at screen"

    def _calibration_prompt(self, now: int) -> str:
        if self.phase is not EnginePhase.CALIBRATING:
            return ""
        result = self.last_calibration
        if result is not None and result.status is CalibrationStatus.WAITING:
            return "Waiting for face..."
        return f"Calibrating... {self.calibrator.remaining_seconds(now)} s"

    def _dispatch(self, events: List[Event], tone: Optional[ToneRequest]) -> None:
        for event in events:
            logger.log_engine_event(event)
            if self.event_sink is not None:
                try:
                    self.event_sink(event)
                except Exception as e:
                    logger.log_error_with_context(e, "event_sink")

        if tone is not None and self.tone_sink is not None:
            try:
                self.tone_sink(tone)
            except Exception as e:
                logger.log_error_with_context(e, "tone_sink")

    def session_summary(self, now: Optional[int] = None) -> dict:
        """Summary of the current session for the host's exit report."""
        now = self._now(now)
        with self._lock:
            stats = self.stats.snapshot(now)
            started_at = self.stats.session_started_at
            return {
                'phase': self.phase.value,
                'session_duration_ms': 0 if started_at is None else now - started_at,
                'looking_ms': stats.looking_ms,
                'away_ms': stats.away_ms,
                'focus_percent': stats.focus_percent,
                'look_away_count': stats.look_away_count,
                'longest_focus': format_mm_ss(stats.longest_focus_ms),
                'processed_frames': self.processed_frames,
                'dropped_frames': self.dropped_frames,
            }

    def close(self) -> None:
        """Stop accepting input. Safe to call more than once."""
        with self._lock:
            if self.is_closed:
                return
            self.is_closed = True
            logger.info(f"Attention engine closed ({self.processed_frames} frames processed, "
                        f"{self.dropped_frames} dropped)")
