"""
Shift Timer & Rotation Gate

A fixed-length countdown that, once it runs out, demands an operator change.
The change is verified by comparing the detector tracking id seen when the
shift expired with the one seen when the acknowledgment is made: the same id
means the same person is still seated, and the acknowledgment is refused.

Tracking ids are only a best-effort proxy for identity. A quick swap back to
the previous operator within the detector's re-identification window is not
detected.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .alert_escalation import ToneKind, ToneRequest
from .events import Event, EventKind
from ..utils.logger import get_logger

logger = get_logger(__name__)


SHIFT_PROMPT_MESSAGE = "Please switch operator and acknowledge."
NO_FACE_MESSAGE = "Face not detected. Please face the camera."
SAME_OPERATOR_MESSAGE = "Same operator detected. Please switch."


def format_mm_ss(duration_ms: int) -> str:
    """Format a duration as MM:SS, truncating partial seconds."""
    total_seconds = max(0, int(duration_ms)) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass
class ShiftState:
    shift_started_at: Optional[int] = None
    awaiting_acknowledgment: bool = False
    pending_acknowledge_tracking_id: Optional[int] = None
    last_observed_tracking_id: Optional[int] = None


class AckOutcome(Enum):
    ACCEPTED = "accepted"
    NO_FACE = "no_face"
    SAME_OPERATOR = "same_operator"
    NOT_PENDING = "not_pending"


@dataclass
class AckResult:
    outcome: AckOutcome
    message: str = ""
    events: List[Event] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.outcome is AckOutcome.ACCEPTED


@dataclass
class ShiftTick:
    """Result of one countdown tick."""
    remaining_ms: Optional[int]
    expired: bool = False
    tone: Optional[ToneRequest] = None
    events: List[Event] = field(default_factory=list)


class ShiftTimer:
    """Countdown with an acknowledge/verify handshake on expiry."""

    def __init__(self, duration_ms: int = 10_000, alert_tone_ms: int = 500):
        """
        Initialize shift timer.

        Args:
            duration_ms: Length of one shift
            alert_tone_ms: Duration of the tone requested when the shift expires
        """
        self.duration_ms = duration_ms
        self.alert_tone_ms = alert_tone_ms
        self.state = ShiftState()
        self.prompt_message = SHIFT_PROMPT_MESSAGE

        logger.info(f"Shift timer initialized (duration: {duration_ms}ms)")

    @property
    def is_running(self) -> bool:
        return self.state.shift_started_at is not None and not self.state.awaiting_acknowledgment

    @property
    def awaiting_acknowledgment(self) -> bool:
        return self.state.awaiting_acknowledgment

    def observe_tracking_id(self, tracking_id: Optional[int]) -> None:
        """Remember the most recent non-null tracking id from any frame."""
        if tracking_id is not None:
            self.state.last_observed_tracking_id = tracking_id

    def start(self, now: int) -> None:
        """Start (or restart) the countdown from `now`."""
        self.state.shift_started_at = now
        self.state.awaiting_acknowledgment = False
        self.state.pending_acknowledge_tracking_id = None
        self.prompt_message = SHIFT_PROMPT_MESSAGE
        logger.info(f"Shift started at {now}")

    def remaining_ms(self, now: int) -> Optional[int]:
        """Time left on the current shift, or None before the first shift starts."""
        started_at = self.state.shift_started_at
        if started_at is None:
            return None
        if self.state.awaiting_acknowledgment:
            return 0
        return max(0, self.duration_ms - (now - started_at))

    def tick(self, now: int) -> ShiftTick:
        """
        Advance the countdown. Expiry happens at most once per shift; no
        further ticks take effect until an acknowledgment restarts it.
        """
        if not self.is_running:
            return ShiftTick(remaining_ms=self.remaining_ms(now))

        remaining = self.remaining_ms(now)
        if remaining > 0:
            return ShiftTick(remaining_ms=remaining)

        self.state.awaiting_acknowledgment = True
        self.state.pending_acknowledge_tracking_id = self.state.last_observed_tracking_id
        self.prompt_message = SHIFT_PROMPT_MESSAGE
        logger.info(f"Shift expired; pending operator tracking id: "
                    f"{self.state.pending_acknowledge_tracking_id}")
        return ShiftTick(
            remaining_ms=0,
            expired=True,
            tone=ToneRequest(kind=ToneKind.SHIFT, duration_ms=self.alert_tone_ms),
            events=[Event(timestamp_ms=now, kind=EventKind.SHIFT_ALERT)],
        )

    def acknowledge(self, current_tracking_id: Optional[int], now: int) -> AckResult:
        """
        Try to acknowledge an expired shift.

        Args:
            current_tracking_id: Tracking id of the face in front of the camera now
            now: Request timestamp in ms

        Returns:
            AckResult; only ACCEPTED restarts the countdown
        """
        if not self.state.awaiting_acknowledgment:
            return AckResult(outcome=AckOutcome.NOT_PENDING, message="No shift change pending.")

        reference = self.state.pending_acknowledge_tracking_id
        if reference is None or current_tracking_id is None:
            self.prompt_message = NO_FACE_MESSAGE
            logger.info("Shift acknowledgment rejected: no tracked face")
            return AckResult(outcome=AckOutcome.NO_FACE, message=NO_FACE_MESSAGE)

        if reference == current_tracking_id:
            self.prompt_message = SAME_OPERATOR_MESSAGE
            logger.warning(f"Shift acknowledgment rejected: same operator (tracking id {current_tracking_id})")
            return AckResult(
                outcome=AckOutcome.SAME_OPERATOR,
                message=SAME_OPERATOR_MESSAGE,
                events=[Event(timestamp_ms=now, kind=EventKind.SHIFT_SAME_OPERATOR,
                              message=f"tracking_id={current_tracking_id}")],
            )

        logger.info(f"Shift acknowledged by tracking id {current_tracking_id} (was {reference})")
        self.start(now)
        return AckResult(
            outcome=AckOutcome.ACCEPTED,
            events=[Event(timestamp_ms=now, kind=EventKind.SHIFT_ACK)],
        )

    def display_text(self, now: int) -> str:
        remaining = self.remaining_ms(now)
        if remaining is None:
            remaining = self.duration_ms
        return f"Shift {format_mm_ss(remaining)}"

    def reset(self) -> None:
        """Stop the countdown and clear any pending handshake."""
        last_seen = self.state.last_observed_tracking_id
        self.state = ShiftState(last_observed_tracking_id=last_seen)
        self.prompt_message = SHIFT_PROMPT_MESSAGE


class ShiftTicker:
    """Background clock that calls `on_tick` at a fixed interval."""

    def __init__(self, on_tick: Callable[[], object], interval_ms: int = 1_000):
        self.on_tick = on_tick
        self.interval_s = interval_ms / 1000.0
        self.is_running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the ticking thread."""
        if self.is_running:
            return

        self.is_running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="shift-ticker", daemon=True)
        self._thread.start()
        logger.info("Started shift ticker thread")

    def stop(self) -> None:
        """Stop the ticking thread and wait for it to exit."""
        if not self.is_running:
            return

        self.is_running = False
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        logger.info("Stopped shift ticker thread")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            try:
                self.on_tick()
            except Exception as e:
                logger.log_error_with_context(e, "shift_ticker")
