"""
Alert Escalation Module

Turns the stream of looking/away decisions into a three-level alert
(Inactive -> Soft -> Strong) driven by how long the person has been away:

- away for less than soft_after_ms: no alert (brief glances are debounced)
- away for [soft_after_ms, strong_after_ms): Soft (pulse, short tone)
- away for strong_after_ms or longer: Strong (pulse, shake, longer tone)

Visual side effects follow level changes only. Tones repeat while an alert
is active but each level enforces its own cooldown between tones.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .events import Event, EventKind
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AlertLevel(Enum):
    INACTIVE = "inactive"
    SOFT = "soft"
    STRONG = "strong"


class ToneKind(Enum):
    SOFT = "soft"
    STRONG = "strong"
    SHIFT = "shift"


@dataclass(frozen=True)
class ToneRequest:
    """Request for the audio collaborator to play one tone."""
    kind: ToneKind
    duration_ms: int


@dataclass
class AlertState:
    level: AlertLevel = AlertLevel.INACTIVE
    last_tone_at: Optional[int] = None


@dataclass
class AlertUpdate:
    """Result of feeding one decision to the escalation state machine."""
    level: AlertLevel
    changed: bool = False
    away_for_ms: int = 0
    tone: Optional[ToneRequest] = None
    events: List[Event] = field(default_factory=list)


class AlertEscalation:
    """Two-tier alert state machine with tone cooldown."""

    def __init__(self, soft_after_ms: int = 2_000, strong_after_ms: int = 5_000,
                 soft_cooldown_ms: int = 2_500, strong_cooldown_ms: int = 1_500,
                 soft_tone_ms: int = 200, strong_tone_ms: int = 350):
        self.soft_after_ms = soft_after_ms
        self.strong_after_ms = strong_after_ms
        self.cooldown_ms = {AlertLevel.SOFT: soft_cooldown_ms, AlertLevel.STRONG: strong_cooldown_ms}
        self.tone_ms = {AlertLevel.SOFT: soft_tone_ms, AlertLevel.STRONG: strong_tone_ms}

        self.state = AlertState()
        self.last_looking_at: Optional[int] = None

    @property
    def level(self) -> AlertLevel:
        return self.state.level

    @property
    def is_active(self) -> bool:
        return self.state.level is not AlertLevel.INACTIVE

    @property
    def pulse_active(self) -> bool:
        """Red overlay pulse runs for both alert levels."""
        return self.is_active

    @property
    def shake_active(self) -> bool:
        return self.state.level is AlertLevel.STRONG

    def target_level(self, away_for_ms: int) -> AlertLevel:
        if away_for_ms >= self.strong_after_ms:
            return AlertLevel.STRONG
        if away_for_ms >= self.soft_after_ms:
            return AlertLevel.SOFT
        return AlertLevel.INACTIVE

    def update(self, looking: bool, now: int) -> AlertUpdate:
        """
        Feed one classifier decision.

        Args:
            looking: True when the frame was classified as looking
            now: Frame timestamp in ms

        Returns:
            AlertUpdate with the new level, any tone to play and emitted events
        """
        if self.last_looking_at is None:
            self.last_looking_at = now

        events: List[Event] = []
        if looking:
            self.last_looking_at = now
            changed = self._transition(AlertLevel.INACTIVE, now, events)
            return AlertUpdate(level=self.state.level, changed=changed, events=events)

        away_for_ms = now - self.last_looking_at
        target = self.target_level(away_for_ms)
        changed = self._transition(target, now, events)

        tone = None
        if target is not AlertLevel.INACTIVE:
            tone = self._maybe_tone(target, now)

        return AlertUpdate(level=self.state.level, changed=changed,
                           away_for_ms=away_for_ms, tone=tone, events=events)

    def _transition(self, target: AlertLevel, now: int, events: List[Event]) -> bool:
        current = self.state.level
        if target is current:
            return False

        self.state.level = target
        if target is AlertLevel.INACTIVE:
            events.append(Event(timestamp_ms=now, kind=EventKind.ALERT_STOP))
            logger.info(f"Alert stopped (was {current.value})")
        else:
            events.append(Event(timestamp_ms=now, kind=EventKind.ALERT_START, message=target.value))
            logger.info(f"Alert started: {target.value}")
        return True

    def _maybe_tone(self, level: AlertLevel, now: int) -> Optional[ToneRequest]:
        last_tone_at = self.state.last_tone_at
        if last_tone_at is not None and now - last_tone_at < self.cooldown_ms[level]:
            return None
        self.state.last_tone_at = now
        kind = ToneKind.STRONG if level is AlertLevel.STRONG else ToneKind.SOFT
        logger.debug(f"Tone requested: {kind.value} ({self.tone_ms[level]}ms)")
        return ToneRequest(kind=kind, duration_ms=self.tone_ms[level])

    def stop(self, now: int) -> List[Event]:
        """Drop any active alert immediately, e.g. while waiting for a face during calibration."""
        events: List[Event] = []
        self._transition(AlertLevel.INACTIVE, now, events)
        return events

    def reset(self, now: Optional[int] = None) -> None:
        """Forget alert state; `now` becomes the last looking time when given."""
        self.state = AlertState()
        self.last_looking_at = now
