"""
State-transition events emitted by the attention engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    CALIBRATION_START = "CALIBRATION_START"
    CALIBRATION_COMPLETE = "CALIBRATION_COMPLETE"
    ALERT_START = "ALERT_START"
    ALERT_STOP = "ALERT_STOP"
    LOOK_AWAY_START = "LOOK_AWAY_START"
    LOOK_AWAY_END = "LOOK_AWAY_END"
    SHIFT_ALERT = "SHIFT_ALERT"
    SHIFT_ACK = "SHIFT_ACK"
    SHIFT_SAME_OPERATOR = "SHIFT_SAME_OPERATOR"


@dataclass(frozen=True)
class Event:
    """A write-once engine event, timestamped in ms since epoch."""
    timestamp_ms: int
    kind: EventKind
    message: Optional[str] = None
    duration_ms: Optional[int] = None
