"""
Session Statistics Module

Accumulates looking/away time for the current session and reports the
focus percentage, number of look-aways and the longest uninterrupted focus
span. The interval that is still open at read time counts towards the
looking and away totals; the longest focus span only grows when a focus
span closes.
"""

from dataclasses import dataclass
from typing import List, Optional

from .events import Event, EventKind
from .shift_timer import format_mm_ss
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SessionStats:
    """Raw accumulator state."""
    session_started_at: Optional[int] = None
    total_looking_ms: int = 0
    total_away_ms: int = 0
    look_away_count: int = 0
    longest_focus_ms: int = 0
    current_focus_started_at: Optional[int] = None
    last_state_looking: Optional[bool] = None
    last_state_changed_at: Optional[int] = None


@dataclass(frozen=True)
class StatsSnapshot:
    """Totals as of a point in time, open interval included."""
    looking_ms: int
    away_ms: int
    look_away_count: int
    longest_focus_ms: int
    focus_percent: int

    @property
    def text(self) -> str:
        return (f"Focus {self.focus_percent}% / Look-aways {self.look_away_count} / "
                f"Longest {format_mm_ss(self.longest_focus_ms)}")


class StatisticsAggregator:
    """Looking/away time bookkeeping for one session."""

    def __init__(self):
        self.stats = SessionStats()

    @property
    def session_started_at(self) -> Optional[int]:
        return self.stats.session_started_at

    def update(self, now: int, looking: bool) -> List[Event]:
        """
        Record the classification of the frame at `now`.

        Only changes of state produce events; repeated calls with the same
        state are no-ops.
        """
        s = self.stats
        if s.last_state_looking is None:
            s.session_started_at = now
            s.last_state_looking = looking
            s.last_state_changed_at = now
            s.current_focus_started_at = now if looking else None
            return []

        if looking == s.last_state_looking:
            return []

        delta = now - s.last_state_changed_at
        events: List[Event] = []
        if s.last_state_looking:
            s.total_looking_ms += delta
            if s.current_focus_started_at is not None:
                s.longest_focus_ms = max(s.longest_focus_ms, now - s.current_focus_started_at)
            s.current_focus_started_at = None
            s.look_away_count += 1
            events.append(Event(timestamp_ms=now, kind=EventKind.LOOK_AWAY_START))
            logger.debug(f"Look-away #{s.look_away_count} started at {now}")
        else:
            s.total_away_ms += delta
            s.current_focus_started_at = now
            events.append(Event(timestamp_ms=now, kind=EventKind.LOOK_AWAY_END, duration_ms=delta))
            logger.debug(f"Look-away ended after {delta}ms")

        s.last_state_looking = looking
        s.last_state_changed_at = now
        return events

    def snapshot(self, now: int) -> StatsSnapshot:
        """Compute the totals including the currently open interval."""
        s = self.stats
        looking_ms = s.total_looking_ms
        away_ms = s.total_away_ms

        if s.last_state_looking is not None:
            open_ms = max(0, now - s.last_state_changed_at)
            if s.last_state_looking:
                looking_ms += open_ms
            else:
                away_ms += open_ms

        focus_percent = (100 * looking_ms) // max(1, looking_ms + away_ms)
        return StatsSnapshot(
            looking_ms=looking_ms,
            away_ms=away_ms,
            look_away_count=s.look_away_count,
            longest_focus_ms=s.longest_focus_ms,
            focus_percent=focus_percent,
        )

    def reset(self) -> None:
        self.stats = SessionStats()
