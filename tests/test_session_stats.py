"""
Tests for session statistics.
"""

import sys
import os
import random
import unittest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from screeneye.core.events import EventKind
from screeneye.core.session_stats import StatisticsAggregator


class TestStatisticsAggregator(unittest.TestCase):
    """Test looking/away bookkeeping."""

    def setUp(self):
        self.stats = StatisticsAggregator()

    def test_first_update_seeds_only(self):
        self.assertEqual(self.stats.update(1000, True), [])
        self.assertEqual(self.stats.session_started_at, 1000)

        snapshot = self.stats.snapshot(3000)
        self.assertEqual(snapshot.looking_ms, 2000)
        self.assertEqual(snapshot.away_ms, 0)
        self.assertEqual(snapshot.look_away_count, 0)
        self.assertEqual(snapshot.focus_percent, 100)
        # No focus span has closed yet
        self.assertEqual(snapshot.longest_focus_ms, 0)

    def test_empty_snapshot(self):
        snapshot = self.stats.snapshot(5000)
        self.assertEqual(snapshot.focus_percent, 0)
        self.assertEqual(snapshot.looking_ms + snapshot.away_ms, 0)

    def test_look_away_cycle(self):
        self.stats.update(0, True)

        events = self.stats.update(3000, False)
        self.assertEqual([e.kind for e in events], [EventKind.LOOK_AWAY_START])

        events = self.stats.update(4000, True)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].kind, EventKind.LOOK_AWAY_END)
        self.assertEqual(events[0].duration_ms, 1000)

        snapshot = self.stats.snapshot(4500)
        self.assertEqual(snapshot.looking_ms, 3500)
        self.assertEqual(snapshot.away_ms, 1000)
        self.assertEqual(snapshot.look_away_count, 1)
        self.assertEqual(snapshot.longest_focus_ms, 3000)
        self.assertEqual(snapshot.focus_percent, 77)

    def test_repeated_state_is_noop(self):
        self.stats.update(0, True)
        for t in range(100, 2000, 100):
            self.assertEqual(self.stats.update(t, True), [])
        self.assertEqual(self.stats.stats.last_state_changed_at, 0)

    def test_focus_percent_truncates(self):
        self.stats.update(0, True)
        self.stats.update(2000, False)
        snapshot = self.stats.snapshot(3000)
        self.assertEqual(snapshot.focus_percent, 66)

    def test_longest_focus_counts_closed_spans_only(self):
        self.stats.update(0, True)
        self.assertEqual(self.stats.snapshot(60_000).longest_focus_ms, 0)

        self.stats.update(1000, False)
        self.stats.update(2000, True)
        self.assertEqual(self.stats.snapshot(2500).longest_focus_ms, 1000)
        self.assertEqual(self.stats.snapshot(9000).longest_focus_ms, 1000)

        self.stats.update(9000, False)
        self.assertEqual(self.stats.snapshot(9500).longest_focus_ms, 7000)

    def test_text(self):
        self.stats.update(0, True)
        self.stats.update(65_000, False)
        snapshot = self.stats.snapshot(100_000)
        self.assertEqual(snapshot.text, "Focus 65% / Look-aways 1 / Longest 01:05")

    def test_totals_cover_session(self):
        """Looking + away (open interval included) always spans the whole session."""
        rng = random.Random(42)
        now = 10_000
        self.stats.update(now, rng.random() < 0.5)
        start = now
        for _ in range(500):
            now += rng.randint(0, 400)
            self.stats.update(now, rng.random() < 0.6)
            probe = now + rng.randint(0, 300)
            snapshot = self.stats.snapshot(probe)
            self.assertEqual(snapshot.looking_ms + snapshot.away_ms, probe - start)

    def test_reset(self):
        self.stats.update(0, True)
        self.stats.update(1000, False)
        self.stats.reset()
        self.assertIsNone(self.stats.session_started_at)
        self.assertEqual(self.stats.snapshot(5000).look_away_count, 0)


if __name__ == '__main__':
    unittest.main()
