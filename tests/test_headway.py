"""Tests for headway aggregation."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import linewatch
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from linewatch.headway import aggregate, gaps_minutes


class TestAggregate(unittest.TestCase):

    def test_three_arrivals(self):
        stats = aggregate([100, 280, 400], now=90)
        self.assertEqual(gaps_minutes([100, 280, 400]), [3.0, 2.0])
        self.assertAlmostEqual(stats.mean_headway_minutes, 2.5)
        self.assertAlmostEqual(stats.median_headway_minutes, 2.5)
        self.assertAlmostEqual(stats.next_headway_minutes, 3.0)
        self.assertEqual(stats.arrival_times, (100, 280, 400))

    def test_next_headway_skips_past_arrivals(self):
        stats = aggregate([100, 280, 400], now=200)
        self.assertAlmostEqual(stats.next_headway_minutes, 2.0)
        # Mean and median still cover every gap
        self.assertAlmostEqual(stats.mean_headway_minutes, 2.5)

    def test_arrival_at_now_counts_as_upcoming(self):
        stats = aggregate([100, 280, 400], now=280)
        self.assertAlmostEqual(stats.next_headway_minutes, 2.0)

    def test_one_future_arrival_has_no_next_headway(self):
        stats = aggregate([100, 280, 400], now=300)
        self.assertIsNone(stats.next_headway_minutes)
        self.assertAlmostEqual(stats.median_headway_minutes, 2.5)

    def test_odd_number_of_gaps(self):
        stats = aggregate([0, 60, 240, 300], now=0)
        self.assertAlmostEqual(stats.median_headway_minutes, 1.0)
        self.assertAlmostEqual(stats.mean_headway_minutes, 5 / 3)

    def test_statistics_are_plain_floats(self):
        stats = aggregate([100, 280, 400, 460], now=0)
        self.assertEqual(gaps_minutes([100, 280, 400, 460]), [3.0, 2.0, 1.0])
        self.assertIs(type(stats.mean_headway_minutes), float)
        self.assertIs(type(stats.median_headway_minutes), float)
        self.assertAlmostEqual(stats.median_headway_minutes, 2.0)

    def test_not_enough_arrivals(self):
        for times in ([], [100]):
            stats = aggregate(times, now=0)
            self.assertIsNone(stats.next_headway_minutes)
            self.assertIsNone(stats.mean_headway_minutes)
            self.assertIsNone(stats.median_headway_minutes)


if __name__ == "__main__":
    unittest.main()
