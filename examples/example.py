"""Example usage of LineTracker."""

import logging
import sys
from datetime import datetime
from pathlib import Path

# Add src to path so we can import linewatch
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from linewatch.tracker import LineTracker

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _clock(ts):
    return datetime.fromtimestamp(ts).strftime("%H:%M:%S") if ts else "—"


def _minutes(value):
    return f"{value:.1f} min" if value is not None else "—"


def print_stop_data(stop_id: str, horizon_minutes: int = 30):
    """
    Fetch and display arrivals and headways for a stop.

    Args:
        stop_id: Platform stop ID (e.g., "721S")
        horizon_minutes: How far ahead to look
    """
    print(f"\n{'='*70}")
    print(f"Fetching data for: {stop_id}")
    print(f"{'='*70}\n")

    tracker = LineTracker()
    board = tracker.get_station_board(stop_id, horizon_minutes=horizon_minutes)

    print(f"Station: {board.stop_label}")
    print(
        f"Updated {_clock(board.updated_at)} • Feed ts {_clock(board.feed_timestamp)} • "
        f"Source age {board.source_age_seconds if board.source_age_seconds is not None else '—'}s • "
        f"Window {board.horizon_minutes} min\n"
    )

    if not board.available:
        print(f"Feed unavailable: {board.error}")
        sys.exit(1)

    print("ARRIVALS:")
    print("-" * 70)
    if board.rows:
        for row in board.rows:
            print(
                f"  {row.route_id:<3} {row.trip_id:<24} {row.minutes_away:>3} min  "
                f"{_clock(row.target_time)}  {row.position_description}  [{row.status_text}]"
            )
    else:
        print(f"  No arrivals to {board.stop_id} within {board.horizon_minutes} minutes.")

    headway = tracker.get_headway_board(stop_id)
    print("\n" + "=" * 70)
    print(f"HEADWAY — {headway.stop_label}:")
    print("-" * 70)
    if headway.available:
        print(f"  Next headway:   {_minutes(headway.stats.next_headway_minutes)}")
        print(f"  Mean headway:   {_minutes(headway.stats.mean_headway_minutes)}")
        print(f"  Median headway: {_minutes(headway.stats.median_headway_minutes)}")
    else:
        print(f"  Feed unavailable: {headway.error}")

    print("\n" + "=" * 70 + "\n")


if __name__ == "__main__":
    stop = sys.argv[1] if len(sys.argv) > 1 else "721S"
    horizon = sys.argv[2] if len(sys.argv) > 2 else 30
    try:
        print_stop_data(stop, horizon)
    except Exception as e:
        logger.error(f"Failed to fetch data: {e}", exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)
