"""Headway statistics over a stop's upcoming arrivals."""

from typing import List, Sequence

import pandas as pd

from .models import HeadwayStats


def _gaps(times: Sequence[int]) -> pd.Series:
    # First row has no previous arrival
    return (pd.Series(list(times), dtype="float64").diff() / 60.0).dropna()


def gaps_minutes(times: Sequence[int]) -> List[float]:
    """Minutes between consecutive arrival times."""
    return [float(gap) for gap in _gaps(times)]


def aggregate(times: Sequence[int], now: int) -> HeadwayStats:
    """
    Compute headways for ascending arrival times at one stop.

    Args:
        times: Arrival Unix timestamps, ascending, one per trip.
        now: Current Unix timestamp.

    Returns:
        HeadwayStats; any statistic without enough data is None.
    """
    gaps = _gaps(times)

    next_headway = None
    future = [i for i, t in enumerate(times) if t >= now]
    if future and future[0] + 1 < len(times):
        first = future[0]
        next_headway = (times[first + 1] - times[first]) / 60

    return HeadwayStats(
        next_headway_minutes=next_headway,
        mean_headway_minutes=float(gaps.mean()) if len(gaps) else None,
        median_headway_minutes=float(gaps.median()) if len(gaps) else None,
        arrival_times=tuple(times),
    )
