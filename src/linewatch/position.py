"""Best-effort "where is this train now" from a trip's stop times."""

from typing import Callable, Optional, Sequence

from .models import At, Between, Past, PositionState, StopTimeEvent, Unknown


def classify(stop_time_events: Sequence[StopTimeEvent], now: int) -> PositionState:
    """
    Classify a trip's position at `now` from its ordered stop times.

    Walks the stops in feed order. The first stop whose arrival is still
    ahead means the train is between the previous stop and that one; a stop
    whose [arrival, departure] window contains `now` means the train is
    there. Feed ordering is trusted; timestamps are not re-sorted.

    Args:
        stop_time_events: Stop times for one trip, in travel order.
        now: Current Unix timestamp.

    Returns:
        Unknown, At, Between or Past.
    """
    if not stop_time_events:
        return Unknown()

    prev_stop_id: Optional[str] = None
    for event in stop_time_events:
        arr = event.arrival
        dep = event.departure if event.departure is not None else arr

        if arr is not None and now < arr:
            return Between(prev_stop_id, event.stop_id or None)
        if arr is not None and dep is not None and arr <= now <= dep:
            return At(event.stop_id or None)
        prev_stop_id = event.stop_id or None

    return Past(prev_stop_id)


def describe(state: PositionState, label: Callable[[Optional[str]], str]) -> str:
    """Render a position state as display text, labelling stops with `label`."""
    if isinstance(state, At):
        return f"At {label(state.stop_id)}"
    if isinstance(state, Between):
        return f"{label(state.from_stop_id)} → {label(state.to_stop_id)}"
    if isinstance(state, Past):
        return f"Past {label(state.last_stop_id)}"
    return "—"
