"""Arrival projection for a target stop, with vehicle-position overlay."""

import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from .models import ArrivalRow, TripUpdate, VehiclePosition, VehicleStatus
from .position import classify, describe

logger = logging.getLogger(__name__)

# Arrivals this far in the past are still shown; absorbs clock/feed jitter
STALE_GRACE_SECONDS = 60
ARRIVING_THRESHOLD_SECONDS = 15

Label = Callable[[Optional[str]], str]


def raw_label(stop_id: Optional[str]) -> str:
    """Fallback label: the raw stop id."""
    return stop_id or "—"


def _target_time(trip_update: TripUpdate, target_stop_id: str) -> Optional[int]:
    """Arrival (or departure) time of the first event at the target stop."""
    for event in trip_update.stop_time_events:
        if (event.stop_id or "").upper() == target_stop_id:
            if event.arrival is not None:
                return event.arrival
            return event.departure
    return None


def project_arrivals(
    entities: Iterable,
    target_stop_id: str,
    allowed_routes: Iterable[str],
    now: int,
    horizon_seconds: int,
    label: Optional[Label] = None,
    stale_grace_seconds: int = STALE_GRACE_SECONDS,
) -> List[ArrivalRow]:
    """
    Project arrivals at a stop from a feed snapshot.

    Args:
        entities: Snapshot entities; anything that isn't a TripUpdate is ignored.
        target_stop_id: Stop to project arrivals for (matched case-insensitively).
        allowed_routes: Route IDs to include (e.g., {"7", "7X"}).
        now: Current Unix timestamp.
        horizon_seconds: Furthest ETA to include.
        label: Stop-id -> display name, used for position text.
        stale_grace_seconds: How far in the past an arrival may be and still count.

    Returns:
        At most one ArrivalRow per trip, earliest first.
    """
    label = label or raw_label
    routes = set(allowed_routes)
    target = (target_stop_id or "").strip().upper()

    earliest_by_trip: Dict[str, ArrivalRow] = {}
    for entity in entities:
        if not isinstance(entity, TripUpdate) or entity.route_id not in routes:
            continue

        t = _target_time(entity, target)
        if t is None:
            continue

        eta_seconds = t - now
        if eta_seconds < -stale_grace_seconds or eta_seconds > horizon_seconds:
            continue

        position = classify(entity.stop_time_events, now)
        row = ArrivalRow(
            route_id=entity.route_id,
            trip_id=entity.trip_id or "—",
            target_time=t,
            eta_seconds=eta_seconds,
            position=position,
            position_description=describe(position, label),
            status_text="Arriving" if eta_seconds <= ARRIVING_THRESHOLD_SECONDS else "En-route",
        )

        # Duplicate entities for a trip: keep the earliest time at the stop
        prev = earliest_by_trip.get(row.trip_id)
        if prev is None or row.target_time < prev.target_time:
            earliest_by_trip[row.trip_id] = row

    # sorted() is stable, so ties keep encounter order
    rows = sorted(earliest_by_trip.values(), key=lambda r: r.target_time)
    logger.debug(f"Projected {len(rows)} arrivals for {target}")
    return rows


def arrival_times(
    entities: Iterable,
    target_stop_id: str,
    allowed_routes: Iterable[str],
    now: int,
    horizon_seconds: int,
    stale_grace_seconds: int = STALE_GRACE_SECONDS,
) -> List[int]:
    """Target-stop times of project_arrivals(), ascending."""
    rows = project_arrivals(
        entities,
        target_stop_id,
        allowed_routes,
        now,
        horizon_seconds,
        stale_grace_seconds=stale_grace_seconds,
    )
    return [row.target_time for row in rows]


def vehicles_by_trip(
    entities: Iterable, allowed_routes: Iterable[str]
) -> Dict[str, VehiclePosition]:
    """Index vehicle positions by trip id; a later record for a trip replaces an earlier one."""
    routes = set(allowed_routes)
    vehicles: Dict[str, VehiclePosition] = {}
    for entity in entities:
        if not isinstance(entity, VehiclePosition):
            continue
        if entity.route_id not in routes or not entity.trip_id:
            continue
        vehicles[entity.trip_id] = entity
    return vehicles


def _status_text(vehicle: VehiclePosition, label: Label) -> str:
    status = vehicle.status
    if status is VehicleStatus.STOPPED_AT and vehicle.stop_id:
        return f"STOPPED_AT {label(vehicle.stop_id)}"
    if status is VehicleStatus.IN_TRANSIT_TO and vehicle.stop_id:
        return f"IN_TRANSIT_TO {label(vehicle.stop_id)}"
    if status is VehicleStatus.INCOMING_AT and vehicle.stop_id:
        return f"INCOMING_AT {label(vehicle.stop_id)}"
    return status.name


def overlay(
    row: ArrivalRow,
    vehicles: Dict[str, VehiclePosition],
    label: Optional[Label] = None,
) -> ArrivalRow:
    """
    Prefer vehicle telemetry over schedule inference for a row.

    Returns the row itself when there is no vehicle record for its trip.
    """
    vehicle = vehicles.get(row.trip_id)
    if vehicle is None:
        return row

    label = label or raw_label
    changes = {"status_text": _status_text(vehicle, label)}
    # Overwritten even when the stop isn't in the trip's own stop times
    if vehicle.stop_id:
        changes["position_description"] = f"Near {label(vehicle.stop_id)}"
    return replace(row, **changes)
