"""Data models for the linewatch arrival engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class VehicleStatus(Enum):
    """GTFS-Realtime VehicleStopStatus, closed over the values we handle."""
    INCOMING_AT = 0
    STOPPED_AT = 1
    IN_TRANSIT_TO = 2
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Optional[int]) -> "VehicleStatus":
        """Map a numeric feed code to a status, UNKNOWN for anything unrecognized."""
        for status in cls:
            if status.value == code and status is not cls.UNKNOWN:
                return status
        return cls.UNKNOWN


@dataclass(frozen=True)
class StopTimeEvent:
    """One stop in a trip's predicted stop sequence."""
    stop_id: str
    arrival: Optional[int] = None  # Unix timestamp
    departure: Optional[int] = None  # Unix timestamp


@dataclass(frozen=True)
class TripUpdate:
    """Predicted stop times for one trip."""
    trip_id: str
    route_id: str
    stop_time_events: Tuple[StopTimeEvent, ...] = ()


@dataclass(frozen=True)
class VehiclePosition:
    """Last reported status of the vehicle running a trip."""
    trip_id: str
    route_id: str
    status: VehicleStatus = VehicleStatus.UNKNOWN
    stop_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[int] = None  # Unix timestamp
    current_stop_sequence: Optional[int] = None


@dataclass(frozen=True)
class Snapshot:
    """A decoded point-in-time capture of the feed."""
    entities: Tuple[Union[TripUpdate, VehiclePosition], ...]
    header_timestamp: Optional[int]  # Unix timestamp from the feed header
    fetched_at_ms: int

    def trip_updates(self) -> Tuple[TripUpdate, ...]:
        return tuple(e for e in self.entities if isinstance(e, TripUpdate))

    def vehicle_positions(self) -> Tuple[VehiclePosition, ...]:
        return tuple(e for e in self.entities if isinstance(e, VehiclePosition))

    def age_seconds(self, now: int) -> int:
        """
        Age of the data, preferring the server's header timestamp.

        Falls back to the local fetch time when the header has no timestamp.
        """
        if self.header_timestamp:
            return max(0, now - self.header_timestamp)
        return max(0, round(now - self.fetched_at_ms / 1000))


@dataclass(frozen=True)
class Unknown:
    """No stop times to reason about."""


@dataclass(frozen=True)
class At:
    """Train is dwelling at a stop."""
    stop_id: Optional[str]


@dataclass(frozen=True)
class Between:
    """Train has left from_stop_id (if known) and not yet reached to_stop_id."""
    from_stop_id: Optional[str]
    to_stop_id: Optional[str]


@dataclass(frozen=True)
class Past:
    """Every listed arrival is behind the train."""
    last_stop_id: Optional[str]


PositionState = Union[Unknown, At, Between, Past]


@dataclass(frozen=True)
class ArrivalRow:
    """A projected arrival of one trip at the requested stop."""
    route_id: str
    trip_id: str
    target_time: int  # Unix timestamp at the target stop
    eta_seconds: int
    position: PositionState
    position_description: str
    status_text: str

    @property
    def minutes_away(self) -> int:
        return max(0, round(self.eta_seconds / 60))


@dataclass(frozen=True)
class HeadwayStats:
    """Gap statistics between consecutive arrivals, in minutes."""
    next_headway_minutes: Optional[float] = None
    mean_headway_minutes: Optional[float] = None
    median_headway_minutes: Optional[float] = None
    arrival_times: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Station:
    """A row from the stop reference data."""
    stop_id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class LineStation:
    """A physical station on the line and its directional platform ids."""
    base_id: str
    name: str
    latitude: float
    longitude: float
    variants: Dict[str, str] = field(default_factory=dict)  # {"N": "721N", "S": "721S"}


@dataclass(frozen=True)
class NearbyStation:
    station: LineStation
    distance_m: float


@dataclass
class StationBoard:
    """Arrival board for a stop, as served to a display."""
    stop_id: str
    stop_label: str
    rows: list
    horizon_minutes: int
    updated_at: int
    feed_timestamp: Optional[int] = None
    source_age_seconds: Optional[int] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None


@dataclass
class HeadwayBoard:
    """Headway statistics for a stop, as served to a display."""
    stop_id: str
    stop_label: str
    stats: HeadwayStats
    arrivals: list
    horizon_minutes: int
    updated_at: int
    feed_timestamp: Optional[int] = None
    source_age_seconds: Optional[int] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None
