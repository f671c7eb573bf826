"""linewatch - Real-time arrivals, train positions and headways for one MTA subway line."""

__version__ = "0.1.0"

from .models import (
    ArrivalRow,
    At,
    Between,
    HeadwayBoard,
    HeadwayStats,
    Past,
    Snapshot,
    Station,
    StationBoard,
    StopTimeEvent,
    TripUpdate,
    Unknown,
    VehiclePosition,
    VehicleStatus,
)
from .exceptions import FeedUnavailableError, LinewatchError, StopDataError
from .position import classify
from .arrivals import project_arrivals, overlay
from .headway import aggregate
from .feed import FeedClient, SnapshotCache
from .stops import StopDirectory
from .tracker import LineTracker

__all__ = [
    "LineTracker",
    "FeedClient",
    "SnapshotCache",
    "StopDirectory",
    "classify",
    "project_arrivals",
    "overlay",
    "aggregate",
    "ArrivalRow",
    "At",
    "Between",
    "HeadwayBoard",
    "HeadwayStats",
    "Past",
    "Snapshot",
    "Station",
    "StationBoard",
    "StopTimeEvent",
    "TripUpdate",
    "Unknown",
    "VehiclePosition",
    "VehicleStatus",
    "LinewatchError",
    "FeedUnavailableError",
    "StopDataError",
]
