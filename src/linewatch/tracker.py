"""Main LineTracker class."""

import logging
import time
from typing import Iterable, List, Optional

from .arrivals import arrival_times, overlay, project_arrivals, vehicles_by_trip
from .config import Settings
from .exceptions import FeedUnavailableError, StopDataError
from .feed import FeedClient, SnapshotCache
from .headway import aggregate
from .models import ArrivalRow, HeadwayBoard, HeadwayStats, NearbyStation, Snapshot, StationBoard
from .stops import DIRECTION_SUFFIX, StopDirectory, default_directory

logger = logging.getLogger(__name__)

# Minutes: (default, minimum, maximum)
BOARD_HORIZON = (30, 5, 60)
HEADWAY_HORIZON = (45, 10, 90)


def clamp_horizon_minutes(value, default: int, lower: int, upper: int) -> int:
    """Parse a requested horizon in minutes, clamped to [lower, upper]."""
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return default
    return max(lower, min(minutes, upper))


class LineTracker:
    """
    Arrivals, train positions and headways for stops on one subway line.

    This class provides methods to:
    - Project upcoming arrivals at a stop, with where each train is now
    - Compute headway statistics at a stop
    - Find the line's stations nearest a location
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[SnapshotCache] = None,
        directory: Optional[StopDirectory] = None,
    ):
        """
        Initialize the tracker.

        Args:
            settings: Configuration; read from the environment if omitted.
            cache: Snapshot cache to read the feed through. Built from settings if omitted.
            directory: Stop directory used for labels. The shared process-wide one if omitted.
        """
        self.settings = settings or Settings.from_env()
        if cache is None:
            client = FeedClient(
                self.settings.feed_url,
                timeout=self.settings.feed_timeout,
                api_key=self.settings.api_key,
            )
            cache = SnapshotCache(client.fetch_snapshot, ttl_seconds=self.settings.feed_ttl)
        self.cache = cache
        self.directory = directory or default_directory(self.settings.stops_path)
        self.allowed_routes = tuple(self.settings.routes)

    def _snapshot(self, now: int) -> Snapshot:
        return self.cache.get(now)

    def _project(
        self, snapshot: Snapshot, stop_id: str, routes: tuple, horizon_seconds: int, now: int
    ) -> List[ArrivalRow]:
        rows = project_arrivals(
            snapshot.entities,
            stop_id,
            routes,
            now,
            horizon_seconds,
            label=self.directory.label,
            stale_grace_seconds=self.settings.stale_grace,
        )
        vehicles = vehicles_by_trip(snapshot.entities, routes)
        return [overlay(row, vehicles, label=self.directory.label) for row in rows]

    def _routes(self, allowed_routes: Optional[Iterable[str]]) -> tuple:
        return tuple(allowed_routes) if allowed_routes is not None else self.allowed_routes

    def get_arrivals(
        self,
        stop_id: str,
        allowed_routes: Optional[Iterable[str]] = None,
        horizon_seconds: int = BOARD_HORIZON[0] * 60,
        now: Optional[int] = None,
    ) -> List[ArrivalRow]:
        """
        Upcoming arrivals at a stop, earliest first.

        Args:
            stop_id: Target stop (e.g., "721S").
            allowed_routes: Routes to include; defaults to the configured routes.
            horizon_seconds: Furthest ETA to include.
            now: Current Unix timestamp; defaults to the wall clock.

        Returns:
            List of ArrivalRow, one per trip, with vehicle telemetry applied.

        Raises:
            FeedUnavailableError: If the feed could not be fetched or decoded.
        """
        now = int(time.time()) if now is None else now
        snapshot = self._snapshot(now)
        return self._project(snapshot, stop_id, self._routes(allowed_routes), horizon_seconds, now)

    def get_headway_stats(
        self,
        stop_id: str,
        allowed_routes: Optional[Iterable[str]] = None,
        horizon_seconds: int = HEADWAY_HORIZON[0] * 60,
        now: Optional[int] = None,
    ) -> HeadwayStats:
        """
        Headway statistics at a stop, from the same arrivals as get_arrivals().

        Raises:
            FeedUnavailableError: If the feed could not be fetched or decoded.
        """
        now = int(time.time()) if now is None else now
        snapshot = self._snapshot(now)
        times = arrival_times(
            snapshot.entities,
            stop_id,
            self._routes(allowed_routes),
            now,
            horizon_seconds,
            stale_grace_seconds=self.settings.stale_grace,
        )
        return aggregate(times, now)

    def stop_label(self, stop_id: str) -> str:
        """Station name, with the direction suffix kept for platform ids (e.g., "Vernon Blvd-Jackson Av (S)")."""
        try:
            station = self.directory.lookup_station(stop_id)
        except StopDataError as e:
            logger.warning(f"Stop lookup for {stop_id} failed: {e}")
            station = None
        if station is None:
            return stop_id
        match = DIRECTION_SUFFIX.match(stop_id.upper())
        return f"{station.name} ({match.group(2)})" if match else station.name

    def get_station_board(
        self, stop_id: str, horizon_minutes=None, now: Optional[int] = None
    ) -> StationBoard:
        """
        Arrival board for a stop. Feed failures are reported on the board, not raised.

        Args:
            stop_id: Target stop; blank means the configured default "721S".
            horizon_minutes: Requested window; clamped to 5-60, default 30.
            now: Current Unix timestamp; defaults to the wall clock.
        """
        now = int(time.time()) if now is None else now
        stop_id = (stop_id or "721S").strip().upper()
        horizon = clamp_horizon_minutes(horizon_minutes, *BOARD_HORIZON)

        board = StationBoard(
            stop_id=stop_id,
            stop_label=self.directory.label(stop_id),
            rows=[],
            horizon_minutes=horizon,
            updated_at=now,
        )
        try:
            snapshot = self._snapshot(now)
        except FeedUnavailableError as e:
            logger.warning(f"Arrival board for {stop_id} degraded: {e}")
            board.error = str(e)
            return board

        board.rows = self._project(snapshot, stop_id, self.allowed_routes, horizon * 60, now)
        board.feed_timestamp = snapshot.header_timestamp
        board.source_age_seconds = snapshot.age_seconds(now)
        return board

    def get_headway_board(
        self, stop_id: str, horizon_minutes=None, now: Optional[int] = None
    ) -> HeadwayBoard:
        """Headway statistics and upcoming arrivals for a stop; clamped to 10-90 minutes, default 45."""
        now = int(time.time()) if now is None else now
        stop_id = (stop_id or "721S").strip().upper()
        horizon = clamp_horizon_minutes(horizon_minutes, *HEADWAY_HORIZON)

        board = HeadwayBoard(
            stop_id=stop_id,
            stop_label=self.stop_label(stop_id),
            stats=HeadwayStats(),
            arrivals=[],
            horizon_minutes=horizon,
            updated_at=now,
        )
        try:
            snapshot = self._snapshot(now)
        except FeedUnavailableError as e:
            logger.warning(f"Headway board for {stop_id} degraded: {e}")
            board.error = str(e)
            return board

        board.arrivals = self._project(snapshot, stop_id, self.allowed_routes, horizon * 60, now)
        board.stats = aggregate([row.target_time for row in board.arrivals], now)
        board.feed_timestamp = snapshot.header_timestamp
        board.source_age_seconds = snapshot.age_seconds(now)
        return board

    def nearest_stations(self, lat: float, lon: float, limit: int = 3) -> List[NearbyStation]:
        """Stations on the line nearest to a location."""
        return self.directory.nearest_stations(lat, lon, limit=limit, prefix=self.settings.line_prefix)

    def cleanup(self) -> None:
        """Release cached feed data."""
        self.cache.clear()
        logger.info("Cleaned up tracker resources")
