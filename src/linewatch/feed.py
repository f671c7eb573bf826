"""GTFS-Realtime feed fetching, decoding and snapshot caching."""

import logging
import threading
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

import requests
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from .config import DEFAULT_FEED_TIMEOUT, DEFAULT_FEED_TTL, DEFAULT_FEED_URL
from .exceptions import FeedUnavailableError
from .models import Snapshot, StopTimeEvent, TripUpdate, VehiclePosition, VehicleStatus

logger = logging.getLogger(__name__)


def to_epoch_seconds(value) -> Optional[int]:
    """
    Normalize a feed timestamp to a plain int.

    Accepts ints, numeric strings, and wide-integer wrappers exposing
    toNumber()/to_number() or __int__. Missing, zero or unparseable
    values become None.
    """
    if value is None:
        return None
    for converter in ("toNumber", "to_number"):
        if callable(getattr(value, converter, None)):
            value = getattr(value, converter)()
            break
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return seconds or None


def _stop_time_event(stop_time_update) -> StopTimeEvent:
    arrival = departure = None
    if stop_time_update.HasField("arrival") and stop_time_update.arrival.HasField("time"):
        arrival = to_epoch_seconds(stop_time_update.arrival.time)
    if stop_time_update.HasField("departure") and stop_time_update.departure.HasField("time"):
        departure = to_epoch_seconds(stop_time_update.departure.time)
    return StopTimeEvent(
        stop_id=stop_time_update.stop_id,
        arrival=arrival,
        departure=departure,
    )


def _trip_update(entity) -> TripUpdate:
    trip_update = entity.trip_update
    return TripUpdate(
        trip_id=trip_update.trip.trip_id,
        route_id=trip_update.trip.route_id,
        stop_time_events=tuple(_stop_time_event(s) for s in trip_update.stop_time_update),
    )


def _vehicle_position(entity) -> VehiclePosition:
    vehicle = entity.vehicle
    latitude = longitude = None
    if vehicle.HasField("position"):
        latitude = vehicle.position.latitude
        longitude = vehicle.position.longitude

    return VehiclePosition(
        trip_id=vehicle.trip.trip_id,
        route_id=vehicle.trip.route_id,
        status=VehicleStatus.from_code(
            vehicle.current_status if vehicle.HasField("current_status") else None
        ),
        stop_id=vehicle.stop_id or None,
        latitude=latitude,
        longitude=longitude,
        timestamp=to_epoch_seconds(vehicle.timestamp) if vehicle.HasField("timestamp") else None,
        current_stop_sequence=(
            vehicle.current_stop_sequence if vehicle.HasField("current_stop_sequence") else None
        ),
    )


def decode_feed(feed_data: bytes, fetched_at_ms: int) -> Snapshot:
    """
    Decode raw GTFS-Realtime protobuf bytes into a Snapshot.

    Args:
        feed_data: Raw protobuf bytes.
        fetched_at_ms: When the bytes were fetched, in Unix milliseconds.

    Returns:
        Snapshot holding trip updates and vehicle positions, in feed order.

    Raises:
        FeedUnavailableError: If the bytes aren't a valid FeedMessage.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(feed_data)
    except DecodeError as e:
        logger.error(f"Failed to decode feed: {e}")
        raise FeedUnavailableError(f"Feed decode failed: {e}") from e

    entities: List = []
    for entity in feed.entity:
        if entity.HasField("trip_update"):
            entities.append(_trip_update(entity))
        if entity.HasField("vehicle"):
            entities.append(_vehicle_position(entity))

    header_timestamp = None
    if feed.HasField("header") and feed.header.HasField("timestamp"):
        header_timestamp = to_epoch_seconds(feed.header.timestamp)

    logger.debug(f"Decoded {len(entities)} entities from feed")
    return Snapshot(
        entities=tuple(entities),
        header_timestamp=header_timestamp,
        fetched_at_ms=fetched_at_ms,
    )


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    """
    JSON-ready view of a snapshot, for dumping the decoded feed.

    Timestamps are already plain ints; vehicle statuses become their names.
    """
    entities = []
    for entity in snapshot.entities:
        data = asdict(entity)
        if isinstance(entity, TripUpdate):
            data["stop_time_events"] = list(data["stop_time_events"])
            entities.append({"type": "trip_update", **data})
        else:
            data["status"] = entity.status.name
            entities.append({"type": "vehicle", **data})

    return {
        "header_timestamp": snapshot.header_timestamp,
        "fetched_at_ms": snapshot.fetched_at_ms,
        "entities": entities,
    }


class FeedClient:
    """Fetches and decodes the GTFS-Realtime feed over HTTP."""

    def __init__(
        self,
        feed_url: str = DEFAULT_FEED_URL,
        timeout: float = DEFAULT_FEED_TIMEOUT,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.feed_url = feed_url
        self.timeout = timeout
        self.headers = {"x-api-key": api_key} if api_key else None
        self._session = session or requests.Session()

    def fetch_snapshot(self) -> Snapshot:
        """
        Fetch the feed and decode it.

        Raises:
            FeedUnavailableError: On network errors, non-200 responses or bad payloads.
        """
        logger.debug(f"Fetching {self.feed_url}")
        try:
            response = self._session.get(self.feed_url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {self.feed_url}: {e}")
            raise FeedUnavailableError(f"Feed fetch failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Feed fetch failed: {response.status_code} {response.reason}")
            raise FeedUnavailableError(
                f"Feed fetch failed ({response.status_code} {response.reason})"
            )

        return decode_feed(response.content, int(time.time() * 1000))

    def close(self) -> None:
        self._session.close()


class SnapshotCache:
    """
    Holds the most recent snapshot for a short TTL.

    Refreshes are single-flight: callers arriving while a fetch is in
    progress wait for it and share its result.
    """

    def __init__(self, fetcher: Callable[[], Snapshot], ttl_seconds: float = DEFAULT_FEED_TTL):
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._snapshot: Optional[Snapshot] = None
        self._cached_at: float = 0.0
        self._lock = threading.Lock()

    def _cached(self, now: float) -> Optional[Snapshot]:
        """The snapshot if still fresh, else None. Each field is read once."""
        snapshot, cached_at = self._snapshot, self._cached_at
        if snapshot is not None and now - cached_at < self._ttl:
            return snapshot
        return None

    def get(self, now: Optional[float] = None) -> Snapshot:
        """
        Return the cached snapshot, fetching a new one if it has expired.

        Args:
            now: Current Unix time in seconds; defaults to time.time().

        Raises:
            FeedUnavailableError: If a refresh was needed and failed.
        """
        now = time.time() if now is None else now
        snapshot = self._cached(now)
        if snapshot is not None:
            logger.debug("Using cached feed snapshot")
            return snapshot

        with self._lock:
            # Another caller may have refreshed while we waited
            snapshot = self._cached(now)
            if snapshot is not None:
                return snapshot
            snapshot = self._fetcher()
            self._snapshot = snapshot
            self._cached_at = now
            return snapshot

    def invalidate_if_expired(self, now: Optional[float] = None) -> bool:
        """Drop the cached snapshot if its TTL has passed. Returns True if dropped."""
        now = time.time() if now is None else now
        with self._lock:
            if self._snapshot is not None and self._cached(now) is None:
                self._snapshot = None
                logger.debug("Evicted expired feed snapshot")
                return True
        return False

    def clear(self) -> None:
        """Manually clear the cache."""
        with self._lock:
            self._snapshot = None
            self._cached_at = 0.0
