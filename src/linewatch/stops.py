"""Stop reference data (GTFS stops.txt) for labelling and station search."""

import io
import logging
import math
import re
import threading
from typing import Dict, List, Optional

import pandas as pd
import requests

from .exceptions import StopDataError
from .models import LineStation, NearbyStation, Station

logger = logging.getLogger(__name__)

# MTA static GTFS stops file
MTA_STOPS_URL = "https://rrgtfsfeeds.s3.amazonaws.com/gtfs_subway.zip"

EARTH_RADIUS_M = 6371000
DIRECTION_SUFFIX = re.compile(r"^(.+?)([NSEW])$")


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _coordinate(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


class StopDirectory:
    """
    Lazily-loaded index of stops by upper-cased stop_id.

    The file is read on first lookup and kept for the life of the object;
    stop reference data changes rarely.
    """

    def __init__(self, source: Optional[str] = None, frame: Optional[pd.DataFrame] = None):
        """
        Args:
            source: Path or URL of stops.txt (zip archives containing stops.txt work too).
            frame: Already-loaded stops table, mainly for tests.
        """
        self.source = source or MTA_STOPS_URL
        self._frame = frame
        self._stations: Optional[Dict[str, Station]] = None
        self._load_error: Optional[StopDataError] = None
        self._lock = threading.Lock()

    def _read_frame(self) -> pd.DataFrame:
        if self._frame is not None:
            return self._frame
        logger.info(f"Loading stops from {self.source}")
        read_kwargs = {"dtype": str, "keep_default_na": False}
        if self.source.endswith(".zip"):
            import zipfile

            response = requests.get(self.source, timeout=60)
            response.raise_for_status()
            with zipfile.ZipFile(io.BytesIO(response.content)) as zip_file:
                with zip_file.open("stops.txt") as fh:
                    return pd.read_csv(fh, **read_kwargs)
        return pd.read_csv(self.source, **read_kwargs)

    def _load(self) -> Dict[str, Station]:
        if self._stations is not None:
            return self._stations

        with self._lock:
            if self._stations is not None:
                return self._stations
            # A failed load is remembered until clear()
            if self._load_error is not None:
                raise self._load_error
            try:
                frame = self._read_frame()
            except Exception as e:
                logger.error(f"Failed to load stops: {e}")
                self._load_error = StopDataError(f"Could not read stops from {self.source}: {e}")
                raise self._load_error from e

            frame = frame.rename(columns=lambda c: str(c).strip())
            if "stop_id" not in frame.columns or "stop_name" not in frame.columns:
                self._load_error = StopDataError("stops.txt missing required columns stop_id/stop_name")
                raise self._load_error

            missing = pd.Series([None] * len(frame), index=frame.index, dtype=float)
            lats = pd.to_numeric(frame["stop_lat"], errors="coerce") if "stop_lat" in frame.columns else missing
            lons = pd.to_numeric(frame["stop_lon"], errors="coerce") if "stop_lon" in frame.columns else missing
            ids = frame["stop_id"].fillna("").astype(str).str.strip()
            names = frame["stop_name"].fillna("").astype(str).str.strip()

            stations: Dict[str, Station] = {}
            for stop_id, name, lat, lon in zip(ids, names, lats, lons):
                if not stop_id:
                    continue
                stations[stop_id.upper()] = Station(
                    stop_id=stop_id,
                    name=name or stop_id,
                    latitude=_coordinate(lat),
                    longitude=_coordinate(lon),
                )

            logger.info(f"Loaded {len(stations)} stops")
            self._stations = stations
            return stations

    def lookup_station(self, stop_id: Optional[str]) -> Optional[Station]:
        """
        Find a stop, falling back from a directional id (721N) to its base (721).

        Returns:
            Station, with stop_id set to the requested id, or None.
        """
        if not stop_id:
            return None
        key = str(stop_id).strip().upper()
        stations = self._load()

        if key in stations:
            return stations[key]

        match = DIRECTION_SUFFIX.match(key)
        if match and match.group(1) in stations:
            base = stations[match.group(1)]
            return Station(
                stop_id=key,
                name=base.name,
                latitude=base.latitude,
                longitude=base.longitude,
            )
        return None

    def label(self, stop_id: Optional[str]) -> str:
        """Display name for a stop, or the raw id when unknown."""
        if not stop_id:
            return "—"
        try:
            station = self.lookup_station(stop_id)
        except StopDataError as e:
            logger.warning(f"Labelling {stop_id} without stop data: {e}")
            return stop_id
        return station.name if station else stop_id

    def list_stations_for_line(self, prefix: str = "7") -> List[LineStation]:
        """
        Base stations on a line, with their directional platform ids.

        MTA numbers stops by trunk line, so the 7 is every 7xx stop.
        """
        stations = self._load()
        prefix = prefix.upper()
        result: List[LineStation] = []
        for key, station in stations.items():
            if not key.startswith(prefix) or DIRECTION_SUFFIX.match(key):
                continue
            if station.latitude is None or station.longitude is None:
                continue
            variants = {
                direction: stations[key + direction].stop_id
                for direction in ("N", "S")
                if key + direction in stations
            }
            result.append(
                LineStation(
                    base_id=station.stop_id,
                    name=station.name,
                    latitude=station.latitude,
                    longitude=station.longitude,
                    variants=variants,
                )
            )
        return result

    def nearest_stations(
        self, lat: float, lon: float, limit: int = 3, prefix: str = "7"
    ) -> List[NearbyStation]:
        """Stations on the line closest to (lat, lon); limit is clamped to [1, 10]."""
        limit = max(1, min(int(limit), 10))
        scored = [
            NearbyStation(station=s, distance_m=haversine_m(lat, lon, s.latitude, s.longitude))
            for s in self.list_stations_for_line(prefix)
        ]
        scored.sort(key=lambda n: n.distance_m)
        return scored[:limit]

    def clear(self) -> None:
        """Drop loaded data; the next lookup reloads it."""
        with self._lock:
            self._stations = None
            self._load_error = None
        logger.info("Cleared stop data from memory")


_shared_directories: Dict[str, StopDirectory] = {}
_shared_lock = threading.Lock()


def default_directory(source: Optional[str] = None) -> StopDirectory:
    """Process-wide shared directory for a source, created on first use."""
    key = source or MTA_STOPS_URL
    with _shared_lock:
        if key not in _shared_directories:
            _shared_directories[key] = StopDirectory(key)
        return _shared_directories[key]
