"""Runtime configuration, read from the environment (and a local .env file)."""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# MTA numbered-line feed (1-7, S); carries the 7 / 7X
DEFAULT_FEED_URL = "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs"
DEFAULT_ROUTES = ("7", "7X")
DEFAULT_FEED_TTL = 15  # seconds; covers double-taps and quick reloads
DEFAULT_STALE_GRACE = 60  # seconds an arrival may be in the past and still shown
DEFAULT_FEED_TIMEOUT = 10  # seconds
DEFAULT_LINE_PREFIX = "7"  # MTA stop ids for the 7 are 7xx


def _parse_routes(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_ROUTES
    routes = tuple(r.strip() for r in raw.split(",") if r.strip())
    return routes or DEFAULT_ROUTES


def _parse_int(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    feed_url: str = DEFAULT_FEED_URL
    api_key: Optional[str] = None
    stops_path: Optional[str] = None  # stops.txt path or URL
    routes: Tuple[str, ...] = DEFAULT_ROUTES
    feed_ttl: int = DEFAULT_FEED_TTL
    stale_grace: int = DEFAULT_STALE_GRACE
    feed_timeout: int = DEFAULT_FEED_TIMEOUT
    line_prefix: str = DEFAULT_LINE_PREFIX

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from LINEWATCH_* environment variables."""
        return cls(
            feed_url=os.getenv("LINEWATCH_FEED_URL", DEFAULT_FEED_URL),
            api_key=os.getenv("LINEWATCH_API_KEY") or None,
            stops_path=os.getenv("LINEWATCH_STOPS_PATH") or None,
            routes=_parse_routes(os.getenv("LINEWATCH_ROUTES")),
            feed_ttl=_parse_int(os.getenv("LINEWATCH_FEED_TTL"), DEFAULT_FEED_TTL),
            stale_grace=_parse_int(os.getenv("LINEWATCH_STALE_GRACE"), DEFAULT_STALE_GRACE),
            feed_timeout=_parse_int(os.getenv("LINEWATCH_FEED_TIMEOUT"), DEFAULT_FEED_TIMEOUT),
            line_prefix=os.getenv("LINEWATCH_LINE_PREFIX", DEFAULT_LINE_PREFIX),
        )
