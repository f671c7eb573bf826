"""Tests for the stop directory."""

import io
import os
import tempfile
import unittest
import sys
from pathlib import Path

import pandas as pd

# Add src to path so we can import linewatch
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from linewatch.exceptions import StopDataError
from linewatch.stops import StopDirectory, default_directory, haversine_m

STOPS_CSV = """stop_id,stop_name,stop_lat,stop_lon,location_type,parent_station
719,Court Sq,40.747023,-73.945264,1,
719N,Court Sq,40.747023,-73.945264,,719
719S,Court Sq,40.747023,-73.945264,,719
720,Hunters Point Av,40.742216,-73.948916,1,
721,Vernon Blvd-Jackson Av,40.742626,-73.953581,1,
721N,Vernon Blvd-Jackson Av,40.742626,-73.953581,,721
721S,Vernon Blvd-Jackson Av,40.742626,-73.953581,,721
726,34 St-Hudson Yards,,,1,
R09,Queensboro Plaza,40.750582,-73.940202,1,
"""


def stops_frame(csv_text=STOPS_CSV):
    return pd.read_csv(io.StringIO(csv_text), dtype=str, keep_default_na=False)


class TestLookup(unittest.TestCase):
    """Test lookup_station() and label()."""

    def setUp(self):
        self.directory = StopDirectory(frame=stops_frame())

    def test_exact_match(self):
        station = self.directory.lookup_station("721")
        self.assertEqual(station.name, "Vernon Blvd-Jackson Av")
        self.assertAlmostEqual(station.latitude, 40.742626, places=5)

    def test_case_insensitive(self):
        self.assertEqual(self.directory.lookup_station("721s").stop_id, "721S")

    def test_directional_fallback_keeps_requested_id(self):
        station = self.directory.lookup_station("720N")
        self.assertEqual(station.stop_id, "720N")
        self.assertEqual(station.name, "Hunters Point Av")

    def test_missing_coordinates(self):
        station = self.directory.lookup_station("726")
        self.assertIsNone(station.latitude)
        self.assertIsNone(station.longitude)

    def test_miss_returns_none(self):
        self.assertIsNone(self.directory.lookup_station("999N"))
        self.assertIsNone(self.directory.lookup_station(""))
        self.assertIsNone(self.directory.lookup_station(None))

    def test_label(self):
        self.assertEqual(self.directory.label("721S"), "Vernon Blvd-Jackson Av")
        self.assertEqual(self.directory.label("999N"), "999N")
        self.assertEqual(self.directory.label(None), "—")


class TestLineStations(unittest.TestCase):
    """Test line listing and nearest-station search."""

    def setUp(self):
        self.directory = StopDirectory(frame=stops_frame())

    def test_list_stations_for_line(self):
        stations = {s.base_id: s for s in self.directory.list_stations_for_line("7")}
        # 726 has no coordinates, R09 isn't a 7xx stop
        self.assertEqual(set(stations), {"719", "720", "721"})
        self.assertEqual(stations["721"].variants, {"N": "721N", "S": "721S"})
        self.assertEqual(stations["720"].variants, {})

    def test_nearest_stations(self):
        nearest = self.directory.nearest_stations(40.742216, -73.948916, limit=2)
        self.assertEqual([n.station.base_id for n in nearest], ["720", "721"])
        self.assertAlmostEqual(nearest[0].distance_m, 0.0, places=3)
        self.assertLess(nearest[1].distance_m, 500)

    def test_nearest_limit_is_clamped(self):
        self.assertEqual(len(self.directory.nearest_stations(40.74, -73.95, limit=0)), 1)
        self.assertEqual(len(self.directory.nearest_stations(40.74, -73.95, limit=50)), 3)

    def test_haversine(self):
        # One degree of latitude is roughly 111 km
        self.assertAlmostEqual(haversine_m(40.0, -73.0, 41.0, -73.0), 111195, delta=100)


class TestLoading(unittest.TestCase):
    """Test reading stops.txt from disk."""

    def test_load_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "stops.txt")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(STOPS_CSV)
            directory = StopDirectory(path)
            self.assertEqual(directory.label("719N"), "Court Sq")

    def test_missing_columns(self):
        directory = StopDirectory(frame=stops_frame("stop_id,stop_lat\n721,40.7\n"))
        with self.assertRaises(StopDataError):
            directory.lookup_station("721")

    def test_unreadable_source(self):
        directory = StopDirectory("/nonexistent/stops.txt")
        with self.assertRaises(StopDataError):
            directory.lookup_station("721")
        # Labels fall back to the raw id
        self.assertEqual(directory.label("721S"), "721S")

    def test_default_directory_is_shared(self):
        self.assertIs(default_directory(), default_directory())

    def test_clear_reloads(self):
        directory = StopDirectory(frame=stops_frame())
        self.assertIsNotNone(directory.lookup_station("721"))
        directory.clear()
        self.assertIsNotNone(directory.lookup_station("721"))


if __name__ == "__main__":
    unittest.main()
