"""
GTFS feed reader.

Reads the four files the importer needs (routes, stops, trips, stop_times)
from a zip archive or an extracted directory into immutable records.
"""

import csv
import hashlib
import io
import logging
import os
import zipfile
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from transit_topo.data.errors import FeedError

logger = logging.getLogger(__name__)

REQUIRED_FILES = ("routes.txt", "stops.txt", "trips.txt", "stop_times.txt")


class RouteType(Enum):
    TRAMWAY = "Tramway"
    SUBWAY = "Subway"
    RAIL = "Rail"
    BUS = "Bus"
    FERRY = "Ferry"
    CABLE_CAR = "CableCar"
    GONDOLA = "Gondola"
    FUNICULAR = "Funicular"
    COACH = "Coach"
    AIR = "Air"
    TAXI = "Taxi"
    OTHER = "Other"

    @classmethod
    def from_code(cls, code: str) -> "RouteType":
        """Map a GTFS route_type, basic or extended, to a RouteType."""
        try:
            value = int(code)
        except (TypeError, ValueError):
            return cls.OTHER

        if value == 0 or 900 <= value <= 999:
            return cls.TRAMWAY
        if value == 1 or 400 <= value <= 499:
            return cls.SUBWAY
        if value == 2 or 100 <= value <= 199:
            return cls.RAIL
        if value in (3, 11) or 700 <= value <= 899:
            return cls.BUS
        if value == 4 or 1000 <= value <= 1099 or 1200 <= value <= 1299:
            return cls.FERRY
        if value == 5:
            return cls.CABLE_CAR
        if value == 6 or 1300 <= value <= 1399:
            return cls.GONDOLA
        if value == 7 or 1400 <= value <= 1499:
            return cls.FUNICULAR
        if value == 12:
            return cls.RAIL
        if 200 <= value <= 299:
            return cls.COACH
        if 1100 <= value <= 1199:
            return cls.AIR
        if 1500 <= value <= 1599:
            return cls.TAXI
        return cls.OTHER


class LocationType(Enum):
    STOP_POINT = "0"
    STOP_AREA = "1"
    STATION_ENTRANCE = "2"
    GENERIC_NODE = "3"
    BOARDING_AREA = "4"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "LocationType":
        code = (code or "").strip()
        if not code:
            return cls.STOP_POINT
        for member in cls:
            if member.value == code:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class Route:
    id: str
    short_name: str
    long_name: str
    route_type: RouteType
    agency_id: Optional[str] = None


@dataclass(frozen=True)
class Stop:
    id: str
    name: str
    location_type: LocationType = LocationType.STOP_POINT
    parent_station: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class Trip:
    id: str
    route_id: str
    service_id: str


@dataclass(frozen=True)
class StopTime:
    trip_id: str
    stop_id: str
    stop_sequence: int


@dataclass(frozen=True)
class GtfsFeed:
    """In-memory GTFS records plus the checksum of the source archive."""

    path: str
    routes: Tuple[Route, ...]
    stops: Tuple[Stop, ...]
    trips: Tuple[Trip, ...]
    stop_times: Tuple[StopTime, ...]
    sha256: Optional[str] = None

    def __repr__(self):
        return (f"<GtfsFeed(path='{self.path}', routes={len(self.routes)}, stops={len(self.stops)}, "
                f"trips={len(self.trips)}, stop_times={len(self.stop_times)})>")


# ============================================================================
# READING
# ============================================================================

def read_gtfs(path: str) -> GtfsFeed:
    """
    Read a GTFS feed.

    Args:
        path: A zip archive or a directory holding the GTFS text files

    Returns:
        GtfsFeed with all records loaded
    """
    if os.path.isdir(path):
        tables = _read_directory(path)
        sha256 = None
    elif zipfile.is_zipfile(path):
        tables = _read_zip(path)
        sha256 = file_sha256(path)
    else:
        raise FeedError(f"{path} is neither a GTFS directory nor a zip archive")

    feed = GtfsFeed(
        path=path,
        routes=tuple(_parse_route(r) for r in tables["routes.txt"]),
        stops=tuple(_parse_stop(r) for r in tables["stops.txt"]),
        trips=tuple(_parse_trip(r) for r in tables["trips.txt"]),
        stop_times=tuple(_parse_stop_time(r) for r in tables["stop_times.txt"]),
        sha256=sha256,
    )
    logger.info(f"Read {feed!r}")
    return feed


def file_sha256(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _read_directory(path: str) -> Dict[str, List[dict]]:
    tables = {}
    for name in REQUIRED_FILES:
        file_path = os.path.join(path, name)
        if not os.path.exists(file_path):
            raise FeedError(f"missing {name} in {path}")
        with open(file_path, encoding="utf-8-sig", newline="") as f:
            tables[name] = _read_table(f, name)
    return tables


def _read_zip(path: str) -> Dict[str, List[dict]]:
    tables = {}
    with zipfile.ZipFile(path) as archive:
        # some producers nest the files in a single folder
        members = {os.path.basename(n): n for n in archive.namelist() if not n.endswith("/")}
        for name in REQUIRED_FILES:
            if name not in members:
                raise FeedError(f"missing {name} in {path}")
            with archive.open(members[name]) as raw:
                with io.TextIOWrapper(raw, encoding="utf-8-sig", newline="") as f:
                    tables[name] = _read_table(f, name)
    return tables


def _read_table(f, name: str) -> List[dict]:
    try:
        return list(_rows(f))
    except UnicodeDecodeError as e:
        raise FeedError(f"{name}: not valid UTF-8 ({e.reason})")
    except csv.Error as e:
        raise FeedError(f"{name}: invalid CSV ({e})")


def _rows(f) -> Iterator[dict]:
    for row in csv.DictReader(f):
        # values beyond the header land under a None key as a list
        yield {k.strip(): (v or "").strip() for k, v in row.items()
               if k is not None and not isinstance(v, list)}


def _required(row: dict, field: str, table: str) -> str:
    value = row.get(field, "")
    if not value:
        raise FeedError(f"{table}: missing {field} in row {row}")
    return value


def _optional_float(value: str) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _parse_route(row: dict) -> Route:
    return Route(
        id=_required(row, "route_id", "routes.txt"),
        short_name=row.get("route_short_name", ""),
        long_name=row.get("route_long_name", ""),
        route_type=RouteType.from_code(row.get("route_type")),
        agency_id=row.get("agency_id") or None,
    )


def _parse_stop(row: dict) -> Stop:
    return Stop(
        id=_required(row, "stop_id", "stops.txt"),
        name=row.get("stop_name", ""),
        location_type=LocationType.from_code(row.get("location_type")),
        parent_station=row.get("parent_station") or None,
        latitude=_optional_float(row.get("stop_lat", "")),
        longitude=_optional_float(row.get("stop_lon", "")),
    )


def _parse_trip(row: dict) -> Trip:
    return Trip(
        id=_required(row, "trip_id", "trips.txt"),
        route_id=_required(row, "route_id", "trips.txt"),
        service_id=row.get("service_id", ""),
    )


def _parse_stop_time(row: dict) -> StopTime:
    try:
        sequence = int(row.get("stop_sequence") or 0)
    except ValueError:
        raise FeedError(f"stop_times.txt: invalid stop_sequence in row {row}")
    return StopTime(
        trip_id=_required(row, "trip_id", "stop_times.txt"),
        stop_id=_required(row, "stop_id", "stop_times.txt"),
        stop_sequence=sequence,
    )
