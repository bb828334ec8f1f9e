"""Great-circle distance and radius query helpers.

Radius queries run in two steps: a latitude/longitude bounding box narrows
candidates with indexed column comparisons, then the exact haversine
distance filters and ranks them.
"""

from dataclasses import dataclass
from datetime import datetime
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Any, Callable, Iterable, List, Optional, Tuple

EARTH_RADIUS_METERS = 6371000.0

MIN_LATITUDE, MAX_LATITUDE = -90.0, 90.0
MIN_LONGITUDE, MAX_LONGITUDE = -180.0, 180.0

# Padding so points exactly on the cap boundary survive the prefilter
_BOX_PADDING_DEGREES = 1e-9


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: Optional[float]
    max_lon: Optional[float]

    @property
    def bounds_longitude(self) -> bool:
        return self.min_lon is not None and self.max_lon is not None


def validate_coordinates(latitude: float, longitude: float) -> bool:
    return MIN_LATITUDE <= latitude <= MAX_LATITUDE and MIN_LONGITUDE <= longitude <= MAX_LONGITUDE


def to_wkt_point(latitude: float, longitude: float) -> str:
    """WKT point in (x=longitude, y=latitude) order."""
    return f"POINT({float(longitude)!r} {float(latitude)!r})"


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_METERS * c


def offset_point(latitude: float, longitude: float, meters: float, bearing: float = 0.0) -> Tuple[float, float]:
    """Destination point ``meters`` away from the origin along ``bearing`` (degrees)."""
    angular = meters / EARTH_RADIUS_METERS
    theta = radians(bearing)
    phi1 = radians(latitude)
    lambda1 = radians(longitude)

    phi2 = asin(sin(phi1) * cos(angular) + cos(phi1) * sin(angular) * cos(theta))
    lambda2 = lambda1 + atan2(
        sin(theta) * sin(angular) * cos(phi1),
        cos(angular) - sin(phi1) * sin(phi2),
    )
    lon = (degrees(lambda2) + 540.0) % 360.0 - 180.0
    return degrees(phi2), lon


def bounding_box(latitude: float, longitude: float, radius_meters: float) -> BoundingBox:
    """
    Smallest lat/lon box containing the spherical cap of ``radius_meters``.

    The longitude bound is dropped when the cap reaches a pole or wraps
    across the antimeridian; the exact distance filter still applies.
    """
    angular = max(radius_meters, 0.0) / EARTH_RADIUS_METERS
    lat_delta = degrees(angular) + _BOX_PADDING_DEGREES
    min_lat = latitude - lat_delta
    max_lat = latitude + lat_delta

    if min_lat <= MIN_LATITUDE or max_lat >= MAX_LATITUDE:
        return BoundingBox(max(min_lat, MIN_LATITUDE), min(max_lat, MAX_LATITUDE), None, None)

    cos_lat = cos(radians(latitude))
    if sin(angular) >= cos_lat:
        return BoundingBox(min_lat, max_lat, None, None)

    lon_delta = degrees(asin(sin(angular) / cos_lat)) + _BOX_PADDING_DEGREES
    min_lon = longitude - lon_delta
    max_lon = longitude + lon_delta
    if min_lon < MIN_LONGITUDE or max_lon > MAX_LONGITUDE:
        return BoundingBox(min_lat, max_lat, None, None)

    return BoundingBox(min_lat, max_lat, min_lon, max_lon)


def apply_bounding_box(query, latitude_column, longitude_column, box: BoundingBox):
    """Restrict a SQLAlchemy query to rows whose point lies in ``box``."""
    query = query.filter(latitude_column >= box.min_lat, latitude_column <= box.max_lat)
    if box.bounds_longitude:
        query = query.filter(longitude_column >= box.min_lon, longitude_column <= box.max_lon)
    return query


def _coordinates(row: Any) -> Tuple[float, float]:
    return float(row.latitude), float(row.longitude)


def rank_by_distance(
    rows: Iterable[Any],
    latitude: float,
    longitude: float,
    radius_meters: float,
    limit: Optional[int] = None,
    coordinates: Callable[[Any], Tuple[float, float]] = _coordinates,
) -> List[Tuple[Any, float]]:
    """
    Keep rows within ``radius_meters`` and order them nearest first.

    Ties on distance fall back to creation time, then id, so a fixed data
    set always ranks the same way.
    """
    ranked = []
    for row in rows:
        row_lat, row_lon = coordinates(row)
        distance = haversine_meters(latitude, longitude, row_lat, row_lon)
        if distance <= radius_meters:
            ranked.append((row, distance))

    ranked.sort(key=lambda item: (
        item[1],
        getattr(item[0], "created_at", None) or datetime.min,
        str(getattr(item[0], "id", "")),
    ))
    if limit is not None:
        return ranked[:limit]
    return ranked
