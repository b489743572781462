"""Great-circle distance helpers.

`haversine_km` is the reference implementation; `haversine_sql` builds the same
formula as a SQL expression so the database ranks rows without shipping
coordinates back to the app.
"""

from dataclasses import dataclass
import math

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement

# Mean Earth radius in kilometers
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinates:
    """WGS84 point in degrees."""

    lat: float
    long: float


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points, in kilometers."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlon = math.radians(b.long) - math.radians(a.long)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def haversine_sql(
    lat_column: ColumnElement[float],
    long_column: ColumnElement[float],
    center: Coordinates,
) -> ColumnElement[float]:
    """SQL expression for the haversine distance (km) from `center` to a row."""
    center_lat = math.radians(center.lat)
    row_lat = func.radians(lat_column)
    dlat = row_lat - center_lat
    dlon = func.radians(long_column) - math.radians(center.long)

    h = func.power(func.sin(dlat / 2), 2) + math.cos(center_lat) * func.cos(row_lat) * func.power(
        func.sin(dlon / 2), 2
    )
    # least() guards asin against rounding just above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * func.asin(func.sqrt(func.least(1.0, h)))
