"""Point, east/north, lat/lon and bounding box value types."""

import math
from dataclasses import dataclass

# WGS84 semi-major axis, used as the sphere radius for great circle distances
WGS84_SEMI_MAJOR_AXIS_M = 6378137.0


@dataclass(frozen=True)
class Point2D:
    """A pair of double-precision coordinates.

    Used both for image-space pixel coordinates and for geographic
    coordinates, in which case x is the longitude and y the latitude.

    Attributes:
        x: X coordinate (column, or longitude).
        y: Y coordinate (row, or latitude).
    """

    x: float
    y: float

    def distance(self, other: 'Point2D') -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_lat_lon(self) -> 'LatLon':
        """Interpret the point as (lon, lat) and return a LatLon."""
        return LatLon(lat=self.y, lon=self.x)


@dataclass(frozen=True)
class EastNorth:
    """Projected coordinates in the units of the current map projection.

    Attributes:
        east: Easting (projected X).
        north: Northing (projected Y).
    """

    east: float
    north: float

    def add(self, dx: float, dy: float) -> 'EastNorth':
        """Return a copy translated by (dx, dy)."""
        return EastNorth(self.east + dx, self.north + dy)


@dataclass(frozen=True)
class LatLon:
    """Geographic coordinates in decimal degrees.

    Attributes:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
    """

    lat: float
    lon: float

    def great_circle_distance(self, other: 'LatLon') -> float:
        """
        Calculate distance to another coordinate using the Haversine formula.

        Args:
            other: Second point

        Returns:
            Distance in meters
        """
        lat1_rad = math.radians(self.lat)
        lat2_rad = math.radians(other.lat)
        delta_lat = math.radians(other.lat - self.lat)
        delta_lon = math.radians(other.lon - self.lon)

        a = math.sin(delta_lat / 2) ** 2 + \
            math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return WGS84_SEMI_MAJOR_AXIS_M * c

    def to_point(self) -> Point2D:
        """Return the coordinate as a Point2D with x=lon, y=lat."""
        return Point2D(self.lon, self.lat)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in projected coordinates.

    Attributes:
        min: Corner with the smallest east and north values.
        max: Corner with the largest east and north values.
    """

    min: EastNorth
    max: EastNorth

    @property
    def width(self) -> float:
        return self.max.east - self.min.east

    @property
    def height(self) -> float:
        return self.max.north - self.min.north

    @property
    def center(self) -> EastNorth:
        return EastNorth(
            (self.min.east + self.max.east) / 2,
            (self.min.north + self.max.north) / 2,
        )
