#!/usr/bin/env python3
"""
Projection adapter between projected (east/north) and geographic coordinates.

The calibration engine only needs four things from a map projection:

    - east_north_to_lat_lon(EastNorth) -> LatLon
    - lat_lon_to_east_north(LatLon) -> EastNorth
    - default_zoom_in_ppd() -> float, a natural scale in projected units
      small enough that the projection stays well-behaved when shifted by it
    - code() -> str, e.g. "EPSG:4326" or "EPSG:3857"

Projection is a typing.Protocol so hosts can plug in their own projection
system. PyprojProjection implements it with pyproj.

Coordinate order:
    All pyproj transformers are created with always_xy=True, so geographic
    CRSs take and return (lon, lat) regardless of the EPSG axis order.
"""

import logging
import math
from typing import Dict, Protocol, runtime_checkable

from pyproj import CRS, Transformer

from picture_calibration.geometry import WGS84_SEMI_MAJOR_AXIS_M, EastNorth, LatLon

logger = logging.getLogger(__name__)

WGS84_CODE = "EPSG:4326"
WEB_MERCATOR_CODE = "EPSG:3857"

# Degrees spanned by one meter along the equator
DEGREES_PER_METER = 360.0 / (2 * math.pi * WGS84_SEMI_MAJOR_AXIS_M)


def _canonical_code(crs: CRS, code: str) -> str:
    """
    Upper-case ``AUTHORITY:CODE`` for a CRS, e.g. "epsg:4326" and "WGS84"
    both become "EPSG:4326". Falls back to the user input when the CRS has
    no authority code.
    """
    if crs.is_geographic and crs.equals(CRS.from_user_input(WGS84_CODE), ignore_axis_order=True):
        return WGS84_CODE

    authority = crs.to_authority()
    if authority is None:
        return code
    return f"{authority[0].upper()}:{authority[1]}"


@runtime_checkable
class Projection(Protocol):
    """What the calibration engine requires from the host projection."""

    def east_north_to_lat_lon(self, en: EastNorth) -> LatLon:
        ...

    def lat_lon_to_east_north(self, ll: LatLon) -> EastNorth:
        ...

    def default_zoom_in_ppd(self) -> float:
        ...

    def code(self) -> str:
        ...


class PyprojProjection:
    """
    Projection backed by pyproj.

    Usage:
        >>> proj = PyprojProjection("EPSG:3857")
        >>> en = proj.lat_lon_to_east_north(LatLon(39.64, -0.23))
        >>> ll = proj.east_north_to_lat_lon(en)
    """

    def __init__(self, code: str = WEB_MERCATOR_CODE):
        self._crs = CRS.from_user_input(code)
        self._code = _canonical_code(self._crs, code)
        self._to_projected = Transformer.from_crs(WGS84_CODE, code, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(code, WGS84_CODE, always_xy=True)

        if self._crs.is_geographic:
            # One meter at the equator, in degrees
            self._natural_scale = DEGREES_PER_METER
        else:
            self._natural_scale = 1.0

    @property
    def crs(self) -> CRS:
        return self._crs

    def code(self) -> str:
        return self._code

    def default_zoom_in_ppd(self) -> float:
        return self._natural_scale

    def east_north_to_lat_lon(self, en: EastNorth) -> LatLon:
        lon, lat = self._to_wgs84.transform(en.east, en.north)
        return LatLon(lat=lat, lon=lon)

    def lat_lon_to_east_north(self, ll: LatLon) -> EastNorth:
        east, north = self._to_projected.transform(ll.lon, ll.lat)
        return EastNorth(east, north)

    def __repr__(self) -> str:
        return f"PyprojProjection({self._code!r})"


_projections: Dict[str, PyprojProjection] = {}


def get_projection(code: str = WEB_MERCATOR_CODE) -> PyprojProjection:
    """
    Get or create a projection instance for an EPSG code.

    Args:
        code: Coordinate reference system (e.g., "EPSG:3857")

    Returns:
        PyprojProjection instance, shared between callers
    """
    projection = _projections.get(code)
    if projection is None:
        logger.debug("Creating projection for %s", code)
        projection = PyprojProjection(code)
        _projections[code] = projection
    return projection
