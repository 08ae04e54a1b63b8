"""Shared fixtures for the picture calibration tests."""

import math
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from picture_calibration.geometry import WGS84_SEMI_MAJOR_AXIS_M, EastNorth, LatLon
from picture_calibration.map_view import MapViewState

DEGREES_PER_METER = 180.0 / (math.pi * WGS84_SEMI_MAJOR_AXIS_M)


class EquatorProjection:
    """
    Plate carrée scaled to meters on the WGS84 sphere.

    Near the equator one east/north unit is one meter along both axes, which
    makes the expected scales in tests exact up to rounding.
    """

    def __init__(self, code: str = "TEST:EQUATOR"):
        self._code = code

    def code(self) -> str:
        return self._code

    def default_zoom_in_ppd(self) -> float:
        return 1.0

    def east_north_to_lat_lon(self, en: EastNorth) -> LatLon:
        return LatLon(lat=en.north * DEGREES_PER_METER, lon=en.east * DEGREES_PER_METER)

    def lat_lon_to_east_north(self, ll: LatLon) -> EastNorth:
        return EastNorth(ll.lon / DEGREES_PER_METER, ll.lat / DEGREES_PER_METER)


@pytest.fixture
def equator_projection() -> EquatorProjection:
    return EquatorProjection()


@pytest.fixture
def equator_view() -> MapViewState:
    """800x600 view centred on (0, 0) at 0.5 meters per pixel."""
    return MapViewState.from_center(EastNorth(0.0, 0.0), 0.5, 800, 600)
