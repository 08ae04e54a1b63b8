#!/usr/bin/env python3
"""
Mapping between screen pixels, projected coordinates and picture-local coordinates.

The on-screen placement of a picture is the composite

    T_screen = Translate(offset) · Scale(scale_x, scale_y) · T_calibration

where:
    offset   = ((anchor.east - L.east) · ppen, (L.north - anchor.north) · ppen)
    scale_x  = S · ppen / meters_per_easting(anchor) / 100
    scale_y  = S · ppen / meters_per_northing(anchor) / 100

with L the top-left east/north of the viewport, ppen the screen pixels per
east/north unit, S the initial image scale (meters per 100 pixels captured
when the picture was placed) and T_calibration the cached calibration
transform. The picture centre pixel sits at picture-local (0, 0), so the
image is drawn at (-w/2, -h/2) in picture-local coordinates.

Meters per east/north unit are sampled from the projection with a small
symmetric step around the anchor, so the result is local to that point
(for EPSG:4326 one unit east is a full degree of longitude).
"""

import logging

from picture_calibration.affine_transform import AffineTransform
from picture_calibration.geometry import EastNorth, LatLon, Point2D
from picture_calibration.map_view import MapViewState
from picture_calibration.projection import Projection
from picture_calibration.types import Meters

logger = logging.getLogger(__name__)

# Fraction of the projection's natural scale used as sampling step
SAMPLING_FRACTION = 0.01


def meters_per_easting(projection: Projection, en: EastNorth) -> Meters:
    """
    Distance in meters that corresponds to one east unit at ``en``.

    Args:
        projection: Projection adapter
        en: Point at which to sample

    Returns:
        Meters per east/north unit along the east axis
    """
    delta = projection.default_zoom_in_ppd() * SAMPLING_FRACTION
    ll1 = projection.east_north_to_lat_lon(EastNorth(en.east - delta, en.north))
    ll2 = projection.east_north_to_lat_lon(EastNorth(en.east + delta, en.north))
    return Meters(ll1.great_circle_distance(ll2) / delta / 2)


def meters_per_northing(projection: Projection, en: EastNorth) -> Meters:
    """Distance in meters that corresponds to one north unit at ``en``."""
    delta = projection.default_zoom_in_ppd() * SAMPLING_FRACTION
    ll1 = projection.east_north_to_lat_lon(EastNorth(en.east, en.north - delta))
    ll2 = projection.east_north_to_lat_lon(EastNorth(en.east, en.north + delta))
    return Meters(ll1.great_circle_distance(ll2) / delta / 2)


def picture_scale(view: MapViewState, projection: Projection,
                  image_position: EastNorth, initial_image_scale: float):
    """
    Screen scale factors applied to the picture before calibration.

    Returns:
        Tuple of (scale_x, scale_y)
    """
    ppen = view.pixels_per_east_north
    scale_x = initial_image_scale * ppen / meters_per_easting(projection, image_position) / 100
    scale_y = initial_image_scale * ppen / meters_per_northing(projection, image_position) / 100
    return scale_x, scale_y


def image_to_screen_transform(view: MapViewState, projection: Projection,
                              image_position: EastNorth, initial_image_scale: float,
                              calibration: AffineTransform) -> AffineTransform:
    """
    Build the composite transform from picture-local to screen coordinates.

    Args:
        view: Current map viewport
        projection: Projection adapter
        image_position: Anchor of the picture centre in projected coordinates
        initial_image_scale: Meters per 100 pixels captured at placement
        calibration: Cached calibration transform

    Returns:
        New AffineTransform; the calibration is not modified
    """
    offset = view.east_north_to_screen(image_position)
    scale_x, scale_y = picture_scale(view, projection, image_position, initial_image_scale)

    composite = AffineTransform.translation(offset.x, offset.y)
    composite.scale(scale_x, scale_y)
    composite.concatenate(calibration)
    return composite


def screen_to_image(view: MapViewState, projection: Projection,
                    image_position: EastNorth, initial_image_scale: float,
                    calibration: AffineTransform, point: Point2D) -> Point2D:
    """
    Map a screen point back to picture-local coordinates.

    Raises:
        NoninvertibleTransformError: If the composite transform is singular
    """
    composite = image_to_screen_transform(
        view, projection, image_position, initial_image_scale, calibration)
    return composite.inverse_transform(point)


def lat_lon_to_image(view: MapViewState, projection: Projection,
                     image_position: EastNorth, initial_image_scale: float,
                     calibration: AffineTransform, lat_lon: LatLon) -> Point2D:
    """
    Map a geographic coordinate to picture-local coordinates via the screen.

    Raises:
        NoninvertibleTransformError: If the composite transform is singular
    """
    screen = view.east_north_to_screen(projection.lat_lon_to_east_north(lat_lon))
    return screen_to_image(view, projection, image_position, initial_image_scale,
                           calibration, screen)
