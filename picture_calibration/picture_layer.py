#!/usr/bin/env python3
"""
A calibrated picture placed on a map.

PictureLayer owns the calibration engine of one picture: its
PictureTransform, the initial image scale captured when the picture was
placed, the picture size and the projection its anchor is expressed in.
Host actions (menu entries, mouse handlers, painters) borrow a layer each
time they run and call the operations below; nothing in here knows about a
GUI toolkit.

Operations that need the screen (rotate/scale/shear around the viewport
centre, hit-testing control points, auto-calibration) take the current
MapViewState as an argument.

Usage Example:
    >>> from picture_calibration import MapViewState, EastNorth, PictureLayer, get_projection
    >>>
    >>> projection = get_projection("EPSG:3857")
    >>> view = MapViewState.from_center(EastNorth(-25600.0, 4813000.0), 0.5, 800, 600)
    >>> layer = PictureLayer.create(view, projection, image_width=1024, image_height=768)
    >>> layer.rotate_picture_by(0.1, view)
    >>> props = layer.save_calibration()
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence

from picture_calibration import calibration_codec, view_mapping
from picture_calibration.affine_transform import AffineTransform, NoninvertibleTransformError
from picture_calibration.config import CalibrationConfig, get_default_config
from picture_calibration.geometry import BoundingBox, EastNorth, LatLon, Point2D
from picture_calibration.map_view import MapViewState
from picture_calibration.picture_transform import MAX_CONTROL_POINTS, PictureTransform
from picture_calibration.projection import WGS84_CODE, Projection
from picture_calibration.types import EastNorthUnits, MetersPer100Pixels, Pixels, Radians, Unitless

logger = logging.getLogger(__name__)


class PictureLayer:
    """Calibration engine owner for one picture."""

    def __init__(self, projection: Projection, image_width: Pixels, image_height: Pixels,
                 image_position: Optional[EastNorth] = None,
                 initial_image_scale: MetersPer100Pixels = MetersPer100Pixels(1.0),
                 name: Optional[str] = None,
                 config: Optional[CalibrationConfig] = None):
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"Image size must be positive, got {image_width}x{image_height}")

        self.config = config or get_default_config()
        self.projection = projection
        self.image_width = image_width
        self.image_height = image_height
        self.initial_image_scale = initial_image_scale
        self.name = name
        self.transformer = PictureTransform(image_position,
                                            singular_epsilon=self.config.singular_epsilon)

    @classmethod
    def create(cls, view: MapViewState, projection: Projection,
               image_width: Pixels, image_height: Pixels, **kwargs) -> 'PictureLayer':
        """
        Place a new picture at the centre of the view.

        The initial image scale is the view's current meters per 100 pixels,
        so an uncalibrated picture shows one image pixel per screen pixel.
        """
        scale = view.meters_per_100_pixels(projection)
        logger.info("Placing %dx%d picture at %s, initial scale %.4f m/100px",
                    image_width, image_height, view.center, scale)
        return cls(projection, image_width, image_height,
                   image_position=EastNorth(view.center.east, view.center.north),
                   initial_image_scale=scale, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def transform(self) -> AffineTransform:
        return self.transformer.transform

    @property
    def image_position(self) -> EastNorth:
        return self.transformer.image_position

    @property
    def modified(self) -> bool:
        return self.transformer.modified

    def reset_calibration(self):
        self.transformer.reset_calibration()

    # ------------------------------------------------------------------
    # View mapping
    # ------------------------------------------------------------------

    def image_to_screen_transform(self, view: MapViewState) -> AffineTransform:
        """Composite transform placing the picture (centre at local 0,0) on screen."""
        return view_mapping.image_to_screen_transform(
            view, self.projection, self.image_position,
            self.initial_image_scale, self.transform)

    def screen_to_image(self, view: MapViewState, point: Point2D) -> Optional[Point2D]:
        """
        Picture-local coordinates of a screen point.

        Returns:
            The point, or None if the composite transform is not invertible
        """
        try:
            return view_mapping.screen_to_image(
                view, self.projection, self.image_position,
                self.initial_image_scale, self.transform, point)
        except NoninvertibleTransformError as e:
            logger.warning("Cannot map screen point %s to picture: %s", point, e)
            return None

    def lat_lon_to_image(self, view: MapViewState, lat_lon: Point2D) -> Optional[Point2D]:
        """Picture-local coordinates of a lat/lon given as Point2D(x=lon, y=lat)."""
        try:
            return view_mapping.lat_lon_to_image(
                view, self.projection, self.image_position,
                self.initial_image_scale, self.transform,
                LatLon(lat=lat_lon.y, lon=lat_lon.x))
        except NoninvertibleTransformError as e:
            logger.warning("Cannot map %s to picture: %s", lat_lon, e)
            return None

    def _view_center_in_image(self, view: MapViewState) -> Optional[Point2D]:
        return self.screen_to_image(view, Point2D(view.width // 2, view.height // 2))

    # ------------------------------------------------------------------
    # Picture manipulation
    # ------------------------------------------------------------------

    def move_picture_by(self, dx: EastNorthUnits, dy: EastNorthUnits):
        """Translate the anchor by (dx, dy) east/north units."""
        self.transformer.set_image_position(self.image_position.add(dx, dy))
        self.transformer.set_modified()

    def _concatenate_at_view_center(self, transform: AffineTransform, view: MapViewState):
        pivot = self._view_center_in_image(view)
        if pivot is None:
            return
        self.transformer.concatenate_at(transform, pivot)

    def rotate_picture_by(self, angle: Radians, view: MapViewState):
        """Rotate by ``angle`` radians around the viewport centre."""
        self._concatenate_at_view_center(AffineTransform.rotation(angle), view)

    def scale_picture_by(self, scale_x: Unitless, scale_y: Unitless, view: MapViewState):
        self._concatenate_at_view_center(AffineTransform.scaling(scale_x, scale_y), view)

    def shear_picture_by(self, shear_x: Unitless, shear_y: Unitless, view: MapViewState):
        self._concatenate_at_view_center(AffineTransform.shearing(shear_x, shear_y), view)

    # ------------------------------------------------------------------
    # Control points
    # ------------------------------------------------------------------

    def find_selected_point(self, view: MapViewState, screen_point: Point2D,
                            radius: Optional[float] = None) -> Optional[Point2D]:
        """
        Control point closest to a clicked screen point.

        Args:
            view: Current map viewport
            screen_point: Clicked position in screen pixels
            radius: Maximum distance in picture-local units
                (defaults to config.selection_radius_px)

        Returns:
            The selected control point, or None
        """
        pressed = self.screen_to_image(view, screen_point)
        if pressed is None:
            return None

        min_dist = self.config.selection_radius_px if radius is None else radius
        selected = None
        for p in self.transformer.origin_points:
            dist = p.distance(pressed)
            if dist < min_dist:
                selected = p
                min_dist = dist
        return selected

    def reference_points_in_image(self, view: MapViewState) -> List[Optional[Point2D]]:
        """Reference lat/lon points mapped to picture-local coordinates."""
        return [self.lat_lon_to_image(view, p) for p in self.transformer.lat_lon_ref_points]

    def auto_calibrate(self, view: MapViewState) -> bool:
        """
        Calibrate so that each control point lands on its reference point.

        Needs three control points and three lat/lon reference points.

        Returns:
            True if the calibration was updated
        """
        origins = self.transformer.origin_points
        refs = self.transformer.lat_lon_ref_points
        if len(origins) != MAX_CONTROL_POINTS or len(refs) != MAX_CONTROL_POINTS:
            logger.warning("Auto-calibration needs %d control and reference points, got %d and %d",
                           MAX_CONTROL_POINTS, len(origins), len(refs))
            return False

        desired = self.reference_points_in_image(view)
        if any(p is None for p in desired):
            return False

        ok = self.transformer.solve_for(desired)
        if ok:
            logger.info("Auto-calibration applied")
        return ok

    # ------------------------------------------------------------------
    # Bounding box
    # ------------------------------------------------------------------

    def bounding_box(self) -> Optional[BoundingBox]:
        """
        Rough axis-aligned box containing the picture at any rotation.

        Returns:
            BoundingBox, or None for EPSG:4326 where the initial scale (meters)
            cannot be combined with degree coordinates
        """
        if self.projection.code() == WGS84_CODE:
            logger.debug("Bounding box not supported for %s", WGS84_CODE)
            return None

        diag_pix = math.sqrt(self.image_width ** 2 + self.image_height ** 2)
        diag_m = (diag_pix / 100) * self.initial_image_scale

        factor = max(abs(self.transform.scale_x), abs(self.transform.scale_y))
        offset = factor * diag_m / 2.0

        center = self.image_position
        return BoundingBox(center.add(-offset, -offset), center.add(offset, offset))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_calibration(self) -> Dict[str, str]:
        return calibration_codec.save_calibration(self.transformer, self.initial_image_scale)

    def load_calibration(self, props: Mapping[str, str]):
        self.initial_image_scale = calibration_codec.load_calibration(self.transformer, props)

    def world_file_values(self) -> List[float]:
        return calibration_codec.world_file_values(
            self.transformer, self.initial_image_scale,
            self.image_width, self.image_height, self.projection)

    def apply_world_file(self, values: Sequence[float]):
        self.initial_image_scale = calibration_codec.apply_world_file(
            self.transformer, values, self.image_width, self.image_height, self.projection)

    def __repr__(self) -> str:
        return (f"PictureLayer(name={self.name!r}, size={self.image_width}x{self.image_height}, "
                f"position={self.image_position}, initial_scale={self.initial_image_scale})")
