#!/usr/bin/env python3
"""
Mutable calibration state of a picture placed on a map.

A PictureTransform holds:
    - the accumulated image-space affine calibration (``transform``),
    - the anchor of the image centre in projected coordinates
      (``image_position``),
    - up to three control points in image-local coordinates, each optionally
      paired with a geographic (lat/lon) position,
    - up to three geographic reference points used by auto-calibration,
    - a ``modified`` flag set by every state-changing mutation.

Control points drive calibration: dragging one of them calls update_pair(),
which solves for the affine that moves the dragged point to its new place
while the others stay put, and right-concatenates the solution onto the
cached transform.

Usage Example:
    >>> from picture_calibration.geometry import EastNorth, Point2D
    >>> from picture_calibration.picture_transform import PictureTransform
    >>>
    >>> pt = PictureTransform(EastNorth(500000.0, 5500000.0))
    >>> pt.add_origin_point(Point2D(100.0, 100.0))
    >>> pt.update_pair(Point2D(100.0, 100.0), Point2D(150.0, 130.0))
    >>> pt.transform.translate_x, pt.transform.translate_y
    (50.0, 30.0)
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from picture_calibration.affine_transform import AffineTransform
from picture_calibration.geometry import EastNorth, Point2D
from picture_calibration.matrix3d import SINGULAR_EPSILON, Matrix3D, NoSolutionError

logger = logging.getLogger(__name__)

MAX_CONTROL_POINTS = 3


@dataclass
class ControlPoint:
    """An image-space control point with its optional geographic position.

    Attributes:
        image_point: Position in image-local coordinates.
        lat_lon: Geographic position as Point2D(x=lon, y=lat), if known.
    """

    image_point: Point2D
    lat_lon: Optional[Point2D] = None


def triangle_point(p: Point2D, q: Point2D) -> Point2D:
    """
    Third vertex of a right isosceles triangle over the segment p→q.

    The segment is rotated by 90° about its midpoint, so two control points
    plus this synthetic point always span the plane unless p == q.
    """
    return Point2D(
        (p.x + q.x - q.y + p.y) / 2,
        (p.y + q.y + q.x - p.x) / 2,
    )


class PictureTransform:
    """Calibration engine state for one picture layer."""

    def __init__(self, image_position: Optional[EastNorth] = None,
                 singular_epsilon: float = SINGULAR_EPSILON):
        self._transform = AffineTransform()
        self._image_position = image_position if image_position is not None else EastNorth(0.0, 0.0)
        self._control_points: List[ControlPoint] = []
        self._lat_lon_ref_points: List[Point2D] = []
        self._modified = False
        self.singular_epsilon = singular_epsilon

    # ------------------------------------------------------------------
    # Transform and position
    # ------------------------------------------------------------------

    @property
    def transform(self) -> AffineTransform:
        """The cached calibration. Mutating it in place is seen immediately."""
        return self._transform

    def set_transform(self, transform: AffineTransform):
        self._transform = transform.copy()

    @property
    def image_position(self) -> EastNorth:
        return self._image_position

    def set_image_position(self, image_position: EastNorth):
        self._image_position = image_position

    # ------------------------------------------------------------------
    # Modified flag
    # ------------------------------------------------------------------

    @property
    def modified(self) -> bool:
        return self._modified

    def set_modified(self):
        self._modified = True

    def reset_modified(self):
        self._modified = False

    # ------------------------------------------------------------------
    # Control points
    # ------------------------------------------------------------------

    @property
    def control_points(self) -> List[ControlPoint]:
        return list(self._control_points)

    @property
    def origin_points(self) -> List[Point2D]:
        return [cp.image_point for cp in self._control_points]

    @property
    def lat_lon_origin_points(self) -> List[Optional[Point2D]]:
        """Geographic positions of the control points, index-aligned with origin_points."""
        return [cp.lat_lon for cp in self._control_points]

    def _index_of(self, point: Point2D) -> int:
        for i, cp in enumerate(self._control_points):
            if cp.image_point == point:
                return i
        return -1

    def add_origin_point(self, point: Point2D, lat_lon: Optional[Point2D] = None) -> bool:
        """
        Add a control point. Ignored once three points exist.

        Returns:
            True if the point was added
        """
        if len(self._control_points) >= MAX_CONTROL_POINTS:
            logger.debug("Ignoring control point %s: already %d points",
                         point, MAX_CONTROL_POINTS)
            return False
        self._control_points.append(ControlPoint(point, lat_lon))
        return True

    def replace_origin_point(self, origin_point: Optional[Point2D],
                             new_origin_point: Optional[Point2D]):
        """Move an existing control point, keeping its geographic pairing."""
        if origin_point is None or new_origin_point is None:
            return
        index = self._index_of(origin_point)
        if index < 0:
            return
        self._control_points[index].image_point = new_origin_point

    def remove_origin_point(self, point: Point2D):
        """Remove a control point together with its geographic position."""
        index = self._index_of(point)
        if index >= 0:
            del self._control_points[index]

    def set_origin_points(self, points: Iterable[Point2D]):
        """Replace all control points (geographic pairings are dropped)."""
        points = list(points)
        if len(points) > MAX_CONTROL_POINTS:
            raise ValueError(
                f"At most {MAX_CONTROL_POINTS} control points are supported, got {len(points)}"
            )
        self._control_points = [ControlPoint(p) for p in points]

    def clear_origin_points(self):
        self._control_points.clear()

    def set_lat_lon_origin_point(self, point: Point2D, lat_lon: Optional[Point2D]):
        """Attach (or detach, with None) a geographic position to a control point."""
        index = self._index_of(point)
        if index < 0:
            raise ValueError(f"{point} is not a control point")
        self._control_points[index].lat_lon = lat_lon

    def clear_lat_lon_origin_points(self):
        for cp in self._control_points:
            cp.lat_lon = None

    # ------------------------------------------------------------------
    # Reference points (auto-calibration destinations)
    # ------------------------------------------------------------------

    @property
    def lat_lon_ref_points(self) -> List[Point2D]:
        return list(self._lat_lon_ref_points)

    def add_lat_lon_ref_point(self, point: Point2D) -> bool:
        if len(self._lat_lon_ref_points) >= MAX_CONTROL_POINTS:
            return False
        self._lat_lon_ref_points.append(point)
        return True

    def clear_lat_lon_ref_points(self):
        self._lat_lon_ref_points.clear()

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def reset_calibration(self):
        """Back to identity with no points and an unmodified state."""
        self._control_points.clear()
        self._lat_lon_ref_points.clear()
        self._modified = False
        self._transform = AffineTransform()

    def _solve_equation(self, origin_points: Sequence[Point2D],
                        desired_points: Sequence[Point2D]) -> AffineTransform:
        x = Matrix3D(origin_points)
        y = Matrix3D(desired_points)
        return y.multiply(x.inverse(self.singular_epsilon)).to_affine()

    def _try_solve(self, origin_points: Sequence[Point2D],
                   desired_points: Sequence[Point2D]) -> bool:
        try:
            solution = self._solve_equation(origin_points, desired_points)
        except NoSolutionError as e:
            logger.error(str(e))
            return False

        self._transform.concatenate(solution)
        self._modified = True
        return True

    def solve_for(self, desired_points: Sequence[Point2D]) -> bool:
        """
        Solve the affine mapping the three control points to ``desired_points``.

        The solution is right-concatenated onto the cached transform.

        Returns:
            True on success, False if there are not three control points or
            they are colinear (the state is left untouched).
        """
        origins = self.origin_points
        if len(origins) != MAX_CONTROL_POINTS or len(desired_points) != MAX_CONTROL_POINTS:
            logger.warning("Solving needs 3 control and 3 desired points, got %d and %d",
                           len(origins), len(desired_points))
            return False
        return self._try_solve(origins, desired_points)

    def update_pair(self, origin_point: Optional[Point2D], desired_point: Point2D):
        """
        Move one control point to ``desired_point`` assuming the others stay put.

        Args:
            origin_point: One of the current control points
            desired_point: New place for that point (image-local coordinates)
        """
        if origin_point is None:
            return

        origins = self.origin_points
        count = len(origins)

        if count == 1:
            self._transform.concatenate(AffineTransform.translation(
                desired_point.x - origin_point.x,
                desired_point.y - origin_point.y,
            ))
            self._modified = True
        elif count == 2:
            o1, o2 = origins
            if o2 == origin_point:
                d1, d2 = o1, desired_point
            else:
                d1, d2 = desired_point, o2
            self._try_solve(
                [o1, o2, triangle_point(o1, o2)],
                [d1, d2, triangle_point(d1, d2)],
            )
        elif count == 3:
            desired = [desired_point if o == origin_point else o for o in origins]
            self._try_solve(origins, desired)

    def concatenate_at(self, transform: AffineTransform, pivot: Optional[Point2D] = None):
        """
        Apply ``transform`` keeping ``pivot`` (image-local coordinates) fixed.

        With a pivot, translate(p) · T · translate(-p) is right-concatenated,
        otherwise T itself. The control points are mapped through T so they
        follow the picture.
        """
        if pivot is not None:
            centered = AffineTransform.translation(pivot.x, pivot.y)
            centered.concatenate(transform)
            centered.translate(-pivot.x, -pivot.y)
            self._transform.concatenate(centered)
        else:
            self._transform.concatenate(transform)

        for cp in self._control_points:
            cp.image_point = transform.transform(cp.image_point)
        self._modified = True
