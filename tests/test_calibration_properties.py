#!/usr/bin/env python3
"""
Property-based tests for the calibration engine using Hypothesis.

Properties tested:
1. Three non-colinear points: M · M⁻¹ = I
2. A three-point solve maps every control point to its target
3. concatenate_at(T, p) followed by concatenate_at(T⁻¹, p) restores the state
4. Saving then loading the property blob is exact for any finite transform
5. A world file reproduces the on-screen placement of a scale/shear calibration

Run with: python -m pytest tests/test_calibration_properties.py -v
"""

import unittest
import sys
import os
import numpy as np

# Add parent directory to path to import modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hypothesis import given, strategies as st, settings, assume

from picture_calibration import calibration_codec as codec
from picture_calibration.affine_transform import AffineTransform
from picture_calibration.geometry import EastNorth, Point2D
from picture_calibration.map_view import MapViewState
from picture_calibration.matrix3d import Matrix3D
from picture_calibration.picture_transform import PictureTransform
from picture_calibration.view_mapping import image_to_screen_transform

from conftest import EquatorProjection


# Image-space coordinates within a large picture
coordinate_strategy = st.floats(min_value=-5000.0, max_value=5000.0,
                                allow_nan=False, allow_infinity=False)
point_strategy = st.builds(Point2D, coordinate_strategy, coordinate_strategy)
angle_strategy = st.floats(min_value=-np.pi, max_value=np.pi, allow_nan=False)
scale_strategy = st.floats(min_value=0.1, max_value=10.0, allow_nan=False)
shear_strategy = st.floats(min_value=-0.5, max_value=0.5, allow_nan=False)
offset_strategy = st.floats(min_value=-500.0, max_value=500.0, allow_nan=False)
pivot_strategy = st.builds(Point2D, offset_strategy, offset_strategy)
finite_strategy = st.floats(allow_nan=False, allow_infinity=False)


def triangle_area(a: Point2D, b: Point2D, c: Point2D) -> float:
    return abs((b.x - a.x) * (c.y - a.y) - (c.x - a.x) * (b.y - a.y)) / 2


def well_spread_triangle_strategy():
    """Three points spanning a triangle that is far from degenerate."""
    def well_spread(pts):
        longest = max(pts[0].distance(pts[1]), pts[1].distance(pts[2]), pts[0].distance(pts[2]))
        return longest > 10.0 and triangle_area(*pts) > 0.1 * longest ** 2

    return st.tuples(point_strategy, point_strategy, point_strategy).filter(well_spread)


def transform_strategy():
    """Rotation, scale, shear and translation composed in that order."""
    return st.builds(
        lambda angle, sx, sy, shx, shy, tx, ty: (
            AffineTransform.rotation(angle)
            .scale(sx, sy)
            .shear(shx, shy)
            .translate(tx, ty)
        ),
        angle_strategy, scale_strategy, scale_strategy,
        shear_strategy, shear_strategy, offset_strategy, offset_strategy,
    )


class TestSolveProperties(unittest.TestCase):
    """Properties of the three-point affine solve."""

    @given(well_spread_triangle_strategy())
    @settings(max_examples=100)
    def test_inverse_is_identity(self, points):
        """
        Property: for non-colinear points, M · M⁻¹ = I.
        """
        m = Matrix3D(list(points))

        product = m.multiply(m.inverse()).matrix

        np.testing.assert_allclose(product, np.eye(3), atol=1e-9)

    @given(well_spread_triangle_strategy(), transform_strategy())
    @settings(max_examples=100)
    def test_solve_hits_targets(self, points, target_transform):
        """
        Property: solving for transformed points recovers a transform that
        maps each control point onto its target.
        """
        transformer = PictureTransform()
        transformer.set_origin_points(list(points))
        desired = [target_transform.transform(p) for p in points]

        self.assertTrue(transformer.solve_for(desired))

        for p, d in zip(points, desired):
            mapped = transformer.transform.transform(p)
            np.testing.assert_allclose([mapped.x, mapped.y], [d.x, d.y], rtol=1e-7, atol=1e-6)


class TestConcatenateAtProperties(unittest.TestCase):

    @given(transform_strategy(), pivot_strategy, st.lists(pivot_strategy, max_size=3))
    @settings(max_examples=100)
    def test_inverse_restores_state(self, t, pivot, points):
        """
        Property: concatenate_at(T, p) then concatenate_at(T⁻¹, p) is a no-op
        up to floating point error, for the transform and the control points.
        """
        assume(abs(t.determinant) > 1e-3)
        transformer = PictureTransform()
        start = AffineTransform.translation(12.0, -7.0)
        transformer.set_transform(start)
        transformer.set_origin_points(points)

        transformer.concatenate_at(t, pivot)
        transformer.concatenate_at(t.create_inverse(), pivot)

        np.testing.assert_allclose(transformer.transform.as_array(), start.as_array(),
                                   rtol=1e-7, atol=1e-4)
        for actual, expected in zip(transformer.origin_points, points):
            np.testing.assert_allclose([actual.x, actual.y], [expected.x, expected.y],
                                       rtol=1e-7, atol=1e-4)


class TestCodecProperties(unittest.TestCase):

    @given(st.lists(finite_strategy, min_size=6, max_size=6), finite_strategy,
           finite_strategy, finite_strategy)
    @settings(max_examples=100)
    def test_property_blob_is_exact(self, flat, east, north, scale):
        """
        Property: the textual property blob is lossless for finite doubles.
        """
        transformer = PictureTransform(EastNorth(east, north))
        transformer.set_transform(AffineTransform.from_flat_matrix(flat))
        text = codec.format_properties(codec.save_calibration(transformer, scale))

        other = PictureTransform()
        loaded_scale = codec.load_calibration(other, codec.parse_properties(text))

        self.assertEqual(other.transform.flat_matrix(), transformer.transform.flat_matrix())
        self.assertEqual(other.image_position, transformer.image_position)
        self.assertEqual(loaded_scale, scale)

    @given(scale_strategy, scale_strategy, shear_strategy, shear_strategy,
           st.floats(min_value=-1000.0, max_value=1000.0, allow_nan=False),
           st.floats(min_value=-1000.0, max_value=1000.0, allow_nan=False),
           st.floats(min_value=1.0, max_value=500.0, allow_nan=False))
    @settings(max_examples=100)
    def test_world_file_keeps_screen_placement(self, sx, sy, shx, shy, east, north, scale):
        """
        Property: save to a world file then load it back; the picture ends up
        at the same place on screen.
        """
        projection = EquatorProjection()
        view = MapViewState.from_center(EastNorth(0.0, 0.0), 0.5, 800, 600)
        transformer = PictureTransform(EastNorth(east, north))
        transformer.set_transform(AffineTransform.scaling(sx, sy).shear(shx, shy))
        assume(abs(transformer.transform.determinant) > 1e-3)
        before = image_to_screen_transform(view, projection, transformer.image_position,
                                           scale, transformer.transform)

        values = codec.world_file_values(transformer, scale, 640, 480, projection)
        reloaded = PictureTransform()
        new_scale = codec.apply_world_file(reloaded, values, 640, 480, projection)
        after = image_to_screen_transform(view, projection, reloaded.image_position,
                                          new_scale, reloaded.transform)

        np.testing.assert_allclose(after.as_array(), before.as_array(), rtol=1e-7, atol=1e-6)


if __name__ == '__main__':
    unittest.main()
