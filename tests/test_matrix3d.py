#!/usr/bin/env python3
"""
Tests for Matrix3D: homogeneous point matrices and the 3-point affine solve.

Run with: python -m pytest tests/test_matrix3d.py -v
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from picture_calibration.geometry import Point2D
from picture_calibration.matrix3d import Matrix3D, NoSolutionError


class TestConstruction:
    """Points become homogeneous columns."""

    def test_points_are_columns(self):
        m = Matrix3D([Point2D(1, 2), Point2D(3, 4), Point2D(5, 6)])

        np.testing.assert_array_equal(m.matrix, [[1, 3, 5], [2, 4, 6], [1, 1, 1]])

    def test_requires_three_points(self):
        with pytest.raises(ValueError, match="exactly 3 points"):
            Matrix3D([Point2D(0, 0), Point2D(1, 0)])

    def test_no_arguments(self):
        with pytest.raises(ValueError, match="exactly 3 points, got 0"):
            Matrix3D()

    def test_from_matrix(self):
        m = Matrix3D(matrix=np.arange(9.0))

        assert m.matrix.shape == (3, 3)
        assert m.matrix[2, 0] == 6.0


class TestInverse:
    """Adjugate inverse and singularity detection."""

    def test_inverse_times_matrix_is_identity(self):
        m = Matrix3D([Point2D(0, 0), Point2D(100, 0), Point2D(50, 50)])

        product = m.multiply(m.inverse())

        np.testing.assert_allclose(product.matrix, np.eye(3), atol=1e-12)

    def test_inverse_matches_numpy(self):
        m = Matrix3D([Point2D(12.5, -3.0), Point2D(7.0, 44.0), Point2D(-20.0, 5.5)])

        np.testing.assert_allclose(m.inverse().matrix, np.linalg.inv(m.matrix), atol=1e-12)

    def test_colinear_points_have_no_solution(self):
        m = Matrix3D([Point2D(0, 0), Point2D(1, 1), Point2D(2, 2)])

        with pytest.raises(NoSolutionError):
            m.inverse()

    def test_coincident_points_have_no_solution(self):
        p = Point2D(3.0, 4.0)
        m = Matrix3D([p, p, Point2D(10.0, 0.0)])

        with pytest.raises(NoSolutionError):
            m.inverse()

    def test_no_solution_is_a_value_error(self):
        assert issubclass(NoSolutionError, ValueError)

    def test_custom_epsilon(self):
        # det = 2 * area = 1e-6
        m = Matrix3D([Point2D(0, 0), Point2D(1e-3, 0), Point2D(0, 1e-3)])

        m.inverse()
        with pytest.raises(NoSolutionError):
            m.inverse(epsilon=1e-3)


class TestSolve:
    """A = Y · X⁻¹ maps source points to destination points."""

    def test_solve_recovers_known_affine(self):
        sources = [Point2D(0, 0), Point2D(10, 0), Point2D(0, 10)]
        # x' = 2x + y + 5, y' = -x + 3y - 1
        targets = [Point2D(2 * p.x + p.y + 5, -p.x + 3 * p.y - 1) for p in sources]

        affine = Matrix3D(targets).multiply(Matrix3D(sources).inverse()).to_affine()

        assert affine.scale_x == pytest.approx(2.0)
        assert affine.shear_x == pytest.approx(1.0)
        assert affine.translate_x == pytest.approx(5.0)
        assert affine.shear_y == pytest.approx(-1.0)
        assert affine.scale_y == pytest.approx(3.0)
        assert affine.translate_y == pytest.approx(-1.0)

        for s, t in zip(sources, targets):
            mapped = affine.transform(s)
            assert mapped.x == pytest.approx(t.x)
            assert mapped.y == pytest.approx(t.y)

    def test_to_affine_reads_first_two_rows(self):
        m = Matrix3D(matrix=np.array([[1, 2, 3], [4, 5, 6], [0, 0, 1]]))

        affine = m.to_affine()

        assert affine.flat_matrix() == (1.0, 4.0, 2.0, 5.0, 3.0, 6.0)
