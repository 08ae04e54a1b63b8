"""
Homogeneous 3x3 matrix of three planar points.

Three points (x1, y1), (x2, y2), (x3, y3) are stored as the columns

    | x1  x2  x3 |
    | y1  y2  y3 |
    |  1   1   1 |

To find the affine A with A·Xi = Yi for three correspondences, build
X = Matrix3D(sources) and Y = Matrix3D(destinations) and compute
A = Y · X⁻¹. The bottom row of the product is (0, 0, 1) by construction
and is dropped by to_affine().
"""

from typing import Optional, Sequence

import numpy as np

from picture_calibration.affine_transform import AffineTransform
from picture_calibration.geometry import Point2D

# Determinants below this magnitude mean colinear or coincident points
SINGULAR_EPSILON = 1e-12


class NoSolutionError(ValueError):
    """Raised when three points do not span the plane (singular matrix)."""


class Matrix3D:
    """3x3 matrix with product and adjugate inverse."""

    def __init__(self, points: Optional[Sequence[Point2D]] = None,
                 matrix: Optional[np.ndarray] = None):
        if matrix is not None:
            self.matrix = np.asarray(matrix, dtype=np.float64).reshape(3, 3)
            return

        if points is None or len(points) != 3:
            got = 0 if points is None else len(points)
            raise ValueError(f"Matrix3D needs exactly 3 points, got {got}")

        self.matrix = np.array(
            [[p.x for p in points],
             [p.y for p in points],
             [1.0, 1.0, 1.0]],
            dtype=np.float64,
        )

    def multiply(self, other: 'Matrix3D') -> 'Matrix3D':
        return Matrix3D(matrix=self.matrix @ other.matrix)

    def determinant(self) -> float:
        m = self.matrix
        return float(np.dot(m[0], np.cross(m[1], m[2])))

    def inverse(self, epsilon: float = SINGULAR_EPSILON) -> 'Matrix3D':
        """
        Invert through the adjugate divided by the determinant.

        Args:
            epsilon: Determinant magnitude below which the matrix is singular

        Returns:
            Inverse matrix

        Raises:
            NoSolutionError: If |det| < epsilon (colinear or coincident points)
        """
        m = self.matrix
        # Row i of the cofactor matrix is the cross product of the other two rows
        cofactors = np.array([
            np.cross(m[1], m[2]),
            np.cross(m[2], m[0]),
            np.cross(m[0], m[1]),
        ])
        det = float(np.dot(m[0], cofactors[0]))
        if not np.isfinite(det) or abs(det) < epsilon:
            raise NoSolutionError(
                f"Unable to solve calibration: points are colinear or coincident (det={det:.3e})"
            )
        return Matrix3D(matrix=cofactors.T / det)

    def to_affine(self) -> AffineTransform:
        return AffineTransform.from_array(self.matrix)

    def __repr__(self) -> str:
        return f"Matrix3D({self.matrix.tolist()!r})"
