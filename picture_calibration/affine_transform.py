"""
2D affine transform backed by a homogeneous 3x3 numpy matrix.

The transform maps [x'; y'; 1] = M · [x; y; 1] with the third row of M
fixed at (0, 0, 1). The six free entries use the usual naming:

    | m00  m01  m02 |
    | m10  m11  m12 |
    |  0    0    1  |

Composition follows the right-multiply convention: ``a.concatenate(b)``
replaces ``a`` with ``a · b``, so ``b`` is applied to a point first. All
helpers that modify a transform in place (translate, rotate, scale, shear)
right-concatenate the corresponding elementary matrix.

Flat matrix order is column-major over the 2x3 part:
``(m00, m10, m01, m11, m02, m12)``. The calibration codec relies on this
order when it writes the M00..M12 keys.
"""

import math
from typing import Tuple

import numpy as np

from picture_calibration.geometry import Point2D

# Smallest determinant magnitude still treated as invertible
_TINY = np.finfo(np.float64).tiny


class NoninvertibleTransformError(ValueError):
    """Raised when an affine transform with a (near) zero determinant is inverted."""


class AffineTransform:
    """Mutable 2D affine transform.

    Usage:
        >>> t = AffineTransform.rotation(math.pi / 2).scale(2.0, 2.0)
        >>> t.transform(Point2D(1.0, 0.0))
        Point2D(x=0.0, y=2.0)
    """

    def __init__(self, m00: float = 1.0, m10: float = 0.0, m01: float = 0.0,
                 m11: float = 1.0, m02: float = 0.0, m12: float = 0.0):
        self._matrix = np.array(
            [[m00, m01, m02],
             [m10, m11, m12],
             [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def identity(cls) -> 'AffineTransform':
        return cls()

    @classmethod
    def from_flat_matrix(cls, flat) -> 'AffineTransform':
        """Build a transform from ``(m00, m10, m01, m11, m02, m12)``."""
        if len(flat) != 6:
            raise ValueError(f"flat matrix must have exactly 6 elements, got {len(flat)}")
        return cls(*(float(v) for v in flat))

    @classmethod
    def from_array(cls, matrix: np.ndarray) -> 'AffineTransform':
        """Build a transform from the first two rows of a 3x3 (or 2x3) array."""
        m = np.asarray(matrix, dtype=np.float64)
        return cls(m[0, 0], m[1, 0], m[0, 1], m[1, 1], m[0, 2], m[1, 2])

    @classmethod
    def translation(cls, tx: float, ty: float) -> 'AffineTransform':
        return cls(m02=tx, m12=ty)

    @classmethod
    def rotation(cls, theta: float) -> 'AffineTransform':
        """Counter-clockwise rotation by ``theta`` radians (y axis down on screen)."""
        sin = math.sin(theta)
        cos = math.cos(theta)
        # Quadrant rotations are exact
        if sin == 1.0 or sin == -1.0:
            cos = 0.0
        elif cos == 1.0 or cos == -1.0:
            sin = 0.0
        return cls(m00=cos, m10=sin, m01=-sin, m11=cos)

    @classmethod
    def scaling(cls, sx: float, sy: float) -> 'AffineTransform':
        return cls(m00=sx, m11=sy)

    @classmethod
    def shearing(cls, shx: float, shy: float) -> 'AffineTransform':
        """Shear: x' = x + shx·y, y' = shy·x + y."""
        return cls(m10=shy, m01=shx)

    def copy(self) -> 'AffineTransform':
        clone = AffineTransform()
        clone._matrix = self._matrix.copy()
        return clone

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def scale_x(self) -> float:
        return float(self._matrix[0, 0])

    @property
    def scale_y(self) -> float:
        return float(self._matrix[1, 1])

    @property
    def shear_x(self) -> float:
        return float(self._matrix[0, 1])

    @property
    def shear_y(self) -> float:
        return float(self._matrix[1, 0])

    @property
    def translate_x(self) -> float:
        return float(self._matrix[0, 2])

    @property
    def translate_y(self) -> float:
        return float(self._matrix[1, 2])

    @property
    def determinant(self) -> float:
        m = self._matrix
        return float(m[0, 0] * m[1, 1] - m[0, 1] * m[1, 0])

    def flat_matrix(self) -> Tuple[float, float, float, float, float, float]:
        """Return ``(m00, m10, m01, m11, m02, m12)``."""
        m = self._matrix
        return (float(m[0, 0]), float(m[1, 0]), float(m[0, 1]),
                float(m[1, 1]), float(m[0, 2]), float(m[1, 2]))

    def as_array(self) -> np.ndarray:
        """Return a copy of the homogeneous 3x3 matrix."""
        return self._matrix.copy()

    def is_identity(self) -> bool:
        return bool(np.array_equal(self._matrix, np.eye(3)))

    # ------------------------------------------------------------------
    # In-place composition
    # ------------------------------------------------------------------

    def concatenate(self, other: 'AffineTransform') -> 'AffineTransform':
        """Right-multiply: ``self := self · other``. Returns self."""
        self._matrix = self._matrix @ other._matrix
        return self

    def pre_concatenate(self, other: 'AffineTransform') -> 'AffineTransform':
        """Left-multiply: ``self := other · self``. Returns self."""
        self._matrix = other._matrix @ self._matrix
        return self

    def translate(self, tx: float, ty: float) -> 'AffineTransform':
        return self.concatenate(AffineTransform.translation(tx, ty))

    def rotate(self, theta: float) -> 'AffineTransform':
        return self.concatenate(AffineTransform.rotation(theta))

    def scale(self, sx: float, sy: float) -> 'AffineTransform':
        return self.concatenate(AffineTransform.scaling(sx, sy))

    def shear(self, shx: float, shy: float) -> 'AffineTransform':
        return self.concatenate(AffineTransform.shearing(shx, shy))

    # ------------------------------------------------------------------
    # Inversion and point mapping
    # ------------------------------------------------------------------

    def create_inverse(self) -> 'AffineTransform':
        """
        Return the inverse transform.

        Raises:
            NoninvertibleTransformError: If the determinant is zero or not finite.
        """
        det = self.determinant
        if not math.isfinite(det) or abs(det) <= _TINY:
            raise NoninvertibleTransformError(f"Determinant is {det}")

        m = self._matrix
        m00, m01, m02 = m[0]
        m10, m11, m12 = m[1]
        return AffineTransform(
            m00=m11 / det,
            m10=-m10 / det,
            m01=-m01 / det,
            m11=m00 / det,
            m02=(m01 * m12 - m11 * m02) / det,
            m12=(m10 * m02 - m00 * m12) / det,
        )

    def transform(self, point: Point2D) -> Point2D:
        m = self._matrix
        return Point2D(
            float(m[0, 0] * point.x + m[0, 1] * point.y + m[0, 2]),
            float(m[1, 0] * point.x + m[1, 1] * point.y + m[1, 2]),
        )

    def inverse_transform(self, point: Point2D) -> Point2D:
        """
        Map a point through the inverse transform.

        Raises:
            NoninvertibleTransformError: If the transform is singular.
        """
        return self.create_inverse().transform(point)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def almost_equal(self, other: 'AffineTransform', abs_tol: float = 1e-9) -> bool:
        return bool(np.allclose(self._matrix, other._matrix, rtol=0.0, atol=abs_tol))

    def __eq__(self, other):
        if not isinstance(other, AffineTransform):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other._matrix))

    __hash__ = None

    def __repr__(self) -> str:
        m00, m10, m01, m11, m02, m12 = self.flat_matrix()
        return (f"AffineTransform([[{m00!r}, {m01!r}, {m02!r}], "
                f"[{m10!r}, {m11!r}, {m12!r}]])")
