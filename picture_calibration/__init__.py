"""
Picture Calibration Engine.

This package places a raster picture on a geographic map by composing an
anchor point in projected coordinates, the map scale captured when the
picture was placed, and a free affine transform derived from user-edited
control points.

It provides:
    - Matrix3D / AffineTransform: the numeric core (3-point affine solve)
    - PictureTransform: mutable calibration state and control point updates
    - view_mapping: screen <-> picture-local transforms for a map viewport
    - calibration_codec: .cal property files and GIS world files
    - PictureLayer: owner of the engine state for one picture

Example Usage:
    >>> from picture_calibration import (
    ...     EastNorth, MapViewState, PictureLayer, Point2D, get_projection
    ... )
    >>>
    >>> projection = get_projection("EPSG:3857")
    >>> view = MapViewState.from_center(EastNorth(500000.0, 5500000.0), 1.0, 800, 600)
    >>> layer = PictureLayer.create(view, projection, image_width=1000, image_height=1000)
    >>>
    >>> # Drag a control point
    >>> layer.transformer.add_origin_point(Point2D(100, 100))
    >>> layer.transformer.update_pair(Point2D(100, 100), Point2D(150, 130))
    >>>
    >>> # Export as world file
    >>> values = layer.world_file_values()

Available Classes:
    Geometry:
        - Point2D, EastNorth, LatLon, BoundingBox

    Numeric core:
        - AffineTransform, Matrix3D

    Engine:
        - PictureTransform, ControlPoint, PictureLayer, MapViewState

    Projection:
        - Projection (protocol), PyprojProjection

    Errors:
        - NoSolutionError, NoninvertibleTransformError, CalibrationFormatError
"""

from picture_calibration.geometry import BoundingBox, EastNorth, LatLon, Point2D
from picture_calibration.affine_transform import AffineTransform, NoninvertibleTransformError
from picture_calibration.matrix3d import Matrix3D, NoSolutionError
from picture_calibration.picture_transform import ControlPoint, PictureTransform
from picture_calibration.projection import Projection, PyprojProjection, get_projection
from picture_calibration.map_view import MapViewState
from picture_calibration.calibration_codec import CalibrationFormatError
from picture_calibration.config import CalibrationConfig, get_default_config
from picture_calibration.picture_layer import PictureLayer

__all__ = [
    # Geometry
    'BoundingBox',
    'EastNorth',
    'LatLon',
    'Point2D',

    # Numeric core
    'AffineTransform',
    'Matrix3D',

    # Engine
    'ControlPoint',
    'PictureTransform',
    'PictureLayer',
    'MapViewState',

    # Projection
    'Projection',
    'PyprojProjection',
    'get_projection',

    # Configuration
    'CalibrationConfig',
    'get_default_config',

    # Errors
    'CalibrationFormatError',
    'NoSolutionError',
    'NoninvertibleTransformError',
]

# Package metadata
__version__ = '0.1.0'
__description__ = 'Affine calibration of raster pictures placed on a map'
