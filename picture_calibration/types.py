"""
Unit type annotations for type-safe numeric parameters.

This module defines NewType aliases for the units that flow through the
picture calibration engine. They document the expected units in function
signatures and let static type checkers (mypy) catch unit mismatches, with
zero runtime overhead.

Usage Example:
    >>> from picture_calibration.types import Meters, MetersPer100Pixels, PixelsFloat
    >>>
    >>> def diagonal_meters(diag_pix: PixelsFloat, scale: MetersPer100Pixels) -> Meters:
    ...     return Meters(diag_pix / 100 * scale)
"""

from typing import NewType

# Angular units
Degrees = NewType('Degrees', float)
"""Angle in degrees (e.g., legacy ANGLE calibration key, latitude, longitude)"""

Radians = NewType('Radians', float)
"""Angle in radians (e.g., rotate_picture_by)"""

# Distance/position units
Meters = NewType('Meters', float)
"""Distance in meters (e.g., great circle distances)"""

EastNorthUnits = NewType('EastNorthUnits', float)
"""Distance in projected map units (meters for EPSG:3857, degrees for EPSG:4326)"""

# Image coordinate units
Pixels = NewType('Pixels', int)
"""Image or viewport dimensions in pixels (e.g., width, height)"""

PixelsFloat = NewType('PixelsFloat', float)
"""Floating-point image or screen coordinates in pixels"""

# Scale units
MetersPer100Pixels = NewType('MetersPer100Pixels', float)
"""Map scale captured when a picture is placed (initial image scale)"""

# Dimensionless quantities
Unitless = NewType('Unitless', float)
"""Dimensionless scalar (e.g., scale factors, shear factors)"""
