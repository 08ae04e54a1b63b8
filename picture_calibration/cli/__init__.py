"""CLI module for picture calibration tools.

Provides the `piccal` command-line interface for converting and inspecting
calibration sidecar files.
"""

from picture_calibration.cli.main import app

__all__ = ["app"]
