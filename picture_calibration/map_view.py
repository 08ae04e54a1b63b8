"""Map viewport state needed to place a picture on screen."""

from dataclasses import dataclass

from picture_calibration.geometry import EastNorth, Point2D
from picture_calibration.projection import Projection
from picture_calibration.types import MetersPer100Pixels


@dataclass(frozen=True)
class MapViewState:
    """A snapshot of the host map view.

    Screen coordinates have their origin at the top-left corner with y
    growing downward. East/north per pixel is the same on both axes.

    Attributes:
        center: East/north at the centre of the viewport.
        top_left: East/north at screen pixel (0, 0).
        width: Viewport width in pixels.
        height: Viewport height in pixels.
    """

    center: EastNorth
    top_left: EastNorth
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport size must be positive, got {self.width}x{self.height}")
        if self.center.east == self.top_left.east:
            raise ValueError("Viewport center and top-left share the same easting")

    @classmethod
    def from_center(cls, center: EastNorth, east_north_per_pixel: float,
                    width: int, height: int) -> 'MapViewState':
        """Build a view from its centre and resolution."""
        top_left = EastNorth(
            center.east - width / 2 * east_north_per_pixel,
            center.north + height / 2 * east_north_per_pixel,
        )
        return cls(center=center, top_left=top_left, width=width, height=height)

    @property
    def pixels_per_east_north(self) -> float:
        """Number of screen pixels for one unit in east/north space."""
        return (self.width / 2.0) / (self.center.east - self.top_left.east)

    def east_north_to_screen(self, en: EastNorth) -> Point2D:
        ppen = self.pixels_per_east_north
        return Point2D(
            (en.east - self.top_left.east) * ppen,
            (self.top_left.north - en.north) * ppen,
        )

    def screen_to_east_north(self, point: Point2D) -> EastNorth:
        ppen = self.pixels_per_east_north
        return EastNorth(
            self.top_left.east + point.x / ppen,
            self.top_left.north - point.y / ppen,
        )

    def meters_per_100_pixels(self, projection: Projection) -> MetersPer100Pixels:
        """Ground distance covered by 100 pixels across the viewport centre."""
        y = self.height / 2
        ll1 = projection.east_north_to_lat_lon(
            self.screen_to_east_north(Point2D(self.width / 2 - 50, y)))
        ll2 = projection.east_north_to_lat_lon(
            self.screen_to_east_north(Point2D(self.width / 2 + 50, y)))
        return MetersPer100Pixels(ll1.great_circle_distance(ll2))
