"""GPS track canvas: maps latitude/longitude onto a self-scaling drawing area."""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)

MIN_WIDTH = 300
MIN_HEIGHT = 240
MAX_POINTS = 2000
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class TrackCanvas:
    """Keeps a track of GPS fixes in canvas coordinates around the first fix."""

    def __init__(self, width: int = MIN_WIDTH, height: int = MIN_HEIGHT) -> None:
        self.width = max(MIN_WIDTH, width)
        self.height = max(MIN_HEIGHT, height)
        self.china_range = True
        self.show_grid = True
        self.track_color = (0, 0, 255, 150)
        self.current_point_color = (255, 0, 0, 255)
        self.history_point_color = (144, 238, 144, 200)
        self.point_size = 4
        self.dynamic_scale = 1.0
        self.origin_lat_int = 0
        self.origin_lon_int = 0
        self._points: list[tuple[float, float]] = []
        self.high_precision = True
        self.decimal_places = 7
        self.base_scale = 1e6
        self.set_high_precision_mode(True, 6)

    @property
    def points(self) -> tuple[tuple[float, float], ...]:
        return tuple(self._points)

    def set_high_precision_mode(self, enable: bool, decimal_places: int = 7) -> None:
        """Switch the grid on or off and set the precision, clamped to 6..10 digits."""
        self.high_precision = enable
        self.decimal_places = min(max(decimal_places, 6), 10)
        self.base_scale = 10.0**self.decimal_places

    def set_point_size(self, size: int) -> None:
        self.point_size = max(1, size)

    def resize(self, width: int, height: int) -> None:
        """Resize the canvas, never below its minimum size."""
        self.width = max(MIN_WIDTH, width)
        self.height = max(MIN_HEIGHT, height)

    def _scaled(self, value: float) -> int:
        return int(value * self.base_scale)

    def is_coordinate_valid(self, lat: float, lon: float) -> bool:
        """True if both coordinates, once scaled, fit a signed 64-bit integer."""
        for value in (lat * self.base_scale, lon * self.base_scale):
            if not math.isfinite(value) or not _INT64_MIN <= value <= _INT64_MAX:
                return False
        return True

    def lat_lon_to_canvas(self, latitude: float, longitude: float) -> tuple[float, float] | None:
        """Map a fix to canvas coordinates, or None if it cannot be scaled.

        The first fix becomes the origin at the canvas centre; once more than
        ten points exist the scale adapts so the track stays on the canvas.
        """
        if not self.is_coordinate_valid(latitude, longitude):
            logger.warning("coordinate overflow: %s %s", latitude, longitude)
            return None

        lat_int = self._scaled(latitude)
        lon_int = self._scaled(longitude)

        if not self._points:
            self.origin_lat_int = lat_int
            self.origin_lon_int = lon_int
            self.dynamic_scale = 1.0

        d_lat = lat_int - self.origin_lat_int
        d_lon = lon_int - self.origin_lon_int

        if len(self._points) > 10:
            max_offset = max(max(abs(x), abs(y)) for x, y in self._points)
            if max_offset > 0:
                scale = min(self.width, self.height) / (2.0 * max_offset)
                self.dynamic_scale = max(0.1, scale)

        x = self.width / 2.0 + float(d_lon) * self.dynamic_scale
        y = self.height / 2.0 - float(d_lat) * self.dynamic_scale
        return (x, y)

    def add_point(self, latitude: float, longitude: float) -> bool:
        """Append a fix to the track; return whether it was kept."""
        if self.china_range and not self.is_coordinate_valid(latitude, longitude):
            logger.warning("invalid coordinate: %s %s", latitude, longitude)
            return False
        point = self.lat_lon_to_canvas(latitude, longitude)
        if point is None or point == (0.0, 0.0):
            return False
        self._points.append(point)
        if len(self._points) > MAX_POINTS:
            del self._points[0]
        return True

    def clear_points(self) -> None:
        """Drop the track and reset origin and scale."""
        self._points.clear()
        self.origin_lat_int = 0
        self.origin_lon_int = 0
        self.dynamic_scale = 1.0

    def grid_lines(self) -> list[tuple[int, int, int, int]]:
        """Return the grid as (x1, y1, x2, y2) lines, drawn outward from the centre."""
        if not self.show_grid or not self.high_precision:
            return []
        center_x = self.width // 2
        center_y = self.height // 2
        step_deg = 10.0 ** -(self.decimal_places - 4) * self.dynamic_scale
        step_px = step_deg * self.base_scale
        lines: list[tuple[int, int, int, int]] = []

        y = float(center_y)
        while y < self.height:
            lines.append((0, int(y), self.width, int(y)))
            y += step_px
        y = float(center_y)
        while y > 0:
            lines.append((0, int(y), self.width, int(y)))
            y -= step_px
        x = float(center_x)
        while x < self.width:
            lines.append((int(x), 0, int(x), self.height))
            x += step_px
        x = float(center_x)
        while x > 0:
            lines.append((int(x), 0, int(x), self.height))
            x -= step_px
        return lines

    def coordinate_at(self, x: float, y: float) -> tuple[float, float]:
        """Return the (latitude, longitude) under a canvas position."""
        origin_lat = self.origin_lat_int / self.base_scale
        origin_lon = self.origin_lon_int / self.base_scale
        center_x = self.width // 2
        center_y = self.height // 2
        factor = self.base_scale * self.dynamic_scale
        lon = origin_lon + (x - center_x) / factor
        lat = origin_lat - (y - center_y) / factor
        return (lat, lon)

    def tooltip_text(self, x: float, y: float) -> str:
        """The hover text for a canvas position: longitude then latitude."""
        lat, lon = self.coordinate_at(x, y)
        places = self.decimal_places
        return f"经度: {lon:.{places}f}\n纬度: {lat:.{places}f}"