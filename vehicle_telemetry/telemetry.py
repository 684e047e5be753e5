"""Rolling storage of sensor samples and the derived display state."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, fields, replace

from .config import PlotConfig, ProtocolConfig, UIConfig
from .protocol import SensorData

_PLOT_DEFAULTS = PlotConfig()
_PROTOCOL_DEFAULTS = ProtocolConfig()
_UI_DEFAULTS = UIConfig()

MAX_DATA_POINTS = _PLOT_DEFAULTS.max_data_points
TIME_WINDOW_SECONDS = _PLOT_DEFAULTS.time_window_seconds
FLOAT_COMPARISON_EPSILON = _UI_DEFAULTS.float_comparison_epsilon
DECIMAL_PLACES = _UI_DEFAULTS.decimal_places
SPEED_LIMIT_MIN = _PROTOCOL_DEFAULTS.speed_limit_min
SPEED_LIMIT_MAX = _PROTOCOL_DEFAULTS.speed_limit_max
ANGLE_LIMIT_MIN = _PROTOCOL_DEFAULTS.angle_limit_min
ANGLE_LIMIT_MAX = _PROTOCOL_DEFAULTS.angle_limit_max
GPS_TABLE_ROWS = 14

# Series name "time" holds the sample timestamps; the others are SensorData fields.
_SAMPLE_FIELDS = tuple(f.name for f in fields(SensorData) if f.name != "timestamp")
SERIES_NAMES = _SAMPLE_FIELDS + ("time",)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def apply_limits(sample: SensorData) -> SensorData:
    """Return a copy with speed and steering angle clamped to their display limits."""
    return replace(
        sample,
        longitudinal_vel=_clamp(sample.longitudinal_vel, SPEED_LIMIT_MIN, SPEED_LIMIT_MAX),
        angle=_clamp(sample.angle, ANGLE_LIMIT_MIN, ANGLE_LIMIT_MAX),
    )


def gauge_values(sample: SensorData) -> tuple[float, float]:
    """Values shown by the speed gauge and the steering gauge, in that order."""
    return sample.longitudinal_vel, sample.angle * 10 * -1.0


class TelemetryStore:
    """Keeps the most recent samples of every sensor channel, oldest dropped first."""

    def __init__(self, max_points: int = MAX_DATA_POINTS) -> None:
        if max_points <= 0:
            raise ValueError("max_points must be positive")
        self.max_points = max_points
        self._series: dict[str, deque[float]] = {
            name: deque(maxlen=max_points) for name in SERIES_NAMES
        }

    def __len__(self) -> int:
        return len(self._series["time"])

    def record(self, sample: SensorData) -> None:
        """Append one sample to every channel."""
        for name in _SAMPLE_FIELDS:
            self._series[name].append(getattr(sample, name))
        self._series["time"].append(sample.timestamp)

    def should_update_gps(self, latitude: float, longitude: float) -> bool:
        """True for the first fix, or when either coordinate moved beyond epsilon."""
        latitudes = self._series["latitude"]
        longitudes = self._series["longitude"]
        if not latitudes:
            return True
        return (
            abs(latitude - latitudes[-1]) > FLOAT_COMPARISON_EPSILON
            or abs(longitude - longitudes[-1]) > FLOAT_COMPARISON_EPSILON
        )

    def series(self, name: str) -> tuple[float, ...]:
        """Return the stored values of one channel, oldest first."""
        try:
            return tuple(self._series[name])
        except KeyError:
            raise KeyError(f"unknown series {name!r}") from None

    def plot_window(self, time_window: float = TIME_WINDOW_SECONDS) -> tuple[float, float] | None:
        """The x-axis range ending at the latest sample, or None if nothing is stored."""
        times = self._series["time"]
        if not times:
            return None
        current = times[-1]
        return current - time_window, current


_DISPLAY_FIELDS = (
    "lateral_vel",
    "longitudinal_vel",
    "rpm",
    "angle",
    "odom_x",
    "odom_y",
    "distance",
)


@dataclass
class DisplayCache:
    """Last values shown in the read-outs; reports only those that changed."""

    lateral_vel: float = 0.0
    longitudinal_vel: float = 0.0
    rpm: float = 0.0
    angle: float = 0.0
    odom_x: float = 0.0
    odom_y: float = 0.0
    distance: float = 0.0
    epsilon: float = FLOAT_COMPARISON_EPSILON
    decimal_places: int = DECIMAL_PLACES

    def update(
        self,
        lateral_vel: float,
        longitudinal_vel: float,
        rpm: float,
        angle: float,
        odom_x: float,
        odom_y: float,
    ) -> dict[str, str]:
        """Store the new values and return formatted text for each one that changed.

        The travelled distance is derived from the odometry position.
        """
        incoming = dict(
            zip(
                _DISPLAY_FIELDS,
                (
                    lateral_vel,
                    longitudinal_vel,
                    rpm,
                    angle,
                    odom_x,
                    odom_y,
                    math.sqrt(odom_x * odom_x + odom_y * odom_y),
                ),
            )
        )
        changed: dict[str, str] = {}
        for name, value in incoming.items():
            if abs(value - getattr(self, name)) > self.epsilon:
                setattr(self, name, value)
                changed[name] = f"{value:.{self.decimal_places}f}"
        return changed


class GpsTable:
    """A fixed number of GPS rows; once full, the oldest row scrolls out."""

    def __init__(self, rows: int = GPS_TABLE_ROWS) -> None:
        if rows <= 0:
            raise ValueError("rows must be positive")
        self.capacity = rows
        self._rows: deque[tuple[str, str, str]] = deque(maxlen=rows)

    @property
    def rows(self) -> tuple[tuple[str, str, str], ...]:
        return tuple(self._rows)

    def add(self, time: float, latitude: float, longitude: float) -> int:
        """Add a fix and return the index of the row now holding it."""
        self._rows.append((f"{time:.3f}", f"{latitude:.8f}", f"{longitude:.8f}"))
        return len(self._rows) - 1