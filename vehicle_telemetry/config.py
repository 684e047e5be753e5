"""Application configuration: defaults, JSON persistence and validation."""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, Mapping

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"
CONFIG_VERSION = "1.0"


class ConfigError(Exception):
    """Raised when a configuration cannot be read, written or validated."""


def _as_float32(value: float) -> float:
    """Round a value to single precision, as the scale factors are stored."""
    return struct.unpack("f", struct.pack("f", value))[0]


def _json_int(value: Any) -> int:
    """Integer view of a JSON value: 0 unless it is a whole number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not value.is_integer():
        return 0
    number = int(value)
    if not -(2**31) <= number < 2**31:
        return 0
    return number


def _json_float(value: Any) -> float:
    """Float view of a JSON value: 0.0 unless it is a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _json_bool(value: Any) -> bool:
    """Boolean view of a JSON value: False unless it is a boolean."""
    return value if isinstance(value, bool) else False


def _json_str(value: Any) -> str:
    """String view of a JSON value: empty unless it is a string."""
    return value if isinstance(value, str) else ""


def _json_object(value: Any) -> Mapping[str, Any]:
    """Object view of a JSON value: empty unless it is an object."""
    return value if isinstance(value, dict) else {}


def _apply(target: Any, source: Mapping[str, Any], fields: Mapping[str, tuple[str, Any]]) -> None:
    """Copy the keys present in ``source`` onto ``target`` using the given converters."""
    for key, (attribute, convert) in fields.items():
        if key in source:
            setattr(target, attribute, convert(source[key]))


@dataclass
class PlotConfig:
    """Settings of the time-series plots."""

    max_data_points: int = 1000
    update_interval_ms: int = 50
    time_window_seconds: float = 10.0
    background_color: tuple[int, int, int] = (0, 0, 0)
    text_color: tuple[int, int, int] = (255, 255, 255)
    use_queued_replot: bool = True
    performance_update_ratio: int = 3

    _JSON: ClassVar[dict[str, tuple[str, Any]]] = {
        "maxDataPoints": ("max_data_points", _json_int),
        "updateIntervalMs": ("update_interval_ms", _json_int),
        "timeWindowSeconds": ("time_window_seconds", _json_float),
        "useQueuedReplot": ("use_queued_replot", _json_bool),
        "performanceUpdateRatio": ("performance_update_ratio", _json_int),
    }

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for key, (attr, _) in self._JSON.items()}

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        _apply(self, data, self._JSON)


@dataclass
class NetworkConfig:
    """Network ports and limits."""

    default_tcp_port: int = 8888
    default_tcp_port2: int = 7777
    default_udp_port: int = 9999
    connection_timeout_ms: int = 5000
    max_retry_attempts: int = 3
    max_buffer_size_mb: int = 10

    _JSON: ClassVar[dict[str, tuple[str, Any]]] = {
        "defaultTcpPort": ("default_tcp_port", _json_int),
        "defaultTcpPort2": ("default_tcp_port2", _json_int),
        "defaultUdpPort": ("default_udp_port", _json_int),
        "connectionTimeoutMs": ("connection_timeout_ms", _json_int),
        "maxRetryAttempts": ("max_retry_attempts", _json_int),
        "maxBufferSizeMB": ("max_buffer_size_mb", _json_int),
    }

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for key, (attr, _) in self._JSON.items()}

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        _apply(self, data, self._JSON)


def _json_float32(value: Any) -> float:
    return _as_float32(_json_float(value))


@dataclass
class ProtocolConfig:
    """Binary protocol scale factors, frame markers and value limits."""

    imu_orientation_scale: float = 1000.0
    imu_angular_vel_scale: float = 1000.0
    imu_linear_acc_scale: float = 1000.0
    car_rpm_scale: float = 10.0
    car_angle_scale: float = 1000.0
    gps_coordinate_scale: float = 1e8

    frame_header1: int = 0xEE
    frame_header2: int = 0xFF
    frame_footer: int = 0xDD
    min_frame_size: int = 5

    speed_limit_min: float = -6.0
    speed_limit_max: float = 6.0
    angle_limit_min: float = -5.0
    angle_limit_max: float = 5.0

    _JSON: ClassVar[dict[str, tuple[str, Any]]] = {
        "imuOrientationScale": ("imu_orientation_scale", _json_float32),
        "imuAngularVelScale": ("imu_angular_vel_scale", _json_float32),
        "imuLinearAccScale": ("imu_linear_acc_scale", _json_float32),
        "carRpmScale": ("car_rpm_scale", _json_float32),
        "carAngleScale": ("car_angle_scale", _json_float32),
        "gpsCoordinateScale": ("gps_coordinate_scale", _json_float),
        "speedLimitMin": ("speed_limit_min", _json_float),
        "speedLimitMax": ("speed_limit_max", _json_float),
        "angleLimitMin": ("angle_limit_min", _json_float),
        "angleLimitMax": ("angle_limit_max", _json_float),
    }

    def to_dict(self) -> dict[str, Any]:
        return {key: float(getattr(self, attr)) for key, (attr, _) in self._JSON.items()}

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        _apply(self, data, self._JSON)


@dataclass
class GaugeConfig:
    """Ranges, sizes and units of the two dashboard gauges."""

    rpm_min: float = -5.0
    rpm_max: float = 5.0
    rpm_warning_min: float = -3.0
    rpm_warning_max: float = 3.0
    rpm_width: int = 480
    rpm_height: int = 420
    rpm_unit: str = "m/s"

    angle_min: float = -6.0
    angle_max: float = 6.0
    angle_warning_min: float = -4.0
    angle_warning_max: float = 4.0
    angle_width: int = 300
    angle_height: int = 240
    angle_unit: str = "degrees"

    _JSON: ClassVar[dict[str, tuple[str, Any]]] = {
        "rpmMin": ("rpm_min", _json_float),
        "rpmMax": ("rpm_max", _json_float),
        "rpmWidth": ("rpm_width", _json_int),
        "rpmHeight": ("rpm_height", _json_int),
        "rpmUnit": ("rpm_unit", _json_str),
        "angleMin": ("angle_min", _json_float),
        "angleMax": ("angle_max", _json_float),
        "angleWidth": ("angle_width", _json_int),
        "angleHeight": ("angle_height", _json_int),
        "angleUnit": ("angle_unit", _json_str),
    }

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for key, (attr, _) in self._JSON.items()}

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        _apply(self, data, self._JSON)


@dataclass
class UIConfig:
    """Display formatting, window sizes and gauge settings."""

    decimal_places: int = 3
    float_comparison_epsilon: float = 0.001
    ui_update_delay_ms: int = 10

    default_window_width: int = 1200
    default_window_height: int = 800
    min_window_width: int = 800
    min_window_height: int = 600

    gauge: GaugeConfig = field(default_factory=GaugeConfig)

    _JSON: ClassVar[dict[str, tuple[str, Any]]] = {
        "decimalPlaces": ("decimal_places", _json_int),
        "floatComparisonEpsilon": ("float_comparison_epsilon", _json_float),
        "uiUpdateDelayMs": ("ui_update_delay_ms", _json_int),
        "defaultWindowWidth": ("default_window_width", _json_int),
        "defaultWindowHeight": ("default_window_height", _json_int),
        "minWindowWidth": ("min_window_width", _json_int),
        "minWindowHeight": ("min_window_height", _json_int),
    }

    def to_dict(self) -> dict[str, Any]:
        data = {key: getattr(self, attr) for key, (attr, _) in self._JSON.items()}
        data["gauge"] = self.gauge.to_dict()
        return data

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        _apply(self, data, self._JSON)
        if "gauge" in data:
            self.gauge.update_from_dict(_json_object(data["gauge"]))


class ConfigManager:
    """Holds every configuration section; one shared instance serves the application."""

    _instance: ClassVar[ConfigManager | None] = None

    def __init__(self) -> None:
        self.plot = PlotConfig()
        self.network = NetworkConfig()
        self.protocol = ProtocolConfig()
        self.ui = UIConfig()

    @classmethod
    def instance(cls) -> ConfigManager:
        """Return the shared configuration, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_from_file(self, filename: str | Path = DEFAULT_CONFIG_FILE) -> None:
        """Load settings from a JSON file.

        Keys missing from the file keep their current values. If the result
        does not validate, every section is reset to defaults and
        ConfigError is raised.
        """
        try:
            raw = Path(filename).read_bytes()
        except OSError as exc:
            logger.warning("cannot open config file %s; using defaults", filename)
            raise ConfigError(f"cannot open config file {filename}: {exc}") from exc

        try:
            document = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("config file JSON parse error: %s", exc)
            raise ConfigError(f"config file JSON parse error: {exc}") from exc

        self.update_from_dict(_json_object(document))

        try:
            self.validate()
        except ConfigError:
            logger.warning("config validation failed, restoring defaults")
            self.reset_to_defaults()
            raise

        logger.info("config loaded from %s", filename)

    def save_to_file(self, filename: str | Path = DEFAULT_CONFIG_FILE) -> None:
        """Write the settings, with version and generation time, as JSON."""
        root = self.to_dict()
        root["version"] = CONFIG_VERSION
        root["generated"] = datetime.now().isoformat(timespec="seconds")
        try:
            Path(filename).write_text(
                json.dumps(root, indent=4, ensure_ascii=False) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            logger.warning("cannot write config file %s", filename)
            raise ConfigError(f"cannot write config file {filename}: {exc}") from exc
        logger.info("config saved to %s", filename)

    def reset_to_defaults(self) -> None:
        """Restore every section to its default values."""
        self.plot = PlotConfig()
        self.network = NetworkConfig()
        self.protocol = ProtocolConfig()
        self.ui = UIConfig()
        logger.info("config reset to defaults")

    def validate(self) -> None:
        """Raise ConfigError if any setting is out of its allowed range."""
        checks = (
            (
                0 < self.plot.max_data_points <= 100000,
                f"invalid plot config: maxDataPoints = {self.plot.max_data_points}",
            ),
            (
                0 < self.plot.update_interval_ms <= 10000,
                f"invalid plot config: updateIntervalMs = {self.plot.update_interval_ms}",
            ),
            (
                0 < self.network.default_tcp_port <= 65535,
                f"invalid network config: defaultTcpPort = {self.network.default_tcp_port}",
            ),
            (
                self.protocol.imu_orientation_scale > 0,
                "invalid protocol config: imuOrientationScale = "
                f"{self.protocol.imu_orientation_scale}",
            ),
            (
                0 <= self.ui.decimal_places <= 10,
                f"invalid UI config: decimalPlaces = {self.ui.decimal_places}",
            ),
        )
        for ok, message in checks:
            if not ok:
                logger.warning(message)
                raise ConfigError(message)

    def describe(self) -> str:
        """Return a short human-readable summary of the key settings."""
        return (
            "配置概要:\n"
            f"- 图表: 最大数据点={self.plot.max_data_points}, "
            f"更新间隔={self.plot.update_interval_ms}ms\n"
            f"- 网络: TCP端口={self.network.default_tcp_port}, "
            f"UDP端口={self.network.default_udp_port}\n"
            f"- 协议: IMU缩放={format(self.protocol.imu_orientation_scale, 'g')}, "
            f"GPS缩放={format(self.protocol.gps_coordinate_scale, 'g')}\n"
            f"- UI: 小数位={self.ui.decimal_places}, "
            f"窗口大小={self.ui.default_window_width}x{self.ui.default_window_height}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the settings in their JSON file layout."""
        return {
            "plot": self.plot.to_dict(),
            "network": self.network.to_dict(),
            "protocol": self.protocol.to_dict(),
            "ui": self.ui.to_dict(),
        }

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        """Apply the sections and keys present in ``data``; others are left alone."""
        sections = {
            "plot": self.plot,
            "network": self.network,
            "protocol": self.protocol,
            "ui": self.ui,
        }
        for key, section in sections.items():
            if key in data:
                section.update_from_dict(_json_object(data[key]))