"""Sensor wire protocols: framed binary streams and JSON documents."""

from __future__ import annotations

import json
import logging
import struct
import time
from dataclasses import dataclass
from functools import reduce
from operator import xor
from typing import Any, Callable, Mapping

from .config import ProtocolConfig

logger = logging.getLogger(__name__)

_DEFAULTS = ProtocolConfig()

IMU_ORIENTATION_SCALE = _DEFAULTS.imu_orientation_scale
IMU_ANGULAR_VEL_SCALE = _DEFAULTS.imu_angular_vel_scale
IMU_LINEAR_ACC_SCALE = _DEFAULTS.imu_linear_acc_scale
CAR_RPM_SCALE = _DEFAULTS.car_rpm_scale
CAR_ANGLE_SCALE = _DEFAULTS.car_angle_scale
GPS_COORDINATE_SCALE = _DEFAULTS.gps_coordinate_scale
ODOM_SCALE = 100.0

FRAME_HEADER = bytes((_DEFAULTS.frame_header1, _DEFAULTS.frame_header2))
FRAME_FOOTER = _DEFAULTS.frame_footer
MIN_FRAME_SIZE = _DEFAULTS.min_frame_size

AUX_FRAME_HEADER = b"\x48\x4c"
AUX_BUFFER_LIMIT = 10 * 1024 * 1024

SENSOR_PAYLOAD_SIZE = 40
AUX_PAYLOAD_SIZE = 14

_FRAME_OVERHEAD = 5  # header(2) + length(1) + checksum(1) + footer(1)


class ProtocolError(ValueError):
    """Raised when data cannot be decoded as a sensor message."""


def _as_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def _raw_int32(data: bytes, offset: int) -> int:
    if offset < 0 or len(data) < offset + 4:
        raise ProtocolError(f"need 4 bytes at offset {offset}, have {len(data)}")
    return struct.unpack_from(">i", data, offset)[0]


def bytes_to_scaled(data: bytes, offset: int, scale: float) -> float:
    """Read a big-endian signed 32-bit integer at ``offset`` and divide it by ``scale``."""
    return _raw_int32(data, offset) / scale


def _bytes_to_scaled_single(data: bytes, offset: int, scale: float) -> float:
    """Like bytes_to_scaled, but computed in single precision."""
    raw = _as_float32(float(_raw_int32(data, offset)))
    return _as_float32(raw / _as_float32(scale))


def checksum_ok(frame: bytes) -> bool:
    """Check a frame's XOR checksum over its length byte and payload."""
    if len(frame) < _FRAME_OVERHEAD:
        return False
    length = frame[2]
    payload = frame[3 : 3 + length]
    return reduce(xor, payload, length) == frame[-2]


@dataclass
class SensorData:
    """One sample of IMU, vehicle, odometry and GPS readings."""

    orientation_x: float = 0.0
    orientation_y: float = 0.0
    orientation_z: float = 0.0
    orientation_w: float = 0.0
    angular_vel_x: float = 0.0
    angular_vel_y: float = 0.0
    linear_acc_x: float = 0.0
    linear_acc_y: float = 0.0
    rpm: float = 0.0
    angle: float = 0.0
    longitudinal_vel: float = 0.0
    lateral_vel: float = 0.0
    odom_x: float = 0.0
    odom_y: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    timestamp: float = 0.0


@dataclass(frozen=True)
class AuxReading:
    """One sample from the auxiliary stream."""

    front_distance: float
    linear_velocity: float
    angular_z: float
    driver_state: float
    pos_x: float
    pos_y: float


def extract_sensor_data(payload: bytes, timestamp: float) -> SensorData:
    """Decode the payload of a sensor frame."""
    if len(payload) < SENSOR_PAYLOAD_SIZE:
        raise ProtocolError(
            f"sensor payload needs {SENSOR_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )

    def single(offset: int, scale: float) -> float:
        return _bytes_to_scaled_single(payload, offset, scale)

    return SensorData(
        orientation_x=single(0, IMU_ORIENTATION_SCALE),
        orientation_y=single(2, IMU_ORIENTATION_SCALE),
        orientation_z=single(4, IMU_ORIENTATION_SCALE),
        orientation_w=single(6, IMU_ORIENTATION_SCALE),
        angular_vel_x=single(8, IMU_ANGULAR_VEL_SCALE),
        angular_vel_y=single(10, IMU_ANGULAR_VEL_SCALE),
        linear_acc_x=single(12, IMU_LINEAR_ACC_SCALE),
        linear_acc_y=single(14, IMU_LINEAR_ACC_SCALE),
        rpm=single(16, CAR_RPM_SCALE),
        angle=single(18, CAR_ANGLE_SCALE),
        longitudinal_vel=single(20, CAR_ANGLE_SCALE),
        lateral_vel=single(22, CAR_ANGLE_SCALE),
        odom_x=single(24, ODOM_SCALE),
        odom_y=single(26, ODOM_SCALE),
        latitude=bytes_to_scaled(payload, 28, GPS_COORDINATE_SCALE),
        longitude=bytes_to_scaled(payload, 36, GPS_COORDINATE_SCALE),
        timestamp=timestamp,
    )


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _object(parent: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = parent.get(key)
    return value if isinstance(value, dict) else None


def parse_json_sensor(data: bytes | str, timestamp: float) -> SensorData:
    """Decode a JSON sensor document; absent or non-numeric fields read as 0."""
    try:
        document = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"JSON parse error: {exc}") from exc
    if not isinstance(document, dict):
        raise ProtocolError("JSON document is not an object")

    sample = SensorData(timestamp=timestamp)

    imu = _object(document, "imu")
    if imu is not None:
        orientation = _object(imu, "orientation")
        if orientation is not None:
            sample.orientation_x = _number(orientation.get("x"))
            sample.orientation_y = _number(orientation.get("y"))
            sample.orientation_z = _number(orientation.get("z"))
            sample.orientation_w = _number(orientation.get("w"))
        angular = _object(imu, "angular_velocity")
        if angular is not None:
            sample.angular_vel_x = _number(angular.get("x"))
            sample.angular_vel_y = _number(angular.get("y"))
        linear = _object(imu, "linear_acceleration")
        if linear is not None:
            sample.linear_acc_x = _number(linear.get("x"))
            sample.linear_acc_y = _number(linear.get("y"))

    vehicle = _object(document, "vehicle")
    if vehicle is not None:
        sample.rpm = _number(vehicle.get("motor_rpm_avg"))
        sample.angle = _number(vehicle.get("steering_angle"))
        sample.longitudinal_vel = _number(vehicle.get("linear_velocity"))
        sample.lateral_vel = 0.0

    odometry = _object(document, "odometry")
    if odometry is not None:
        position = _object(odometry, "position")
        if position is not None:
            sample.odom_x = _number(position.get("x"))
            sample.odom_y = _number(position.get("y"))

    gps = _object(document, "gps")
    if gps is not None:
        sample.latitude = _number(gps.get("latitude"))
        sample.longitude = _number(gps.get("longitude"))

    return sample


def _elapsed_clock() -> Callable[[], float]:
    start = time.monotonic()
    return lambda: time.monotonic() - start


class BinaryFrameParser:
    """Reassembles sensor frames (0xEE 0xFF, length, payload, XOR, 0xDD) from a stream."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._buffer = bytearray()
        self._clock = clock or _elapsed_clock()

    @property
    def pending(self) -> int:
        """Number of bytes waiting for the rest of a frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[SensorData]:
        """Add received bytes and return the samples of every complete valid frame."""
        if not data:
            logger.warning("received empty data")
            return []
        self._buffer.extend(data)
        samples: list[SensorData] = []
        while len(self._buffer) >= MIN_FRAME_SIZE:
            frame = self._next_frame()
            if frame is None:
                break
            if frame[-1] != FRAME_FOOTER or not checksum_ok(frame):
                logger.warning("frame check failed")
                continue
            try:
                samples.append(extract_sensor_data(frame[3:-2], self._clock()))
            except ProtocolError as exc:
                logger.warning("frame dropped: %s", exc)
        return samples

    def _next_frame(self) -> bytes | None:
        position = self._buffer.find(FRAME_HEADER)
        if position < 0:
            logger.warning("no frame header found, clearing buffer")
            self._buffer.clear()
            return None
        del self._buffer[:position]
        if len(self._buffer) < MIN_FRAME_SIZE:
            return None
        total = self._buffer[2] + _FRAME_OVERHEAD
        if len(self._buffer) < total:
            return None
        frame = bytes(self._buffer[:total])
        del self._buffer[:total]
        return frame


class AuxFrameParser:
    """Reassembles auxiliary frames (``HL``, length, payload, XOR, 0xDD) from a stream."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of bytes waiting for the rest of a frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[AuxReading]:
        """Add received bytes and return the readings of every complete valid frame.

        Empty input, or a buffer grown past its limit, discards everything buffered.
        """
        if not data or len(self._buffer) > AUX_BUFFER_LIMIT:
            self._buffer.clear()
            return []
        self._buffer.extend(data)
        readings: list[AuxReading] = []
        while len(self._buffer) >= _FRAME_OVERHEAD:
            if not self._buffer.startswith(AUX_FRAME_HEADER):
                del self._buffer[0]
                continue
            length = self._buffer[2]
            if length == 0:
                del self._buffer[:3]
                continue
            total = length + _FRAME_OVERHEAD
            if len(self._buffer) < total:
                break
            frame = bytes(self._buffer[:total])
            del self._buffer[:total]
            if frame[-1] != FRAME_FOOTER or not checksum_ok(frame):
                logger.debug("invalid aux frame dropped")
                continue
            payload = frame[3:-2]
            if len(payload) < AUX_PAYLOAD_SIZE:
                logger.debug("aux frame too short, dropped")
                continue
            readings.append(
                AuxReading(
                    front_distance=_bytes_to_scaled_single(payload, 0, 100.0),
                    linear_velocity=_bytes_to_scaled_single(payload, 2, 1000.0),
                    angular_z=_bytes_to_scaled_single(payload, 4, 1000.0),
                    driver_state=_bytes_to_scaled_single(payload, 6, 100.0),
                    pos_x=_bytes_to_scaled_single(payload, 8, 100.0),
                    pos_y=_bytes_to_scaled_single(payload, 10, 100.0),
                )
            )
        return readings