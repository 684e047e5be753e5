import asyncio
import json
import struct
from functools import reduce
from operator import xor

import pytest

from vehicle_telemetry.server import (
    TEST_MODE_PORT,
    ParseMode,
    TelemetryApp,
    main,
    parse_port,
)


def _frame(header: bytes, payload: bytes) -> bytes:
    length = len(payload)
    checksum = reduce(xor, payload, length)
    return header + bytes([length]) + payload + bytes([checksum, 0xDD])


def _sensor_payload(lat_raw: int, lon_raw: int) -> bytes:
    payload = bytearray(40)
    struct.pack_into(">i", payload, 28, lat_raw)
    struct.pack_into(">i", payload, 36, lon_raw)
    return bytes(payload)


def _json_doc(velocity=0.0, steering=0.0, lat=39.9042, lon=116.4074) -> bytes:
    return json.dumps(
        {
            "imu": {
                "orientation": {"x": 0.1, "y": 0.2, "z": 0.3, "w": 0.4},
                "angular_velocity": {"x": 0.01, "y": 0.02},
                "linear_acceleration": {"x": 1.0, "y": 2.0},
            },
            "vehicle": {
                "motor_rpm_avg": 12,
                "steering_angle": steering,
                "linear_velocity": velocity,
            },
            "odometry": {"position": {"x": 3.0, "y": 4.0}},
            "gps": {"latitude": lat, "longitude": lon},
        }
    ).encode()


def _app(**kwargs) -> TelemetryApp:
    return TelemetryApp(clock=lambda: 1.5, **kwargs)


@pytest.mark.parametrize("text, expected", [("8888", 8888), (" 7777 ", 7777), ("+5", 5)])
def test_parse_port_accepts_positive_integers(text, expected):
    assert parse_port(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "0", "-3", "1_000", "12.5", "99999999999"])
def test_parse_port_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_port(text)


def test_unknown_parse_mode_rejected():
    with pytest.raises(ValueError):
        TelemetryApp(parse_mode="XML")


def test_json_payload_updates_store_and_readouts():
    app = _app()
    samples = app.handle_payload(_json_doc(velocity=2.5, steering=0.3))
    assert len(samples) == 1
    assert len(app.store) == 1
    assert app.store.series("time") == (1.5,)
    assert app.readouts["longitudinal_vel"] == "2.500"
    assert app.readouts["odom_x"] == "3.000"
    assert app.readouts["distance"] == "5.000"
    assert app.readouts["lateral_vel"] == "0.000"


def test_json_payload_sets_gauges():
    app = _app()
    app.handle_payload(_json_doc(velocity=2.5, steering=0.3))
    assert app.speed_gauge.value == pytest.approx(2.5)
    assert app.angle_gauge.value == pytest.approx(-3.0)


def test_limits_apply_to_gauges_not_store():
    app = _app()
    app.handle_payload(_json_doc(velocity=9.0, steering=-7.0))
    assert app.store.series("longitudinal_vel") == (9.0,)
    assert app.speed_gauge.value == pytest.approx(6.0)
    assert app.angle_gauge.value == pytest.approx(50.0)


def test_gps_only_recorded_when_moved():
    app = _app()
    app.handle_payload(_json_doc())
    app.handle_payload(_json_doc())
    assert len(app.gps_table.rows) == 1
    assert app.gps_table.rows[0] == ("1.500", "39.90420000", "116.40740000")
    assert len(app.track.points) == 1
    app.handle_payload(_json_doc(lat=39.95))
    assert len(app.gps_table.rows) == 2
    assert len(app.track.points) == 2
    assert len(app.store) == 3


def test_first_track_point_is_canvas_centre():
    app = _app()
    app.handle_payload(_json_doc())
    assert app.track.points[0] == (app.track.width / 2.0, app.track.height / 2.0)


@pytest.mark.parametrize("data", [b"{not json", b"[1, 2]", b""])
def test_bad_json_is_ignored(data):
    app = _app()
    assert app.handle_payload(data) == []
    assert len(app.store) == 0


def test_binary_mode_decodes_frames():
    app = _app(parse_mode=ParseMode.BINARY)
    frame = _frame(b"\xee\xff", _sensor_payload(123456789, -98765432))
    samples = app.handle_payload(frame[:10])
    assert samples == []
    samples = app.handle_payload(frame[10:])
    assert len(samples) == 1
    assert samples[0].latitude == pytest.approx(123456789 / 1e8)
    assert samples[0].longitude == pytest.approx(-98765432 / 1e8)
    assert app.store.series("latitude") == (samples[0].latitude,)
    assert len(app.gps_table.rows) == 1


def test_binary_mode_drops_bad_checksum():
    app = _app(parse_mode="BINARY")
    frame = bytearray(_frame(b"\xee\xff", _sensor_payload(1, 2)))
    frame[-2] ^= 0xFF
    assert app.handle_payload(bytes(frame)) == []
    assert len(app.store) == 0


def test_aux_frame_updates_readouts():
    app = _app()
    payload = bytearray(14)
    struct.pack_into(">i", payload, 2, 1500)
    readings = app.handle_aux(_frame(b"HL", bytes(payload)))
    assert len(readings) == 1
    assert readings[0].linear_velocity == pytest.approx(1.5)
    assert app.aux_readouts["linear_velocity"] == "1.500"
    assert app.aux_readouts["angular_z"] == f"{readings[0].angular_z:.3f}"


def test_aux_garbage_leaves_readouts():
    app = _app()
    assert app.handle_aux(b"\x00\x01\x02\x03\x04\x05") == []
    assert app.aux_readouts["linear_velocity"] == "0.000"


def test_main_test_mode_returns_without_serving():
    assert main(["--port", str(TEST_MODE_PORT)]) == 0


def test_main_rejects_invalid_port():
    with pytest.raises(SystemExit) as info:
        main(["--port", "abc"])
    assert info.value.code == 2


@pytest.mark.asyncio
async def test_test_mode_serve_returns_immediately():
    app = TelemetryApp(test_mode=True)
    await asyncio.wait_for(app.serve("127.0.0.1"), timeout=1)
    assert app.bound_ports is None


@pytest.mark.asyncio
async def test_serve_receives_json_over_tcp():
    app = TelemetryApp(port=0, aux_port=0)
    task = asyncio.create_task(app.serve("127.0.0.1"))
    try:
        await asyncio.wait_for(app.ready.wait(), timeout=5)
        main_port, aux_port = app.bound_ports
        reader, writer = await asyncio.open_connection("127.0.0.1", main_port)
        writer.write(_json_doc(velocity=1.25))
        await writer.drain()

        payload = bytearray(14)
        struct.pack_into(">i", payload, 2, 2000)
        aux_reader, aux_writer = await asyncio.open_connection("127.0.0.1", aux_port)
        aux_writer.write(_frame(b"HL", bytes(payload)))
        await aux_writer.drain()

        for _ in range(100):
            if len(app.store) and app.aux_readouts["linear_velocity"] != "0.000":
                break
            await asyncio.sleep(0.02)
        assert len(app.store) == 1
        assert app.readouts["longitudinal_vel"] == "1.250"
        assert app.aux_readouts["linear_velocity"] == "2.000"
        writer.close()
        aux_writer.close()
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task