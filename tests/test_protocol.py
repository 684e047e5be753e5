import struct
from functools import reduce
from operator import xor

import pytest

from vehicle_telemetry.protocol import (
    AuxFrameParser,
    AuxReading,
    BinaryFrameParser,
    ProtocolError,
    SensorData,
    bytes_to_scaled,
    checksum_ok,
    extract_sensor_data,
    parse_json_sensor,
)

SAMPLE_JSON = b"""
{
  "imu": {
    "orientation": {
      "x": -0.0014248318797614053,
      "y": 0.0006354897787555261,
      "z": -0.7253289002418698,
      "w": -0.6884007568143763
    },
    "angular_velocity": {
      "x": -0.001195745076984167,
      "y": 0.00018730969168245792,
      "z": -0.0005574872484430671
    },
    "linear_acceleration": {
      "x": -0.03387652337551117,
      "y": -0.016141166910529137,
      "z": -9.754646301269531
    }
  },
  "vehicle": {"motor_rpm_avg": 0, "steering_angle": 0, "linear_velocity": 0},
  "odometry": {"angular_z": 0, "position": {"x": 0, "y": 0}},
  "gps": {"latitude": 0, "longitude": 0},
  "timestamp": "2025-06-17T13:01:13.935770"
}
"""


def make_frame(payload, header=b"\xee\xff", footer=b"\xdd"):
    length = len(payload)
    checksum = reduce(xor, payload, length)
    return header + bytes([length]) + payload + bytes([checksum]) + footer


def gps_payload(lat_raw, lon_raw):
    payload = bytearray(40)
    struct.pack_into(">i", payload, 28, lat_raw)
    struct.pack_into(">i", payload, 36, lon_raw)
    return bytes(payload)


def test_bytes_to_scaled_positive_and_negative():
    assert bytes_to_scaled(struct.pack(">i", 1500), 0, 1000.0) == 1.5
    assert bytes_to_scaled(struct.pack(">i", -1500), 0, 1000.0) == -1.5


def test_bytes_to_scaled_offset():
    data = b"\x00\x00" + struct.pack(">i", 250) + b"\x00"
    assert bytes_to_scaled(data, 2, 100.0) == 2.5


def test_bytes_to_scaled_short_data_raises():
    with pytest.raises(ProtocolError):
        bytes_to_scaled(b"\x00\x01\x02", 0, 1.0)


def test_checksum_exactly_one_byte_matches():
    body = b"\xee\xff\x03\x11\x22\x33"
    matches = [c for c in range(256) if checksum_ok(body + bytes([c]) + b"\xdd")]
    assert len(matches) == 1


def test_checksum_detects_corrupted_payload():
    frame = bytearray(make_frame(b"\x10\x20\x30\x40"))
    assert checksum_ok(bytes(frame))
    frame[4] ^= 0x01
    assert not checksum_ok(bytes(frame))


def test_checksum_too_short():
    assert not checksum_ok(b"\xee\xff")


def test_extract_sensor_data_zero_payload():
    sample = extract_sensor_data(bytes(40), 2.5)
    assert sample == SensorData(timestamp=2.5)


def test_extract_sensor_data_gps():
    sample = extract_sensor_data(gps_payload(1234567000, -987654321), 1.0)
    assert sample.latitude == pytest.approx(1234567000 / 1e8)
    assert sample.longitude == pytest.approx(-987654321 / 1e8)
    assert sample.timestamp == 1.0


def test_extract_sensor_data_orientation_single_precision():
    payload = struct.pack(">i", 1500) + bytes(36)
    sample = extract_sensor_data(payload, 0.0)
    assert sample.orientation_x == 1.5


def test_extract_sensor_data_rpm_scale():
    payload = bytearray(40)
    struct.pack_into(">i", payload, 16, 125)
    sample = extract_sensor_data(bytes(payload), 0.0)
    assert sample.rpm == 12.5


def test_extract_sensor_data_short_payload_raises():
    with pytest.raises(ProtocolError):
        extract_sensor_data(bytes(39), 0.0)


def test_parse_json_sensor_sample_document():
    sample = parse_json_sensor(SAMPLE_JSON, 3.0)
    assert sample.orientation_z == -0.7253289002418698
    assert sample.orientation_w == -0.6884007568143763
    assert sample.linear_acc_y == -0.016141166910529137
    assert sample.lateral_vel == 0.0
    assert sample.timestamp == 3.0


def test_parse_json_sensor_vehicle_fields():
    doc = b'{"vehicle": {"motor_rpm_avg": 12, "steering_angle": -0.5, "linear_velocity": 2.25}}'
    sample = parse_json_sensor(doc, 0.0)
    assert (sample.rpm, sample.angle, sample.longitudinal_vel) == (12.0, -0.5, 2.25)


def test_parse_json_sensor_missing_sections_default_to_zero():
    sample = parse_json_sensor(b'{"gps": {"latitude": "north"}}', 7.0)
    assert sample == SensorData(timestamp=7.0)


@pytest.mark.parametrize("bad", [b"{not json", b"[1, 2, 3]", b""])
def test_parse_json_sensor_errors(bad):
    with pytest.raises(ProtocolError):
        parse_json_sensor(bad, 0.0)


def test_binary_parser_single_frame():
    parser = BinaryFrameParser(clock=lambda: 4.0)
    samples = parser.feed(make_frame(gps_payload(100000000, 200000000)))
    assert len(samples) == 1
    assert samples[0].latitude == 1.0
    assert samples[0].longitude == 2.0
    assert samples[0].timestamp == 4.0
    assert parser.pending == 0


def test_binary_parser_split_feed():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    frame = make_frame(gps_payload(50000000, 0))
    assert parser.feed(frame[:10]) == []
    assert parser.pending == 10
    samples = parser.feed(frame[10:])
    assert [s.latitude for s in samples] == [0.5]


def test_binary_parser_skips_garbage_before_header():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    samples = parser.feed(b"\x01\x02\x03" + make_frame(bytes(40)))
    assert len(samples) == 1


def test_binary_parser_bad_frame_then_good():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    bad = bytearray(make_frame(bytes(40)))
    bad[-2] ^= 0xFF
    good = make_frame(gps_payload(300000000, 0))
    samples = parser.feed(bytes(bad) + good)
    assert [s.latitude for s in samples] == [3.0]


def test_binary_parser_wrong_footer_dropped():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    assert parser.feed(make_frame(bytes(40), footer=b"\x00")) == []
    assert parser.pending == 0


def test_binary_parser_no_header_clears_buffer():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    assert parser.feed(b"\x00\x01\x02\x03\x04\x05") == []
    assert parser.pending == 0


def test_binary_parser_short_payload_dropped():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    assert parser.feed(make_frame(b"\x01\x02")) == []
    assert parser.pending == 0


def test_binary_parser_empty_feed():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    assert parser.feed(b"") == []


def test_binary_parser_multiple_frames():
    parser = BinaryFrameParser(clock=lambda: 0.0)
    stream = b"".join(make_frame(gps_payload(n * 100000000, 0)) for n in range(3))
    assert [s.latitude for s in parser.feed(stream)] == [0.0, 1.0, 2.0]


def aux_payload(values):
    payload = bytearray(14)
    for offset, raw in values.items():
        struct.pack_into(">i", payload, offset, raw)
    return bytes(payload)


def test_aux_parser_decodes_reading():
    parser = AuxFrameParser()
    payload = aux_payload({10: 250})
    readings = parser.feed(make_frame(payload, header=b"HL"))
    assert len(readings) == 1
    assert readings[0].pos_y == 2.5
    assert readings[0].front_distance == 0.0


def test_aux_parser_zero_payload():
    parser = AuxFrameParser()
    readings = parser.feed(make_frame(bytes(14), header=b"HL"))
    assert readings == [AuxReading(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)]


def test_aux_parser_skips_leading_garbage():
    parser = AuxFrameParser()
    frame = make_frame(aux_payload({0: 150}), header=b"HL")
    readings = parser.feed(b"\x00\xee" + frame)
    assert [r.front_distance for r in readings] == [1.5]


def test_aux_parser_zero_length_skipped():
    parser = AuxFrameParser()
    frame = make_frame(bytes(14), header=b"HL")
    readings = parser.feed(b"HL\x00" + frame)
    assert len(readings) == 1


def test_aux_parser_waits_for_rest():
    parser = AuxFrameParser()
    frame = make_frame(bytes(14), header=b"HL")
    assert parser.feed(frame[:8]) == []
    assert parser.pending == 8
    assert len(parser.feed(frame[8:])) == 1


def test_aux_parser_bad_checksum_dropped():
    parser = AuxFrameParser()
    frame = bytearray(make_frame(bytes(14), header=b"HL"))
    frame[-2] ^= 0x01
    assert parser.feed(bytes(frame)) == []


def test_aux_parser_empty_feed_clears():
    parser = AuxFrameParser()
    frame = make_frame(bytes(14), header=b"HL")
    parser.feed(frame[:6])
    assert parser.feed(b"") == []
    assert parser.pending == 0