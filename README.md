# vehicle-telemetry

Receive and decode live telemetry from a vehicle: IMU orientation, angular
velocity and linear acceleration, wheel speed, steering angle, odometry and
GPS position.

The package decodes two wire formats, keeps bounded time series ready for
plotting, works out the geometry of round dial gauges (and can draw them as
SVG), and tracks a GPS trail on a local canvas. It has no third-party
dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running the receiver

```
vehicle-telemetry
```

starts two TCP servers: the main sensor stream on port 8888 and the
auxiliary stream on port 7777. Every chunk received is decoded and applied to
the receiver's state (time series, read-out texts, gauges, GPS track and GPS
table) held by a `TelemetryApp`. Options:

| option        | default   | meaning                                   |
|---------------|-----------|-------------------------------------------|
| `--port`      | `8888`    | main TCP port                             |
| `--aux-port`  | `7777`    | auxiliary TCP port                        |
| `--host`      | `0.0.0.0` | address to listen on                      |
| `--mode`      | `JSON`    | main stream decoding: `JSON` or `BINARY`  |
| `--log-level` | `INFO`    | logging level                             |

Ports must be positive integers. Giving `--port 114514` selects test mode,
in which no network service is started. Stop the receiver with Ctrl-C. It
exits with status 1 if a port cannot be bound.

## Wire formats

### Main sensor stream

In `JSON` mode each received chunk is parsed as one JSON object with
optional sections; missing or non-numeric fields read as 0:

```json
{
  "imu": {
    "orientation": {"x": 0.0, "y": 0.0, "z": -0.72, "w": -0.69},
    "angular_velocity": {"x": 0.001, "y": 0.0002},
    "linear_acceleration": {"x": -0.03, "y": -0.016}
  },
  "vehicle": {"motor_rpm_avg": 0, "steering_angle": 0, "linear_velocity": 0},
  "odometry": {"position": {"x": 0, "y": 0}},
  "gps": {"latitude": 0, "longitude": 0}
}
```

In `BINARY` mode the stream carries frames, in any chunking:

| bytes      | meaning                                          |
|------------|--------------------------------------------------|
| `EE FF`    | header                                           |
| 1 byte     | payload length N                                 |
| N bytes    | payload (at least 40 bytes)                      |
| 1 byte     | checksum: the length byte XOR every payload byte |
| `DD`       | footer                                           |

Values are read as big-endian signed 32-bit integers divided by a scale
factor (1000 for IMU values, steering angle and velocities, 10 for wheel
speed, 100 for odometry, 1e8 for latitude and longitude). Bytes before a
header are discarded; frames with a bad checksum or footer are skipped and
decoding continues with the next one.

### Auxiliary stream

Frames with the header `48 4C` (`HL`) and the same length, checksum and
footer rules, with a payload of at least 14 bytes carrying front distance,
linear velocity, angular rate, driver state and position. Empty input, or a
buffer grown past 10 MiB, discards everything buffered.

## Library use

- `vehicle_telemetry.config`: `ConfigManager` (shared through
  `ConfigManager.instance()`) holds `PlotConfig`, `NetworkConfig`,
  `ProtocolConfig` and `UIConfig` with its `GaugeConfig`. It loads and saves
  JSON files (`load_from_file`, `save_to_file`), converts to and from dicts,
  validates its values, resets to defaults and gives a short text summary
  (`describe`). Unreadable files and invalid settings raise `ConfigError`;
  an invalid file also resets every section to defaults.
- `vehicle_telemetry.protocol`: `BinaryFrameParser` and `AuxFrameParser`
  accept bytes through `feed` and return decoded `SensorData` and
  `AuxReading` values; `parse_json_sensor` decodes a JSON payload and raises
  `ProtocolError` on bad input; `extract_sensor_data`, `checksum_ok` and
  `bytes_to_scaled` expose the frame primitives.
- `vehicle_telemetry.telemetry`: `TelemetryStore` keeps the last 1000 values
  of every series and gives the x-axis range of a plot window;
  `DisplayCache` returns formatted text for the read-outs that changed by
  more than 0.001; `GpsTable` keeps the 14 most recent GPS rows;
  `apply_limits` clamps speed and steering angle, and `gauge_values` gives
  the two gauge readings.
- `vehicle_telemetry.gauge`: `Gauge` computes the ticks, labels, needle
  angle and warning state of a 240-degree dial and renders it with
  `render_svg`.
- `vehicle_telemetry.mapcanvas`: `TrackCanvas` maps latitude and longitude to
  canvas coordinates around the first point, rescales as the track grows,
  lists grid lines, and converts canvas positions back to coordinates.
- `vehicle_telemetry.framebuffer`: `FrameAssembler` cuts a raw BGR24 byte
  stream into whole RGB frames, keeping at most the newest 30 frames of data.
- `vehicle_telemetry.server`: `TelemetryApp` ties these together;
  `parse_port` checks a typed port number.

```python
from vehicle_telemetry.config import ConfigManager

config = ConfigManager.instance()
config.load_from_file("config.json")
print(config.describe())
```

## What it does not do

The receiver has no window or screen: it keeps plot series, read-out texts,
gauge values and the GPS track in memory but draws nothing and prints no
summary of the data. Gauges can be written out as SVG only through the
library. The package does not receive or decode video itself;
`FrameAssembler` only splits raw frame bytes handed to it. Nothing is
stored on disk apart from configuration files saved on request.