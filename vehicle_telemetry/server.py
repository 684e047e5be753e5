"""Telemetry receiver: accepts sensor streams over TCP and keeps the display state."""

from __future__ import annotations

import argparse
import asyncio
import enum
import logging
import re
import time
from typing import Callable, Sequence

from .gauge import Gauge
from .mapcanvas import TrackCanvas
from .protocol import (
    AuxFrameParser,
    AuxReading,
    BinaryFrameParser,
    ProtocolError,
    SensorData,
    parse_json_sensor,
)
from .telemetry import (
    DECIMAL_PLACES,
    DisplayCache,
    GpsTable,
    TelemetryStore,
    apply_limits,
    gauge_values,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8888
DEFAULT_AUX_PORT = 7777
DEFAULT_HOST = "0.0.0.0"
TEST_MODE_PORT = 114514
MAP_DECIMAL_PLACES = 8
_READ_CHUNK = 65536
_INT32_MAX = 2**31 - 1

_READOUT_FIELDS = (
    "lateral_vel",
    "longitudinal_vel",
    "rpm",
    "angle",
    "odom_x",
    "odom_y",
    "distance",
)
_AUX_FIELDS = ("angular_z", "linear_velocity")


class ParseMode(str, enum.Enum):
    """How the main stream is decoded."""

    JSON = "JSON"
    BINARY = "BINARY"


def parse_port(text: str) -> int:
    """Parse a port number typed by the user; raise ValueError unless it is a positive integer."""
    stripped = text.strip()
    if not re.fullmatch(r"[+-]?\d+", stripped):
        raise ValueError(f"invalid port number: {text!r}")
    port = int(stripped)
    if port <= 0 or port > _INT32_MAX:
        raise ValueError(f"invalid port number: {text!r}")
    return port


def _elapsed_clock() -> Callable[[], float]:
    start = time.monotonic()
    return lambda: time.monotonic() - start


class TelemetryApp:
    """Decodes incoming sensor data and keeps plots, gauges, map and tables up to date."""

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        test_mode: bool = False,
        aux_port: int = DEFAULT_AUX_PORT,
        parse_mode: ParseMode | str = ParseMode.JSON,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.port = port
        self.aux_port = aux_port
        self.test_mode = test_mode
        self.parse_mode = ParseMode(parse_mode)
        self._clock = clock or _elapsed_clock()

        self.store = TelemetryStore()
        self.display = DisplayCache()
        self.gps_table = GpsTable()
        self.speed_gauge = Gauge(-5, 5, -3, 3, 1, 0, "m/s", 480, 420)
        self.angle_gauge = Gauge(-6, 6, -4, 4, 1, 0, "degrees", 300, 240)
        self.track = TrackCanvas()
        self.track.set_high_precision_mode(True, MAP_DECIMAL_PLACES)
        self.track.show_grid = True

        zero = f"{0.0:.{DECIMAL_PLACES}f}"
        self.readouts: dict[str, str] = {name: zero for name in _READOUT_FIELDS}
        self.aux_readouts: dict[str, str] = {name: zero for name in _AUX_FIELDS}

        self._binary = BinaryFrameParser(self._clock)
        self._aux = AuxFrameParser()
        self.ready = asyncio.Event()
        self.bound_ports: tuple[int, int] | None = None

    def handle_payload(self, data: bytes) -> list[SensorData]:
        """Decode data from the main stream and apply every sample; return the samples."""
        if not data:
            logger.warning("received empty data")
            return []
        if self.parse_mode is ParseMode.JSON:
            try:
                samples = [parse_json_sensor(data, self._clock())]
            except ProtocolError as exc:
                logger.warning("%s", exc)
                return []
        else:
            samples = self._binary.feed(data)
        for sample in samples:
            self._apply(sample)
        return samples

    def _apply(self, sample: SensorData) -> None:
        self.readouts.update(
            self.display.update(
                sample.lateral_vel,
                sample.longitudinal_vel,
                sample.rpm,
                sample.angle,
                sample.odom_x,
                sample.odom_y,
            )
        )
        need_gps = self.store.should_update_gps(sample.latitude, sample.longitude)
        self.store.record(sample)
        speed, angle = gauge_values(apply_limits(sample))
        self.speed_gauge.set_value(speed)
        self.angle_gauge.set_value(angle)
        if need_gps:
            self.track.add_point(sample.latitude, sample.longitude)
            self.gps_table.add(self.store.series("time")[-1], sample.latitude, sample.longitude)

    def handle_aux(self, data: bytes) -> list[AuxReading]:
        """Decode data from the auxiliary stream and update its read-outs."""
        readings = self._aux.feed(data)
        for reading in readings:
            self.aux_readouts["angular_z"] = f"{reading.angular_z:.3f}"
            self.aux_readouts["linear_velocity"] = f"{reading.linear_velocity:.3f}"
        return readings

    def _client_handler(self, handle: Callable[[bytes], object]):
        async def on_client(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            peer = writer.get_extra_info("peername")
            logger.info("client connected: %s", peer)
            try:
                while chunk := await reader.read(_READ_CHUNK):
                    handle(chunk)
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass

        return on_client

    async def serve(self, host: str = DEFAULT_HOST) -> None:
        """Listen on the main and auxiliary ports until cancelled; nothing in test mode."""
        if self.test_mode:
            logger.info("test mode: network services not started")
            return
        main_server = await asyncio.start_server(
            self._client_handler(self.handle_payload), host, self.port
        )
        logger.info("main TCP server listening on port %s", self.port)
        try:
            aux_server = await asyncio.start_server(
                self._client_handler(self.handle_aux), host, self.aux_port
            )
        except OSError:
            logger.error("auxiliary server failed to start on port %s", self.aux_port)
            main_server.close()
            await main_server.wait_closed()
            raise
        logger.info("auxiliary TCP server listening on port %s", self.aux_port)
        self.bound_ports = (
            main_server.sockets[0].getsockname()[1],
            aux_server.sockets[0].getsockname()[1],
        )
        self.ready.set()
        async with main_server, aux_server:
            await asyncio.gather(main_server.serve_forever(), aux_server.serve_forever())


def main(argv: Sequence[str] | None = None) -> int:
    """Run the telemetry receiver from the command line."""
    parser = argparse.ArgumentParser(description="Receive and display vehicle telemetry.")
    parser.add_argument("--port", default=str(DEFAULT_PORT), help="main TCP port")
    parser.add_argument("--aux-port", default=str(DEFAULT_AUX_PORT), help="auxiliary TCP port")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ParseMode],
        default=ParseMode.JSON.value,
        help="how the main stream is decoded",
    )
    parser.add_argument("--log-level", default="INFO", help="logging level")
    args = parser.parse_args(argv)

    try:
        port = parse_port(args.port)
        aux_port = parse_port(args.aux_port)
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(level=args.log_level.upper())
    app = TelemetryApp(
        port=port,
        test_mode=port == TEST_MODE_PORT,
        aux_port=aux_port,
        parse_mode=args.mode,
    )
    try:
        asyncio.run(app.serve(args.host))
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("cannot start server: %s", exc)
        return 1
    return 0