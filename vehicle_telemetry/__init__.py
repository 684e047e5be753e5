"""Receive and decode vehicle telemetry: sensor protocols, series, gauges and GPS tracks."""

__version__ = "0.1.0"