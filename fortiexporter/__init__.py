"""Prometheus exporter that probes FortiGate devices through the FortiOS REST API."""

__version__ = "0.1.0"