"""Prometheus exporter for nasne network recorders: client, collector and HTTP command."""

__version__ = "0.1.0"
__all__ = ["__version__"]