"""Interactive operator console for exercising a TCP server."""

__version__ = "1.0.0"
