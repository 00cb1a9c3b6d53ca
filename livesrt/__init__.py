"""Stream maps, relay managers, a byte ring buffer, a logger and an HTTP client for a live streaming relay."""

__version__ = "0.1.0"