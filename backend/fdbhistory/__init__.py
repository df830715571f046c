"""FDB History - historical MAC address to switch port tracking."""

__version__ = "1.0.0"
