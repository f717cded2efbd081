"""Two-level cache hierarchy timing simulator."""
__version__ = "0.1.0"
