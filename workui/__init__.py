"""HTTP management surface for a gocraft/work style Redis job store."""

__version__ = "0.1.0"
