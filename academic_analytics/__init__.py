"""Academic risk and forecast analytics."""

__version__ = "1.0.0"
