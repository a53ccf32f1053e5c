"""URL admission control and load coordination for the map viewer."""

__version__ = "0.1.0"
