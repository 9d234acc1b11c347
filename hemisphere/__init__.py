"""Hemisphere - weather radar wallpapers from map and weather tiles."""

__version__ = "0.1.0"
