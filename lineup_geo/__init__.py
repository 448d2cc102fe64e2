"""Coordinate validation and repair for restaurant locations."""

__version__ = "0.1.0"
