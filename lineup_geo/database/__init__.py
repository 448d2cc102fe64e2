"""Persistence adapter for restaurant coordinates."""
