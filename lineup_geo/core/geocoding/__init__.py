"""Unified geocoding module for the application.

This package provides centralized geocoding functionality including:
- Coordinate classification against the service area and water regions
- Repair of coordinates that landed in water
- Geocoding service with multiple providers
- Batch correction of stored restaurant coordinates
"""

# Import main components for easy access
from lineup_geo.core.geocoding.constants import NEW_ORLEANS_PROFILE
from lineup_geo.core.geocoding.corrector import CoordinateCorrector
from lineup_geo.core.geocoding.errors import (
    CoordinateRejectedError,
    GeocodingError,
    GeocodingFailedError,
    GeocodingInWaterError,
    InvalidAddressError,
)
from lineup_geo.core.geocoding.service import (
    GeocodingService,
    get_geocoding_service,
)
from lineup_geo.core.geocoding.validator import CoordinateValidator

__all__ = [
    "CoordinateCorrector",
    "CoordinateRejectedError",
    "CoordinateValidator",
    "GeocodingError",
    "GeocodingFailedError",
    "GeocodingInWaterError",
    "GeocodingService",
    "InvalidAddressError",
    "NEW_ORLEANS_PROFILE",
    "get_geocoding_service",
]
