"""Exceptions raised by the geocoding layer."""

from typing import Any, Optional

from lineup_geo.models.geographic import CoordinateStatus, GeoPoint


class GeocodingError(Exception):
    """Base class for geocoding failures."""


class InvalidAddressError(GeocodingError):
    """Raised when an address is missing or has no usable components."""


class GeocodingFailedError(GeocodingError):
    """Raised when the provider errors or returns no result."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class GeocodingInWaterError(GeocodingError):
    """Raised when every attempt resolved inside a water region."""

    def __init__(
        self,
        message: str,
        point: GeoPoint,
        attempts: int,
        region: Optional[str] = None,
    ):
        super().__init__(message)
        self.point = point
        self.attempts = attempts
        self.region = region


class CoordinateRejectedError(GeocodingError):
    """Raised when a geocoded coordinate is unusable for a reason other than water."""

    def __init__(
        self,
        message: str,
        status: CoordinateStatus,
        latitude: Any = None,
        longitude: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.latitude = latitude
        self.longitude = longitude
