"""Geographic coordinate validation and repair utilities.

This module classifies restaurant coordinates against the configured service
area and its known bodies of water, repairs coordinates that landed in water,
and wraps an injected geocoding function with water-aware retries.
"""

import logging
import math
import random
import time
from collections.abc import Callable, Mapping
from numbers import Real
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import ValidationError

from lineup_geo.core.geocoding.constants import NEW_ORLEANS_PROFILE
from lineup_geo.core.geocoding.errors import (
    CoordinateRejectedError,
    GeocodingFailedError,
    GeocodingInWaterError,
    InvalidAddressError,
)
from lineup_geo.models.geographic import (
    Address,
    CoordinateStatus,
    GeocodeResult,
    GeoPoint,
    RegionBounds,
    RegionProfile,
    WaterRegion,
)

if TYPE_CHECKING:
    from lineup_geo.core.config import Settings

logger = logging.getLogger(__name__)

# Accepts an Address, returns a GeocodeResult or a mapping with lat/lng keys
GeocodeFn = Callable[[Address], Any]

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0


class CoordinateValidator:
    """Classifies and repairs coordinates for one service area.

    The validator only reads its region profile. Randomness and sleeping are
    injected so batch runs can be reproduced and tests do not wait.
    """

    def __init__(
        self,
        profile: Optional[RegionProfile] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], None]] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ):
        """Initialize the validator.

        Args:
            profile: Region profile, defaults to New Orleans
            rng: Random source for the bounded search step
            sleep: Callable used for the backoff between geocoding attempts
            max_retries: Default number of geocoding attempts
            backoff_seconds: Default delay between geocoding attempts
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        if backoff_seconds < 0:
            raise ValueError(
                f"backoff_seconds must be non-negative, got {backoff_seconds}"
            )

        self.profile = profile or NEW_ORLEANS_PROFILE
        self.rng = rng or random.Random()  # nosec B311
        self.sleep = sleep or time.sleep
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CoordinateValidator":
        """Build a validator from application settings."""
        if settings.REGION_PROFILE_PATH:
            profile = RegionProfile.from_file(Path(settings.REGION_PROFILE_PATH))
            logger.info(f"Loaded region profile '{profile.name}'")
        else:
            profile = NEW_ORLEANS_PROFILE

        return cls(
            profile=profile,
            rng=random.Random(settings.REPAIR_SEED),  # nosec B311
            max_retries=settings.GEOCODING_MAX_RETRIES,
            backoff_seconds=settings.GEOCODING_BACKOFF_SECONDS,
        )

    @staticmethod
    def is_number(value: Any) -> bool:
        """Check for a finite real number; booleans do not count."""
        if not isinstance(value, Real) or isinstance(value, bool):
            return False
        try:
            return math.isfinite(value)
        except OverflowError:
            # Integers too large for a float are still finite
            return True

    def is_valid_coordinates(self, latitude: float, longitude: float) -> bool:
        """Check if coordinates are valid lat/long values."""
        return -90 <= latitude <= 90 and -180 <= longitude <= 180

    def is_in_bounds(
        self,
        latitude: float,
        longitude: float,
        bounds: Optional[RegionBounds] = None,
    ) -> bool:
        """Check if coordinates fall inside the service area (inclusive)."""
        return (bounds or self.profile.bounds).contains(latitude, longitude)

    def is_in_water(self, latitude: float, longitude: float) -> bool:
        """Check if coordinates fall inside any known water region (inclusive)."""
        return any(
            region.contains(latitude, longitude)
            for region in self.profile.water_regions
        )

    def water_region_for(
        self, latitude: float, longitude: float
    ) -> Optional[WaterRegion]:
        """Return the first water region containing the coordinates."""
        for region in self.profile.water_regions:
            if region.contains(latitude, longitude):
                return region
        return None

    def classify(self, latitude: Any, longitude: Any) -> CoordinateStatus:
        """Classify a coordinate, reporting the first reason it fails.

        Checks run in a fixed order: missing, type, bounds, water.
        """
        if latitude is None or longitude is None:
            return CoordinateStatus.MISSING

        if not (self.is_number(latitude) and self.is_number(longitude)):
            return CoordinateStatus.INVALID_TYPE

        if not self.is_valid_coordinates(latitude, longitude) or not self.is_in_bounds(
            latitude, longitude
        ):
            return CoordinateStatus.OUT_OF_BOUNDS

        if self.is_in_water(latitude, longitude):
            return CoordinateStatus.IN_WATER

        return CoordinateStatus.VALID

    def is_acceptable(self, latitude: float, longitude: float) -> bool:
        """Check that a repair candidate is dry and inside the service area."""
        return (
            self.is_valid_coordinates(latitude, longitude)
            and self.is_in_bounds(latitude, longitude)
            and not self.is_in_water(latitude, longitude)
        )

    def nudge(self, latitude: float, longitude: float) -> tuple[float, float]:
        """Apply the fixed north-west offset used to step off a shoreline."""
        tuning = self.profile.tuning
        return latitude + tuning.nudge_lat, longitude + tuning.nudge_lng

    def repair(
        self, latitude: Any, longitude: Any, city: Optional[str] = None
    ) -> GeoPoint:
        """Move a coordinate out of the water without re-geocoding.

        Valid coordinates are returned unchanged. Otherwise the fixed nudge is
        tried first, then the city-based relocation steps. This never raises;
        the profile's fallback point is the last resort.

        Args:
            latitude: Current latitude, possibly missing or malformed
            longitude: Current longitude, possibly missing or malformed
            city: Optional city name used to pick a search center

        Returns:
            GeoPoint: A coordinate that is not inside any water region
        """
        status = self.classify(latitude, longitude)
        if status == CoordinateStatus.VALID:
            return GeoPoint(latitude=float(latitude), longitude=float(longitude))

        if status in (
            CoordinateStatus.IN_WATER,
            CoordinateStatus.OUT_OF_BOUNDS,
        ) and self.is_valid_coordinates(latitude, longitude):
            lat, lng = self.nudge(latitude, longitude)
            if self.is_acceptable(lat, lng):
                logger.debug(
                    f"Nudged {latitude}, {longitude} to {lat:.6f}, {lng:.6f}"
                )
                return GeoPoint(latitude=lat, longitude=lng)

        return self.relocate(city)

    def relocate(self, city: Optional[str] = None) -> GeoPoint:
        """Pick a dry coordinate near a city center.

        Used directly for records whose stored coordinate is unusable.

        Args:
            city: Optional city name; unknown cities use the default center

        Returns:
            GeoPoint: A coordinate that is not inside any water region
        """
        tuning = self.profile.tuning
        center = self.profile.city_center(city)

        if center is not None:
            radius = tuning.search_radius
            for _ in range(tuning.search_attempts):
                lat = center.latitude + self.rng.uniform(-radius, radius)
                lng = center.longitude + self.rng.uniform(
                    -radius * tuning.search_west_factor,
                    radius * tuning.search_east_factor,
                )
                if self.is_acceptable(lat, lng):
                    return GeoPoint(latitude=lat, longitude=lng)
            logger.info(
                f"Random search around {city} exhausted after "
                f"{tuning.search_attempts} attempts"
            )

        candidate = self._shift_to_safe_zone(center or self.profile.default_center)
        if self.is_in_water(candidate.latitude, candidate.longitude):
            logger.warning(
                f"Shifted center for {city or 'default'} still in water, "
                "using fallback point"
            )
            return self.profile.fallback_point
        return candidate

    def _shift_to_safe_zone(self, start: GeoPoint) -> GeoPoint:
        """Shift a center away from the river and the northern lake."""
        tuning = self.profile.tuning
        lat, lng = start.latitude, start.longitude

        if tuning.river_band_min_lng < start.longitude < tuning.river_band_max_lng:
            lng -= tuning.river_shift_west
        elif start.longitude >= tuning.river_band_max_lng:
            lng -= tuning.east_of_river_shift_west

        if start.latitude > tuning.northern_lake_lat:
            lat -= tuning.northern_lake_shift_south

        return GeoPoint(latitude=lat, longitude=lng)

    def geocode_and_validate(
        self,
        address: Union[Address, Mapping[str, Any], None],
        geocode_fn: GeocodeFn,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ) -> GeocodeResult:
        """Geocode an address and make sure the result is on dry land.

        Args:
            address: Address to geocode
            geocode_fn: Provider call, e.g. ``GeocodingService.geocode_address``
            max_retries: Number of attempts, defaults to the validator's setting
            backoff_seconds: Delay between attempts

        Returns:
            GeocodeResult: Validated, possibly nudged, result

        Raises:
            InvalidAddressError: If the address is missing or empty
            GeocodingFailedError: If every provider call failed
            GeocodingInWaterError: If every attempt resolved inside water
            CoordinateRejectedError: If the result is out of bounds or malformed
        """
        address = self._coerce_address(address)
        if address is None or address.is_empty():
            raise InvalidAddressError("Address is empty")

        attempts = self.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError(f"max_retries must be at least 1, got {attempts}")
        delay = self.backoff_seconds if backoff_seconds is None else backoff_seconds
        query = address.to_query()

        for attempt in range(1, attempts + 1):
            is_last = attempt == attempts

            try:
                raw = geocode_fn(address)
                if raw is None:
                    raise GeocodingFailedError(f"No results found for {query}")
            except InvalidAddressError:
                raise
            except Exception as e:
                logger.warning(
                    f"Geocoding attempt {attempt}/{attempts} failed for "
                    f"'{query[:50]}': {e}"
                )
                if is_last:
                    raise GeocodingFailedError(
                        f"Could not geocode {query} after {attempts} attempts: {e}",
                        attempts=attempts,
                    ) from e
                self.sleep(delay)
                continue

            latitude, longitude, formatted_address, provider = self._extract(raw)
            status = self.classify(latitude, longitude)

            if status == CoordinateStatus.VALID:
                return GeocodeResult(
                    latitude=float(latitude),
                    longitude=float(longitude),
                    formatted_address=formatted_address,
                    provider=provider,
                )

            if status != CoordinateStatus.IN_WATER:
                raise CoordinateRejectedError(
                    f"Geocoded coordinates for {query} rejected: {status.value}",
                    status=status,
                    latitude=latitude,
                    longitude=longitude,
                )

            region = self.water_region_for(latitude, longitude)
            region_name = region.name if region else None
            logger.warning(
                f"Coordinates in water ({region_name}): {latitude}, {longitude}"
            )

            lat, lng = self.nudge(latitude, longitude)
            if self.is_acceptable(lat, lng):
                logger.info(f"Adjusted coordinates to avoid water: {lat}, {lng}")
                return GeocodeResult(
                    latitude=lat,
                    longitude=lng,
                    formatted_address=formatted_address,
                    provider=provider,
                )

            if is_last:
                raise GeocodingInWaterError(
                    f"Geocoded coordinates for {query} still in water "
                    f"after {attempts} attempts",
                    point=GeoPoint(latitude=latitude, longitude=longitude),
                    attempts=attempts,
                    region=region_name,
                )

            logger.info(f"Retrying geocode (attempt {attempt + 1}/{attempts})")
            self.sleep(delay)

        # Unreachable: the final attempt either returns or raises
        raise GeocodingFailedError(f"Could not geocode {query}", attempts=attempts)

    @staticmethod
    def _coerce_address(
        address: Union[Address, Mapping[str, Any], None],
    ) -> Optional[Address]:
        if address is None or isinstance(address, Address):
            return address
        if isinstance(address, Mapping):
            try:
                return Address.model_validate(dict(address))
            except ValidationError as e:
                raise InvalidAddressError(f"Invalid address object: {e}") from e
        raise InvalidAddressError(f"Invalid address object: {type(address).__name__}")

    @staticmethod
    def _extract(raw: Any) -> tuple[Any, Any, Optional[str], Optional[str]]:
        """Pull coordinates out of a provider result or a plain mapping."""
        if isinstance(raw, Mapping):

            def first(*keys: str) -> Any:
                return next(
                    (raw[key] for key in keys if raw.get(key) is not None), None
                )

            return (
                first("latitude", "lat"),
                first("longitude", "lng", "lon"),
                first("formatted_address", "formattedAddress"),
                raw.get("provider"),
            )
        return (
            getattr(raw, "latitude", None),
            getattr(raw, "longitude", None),
            getattr(raw, "formatted_address", None),
            getattr(raw, "provider", None),
        )
