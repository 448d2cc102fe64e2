"""Geocoding service backed by geopy providers.

This module provides the production ``geocode_fn`` for the coordinate
validator:
- Supports multiple geocoding providers (Nominatim, ArcGIS, Google)
- Implements caching to reduce API calls
- Enforces rate limiting to respect API quotas
- Falls back to the remaining providers when the primary one fails
"""

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import ArcGIS, GoogleV3, Nominatim
from pydantic import ValidationError
from redis import Redis

from lineup_geo.core.config import GEOCODING_PROVIDERS, Settings
from lineup_geo.core.geocoding.errors import GeocodingFailedError, InvalidAddressError
from lineup_geo.models.geographic import Address, GeocodeResult

logger = logging.getLogger(__name__)


class GeocodingService:
    """Geocoding service with caching, rate limiting and provider fallback."""

    def __init__(self, config: Optional[Settings] = None):
        """Initialize the geocoding service.

        Args:
            config: Application settings, defaults to the global settings
        """
        if config is None:
            from lineup_geo.core.config import settings as config

        self.config = config
        self.primary_provider = config.GEOCODING_PROVIDER
        self.enable_fallback = config.GEOCODING_ENABLE_FALLBACK
        self.cache_ttl = config.GEOCODING_CACHE_TTL
        self.max_retries = config.GEOCODING_MAX_RETRIES
        self.timeout = config.GEOCODING_TIMEOUT

        # Caching configuration
        self.redis_client = None
        if config.REDIS_URL:
            try:
                self.redis_client = Redis.from_url(
                    config.REDIS_URL, decode_responses=True
                )
                self.redis_client.ping()
                logger.info("Redis caching enabled for geocoding")
            except Exception as e:
                logger.warning(f"Redis connection failed, caching disabled: {e}")
                self.redis_client = None

        # Initialize geocoders
        self.geocoders: dict[str, Callable[..., Any]] = {}
        for provider in GEOCODING_PROVIDERS:
            geocode = self._init_provider(provider)
            if geocode is not None:
                self.geocoders[provider] = geocode

    def _init_provider(self, provider: str) -> Optional[Callable[..., Any]]:
        """Create a rate-limited geocode callable for a provider.

        Args:
            provider: Provider name

        Returns:
            Rate-limited geocode callable, or None if the provider is unavailable
        """
        try:
            if provider == "nominatim":
                # Nominatim usage policy: 1 request per second
                geocoder = Nominatim(
                    user_agent=self.config.NOMINATIM_USER_AGENT, timeout=self.timeout
                )
                delay = self.config.NOMINATIM_RATE_LIMIT
            elif provider == "arcgis":
                geocoder = ArcGIS(timeout=self.timeout)
                delay = self.config.GEOCODING_RATE_LIMIT
            elif provider == "google":
                if not self.config.GOOGLE_GEOCODING_API_KEY:
                    logger.info("Google geocoder disabled (no API key configured)")
                    return None
                geocoder = GoogleV3(
                    api_key=self.config.GOOGLE_GEOCODING_API_KEY, timeout=self.timeout
                )
                delay = self.config.GEOCODING_RATE_LIMIT
            else:
                logger.warning(f"Unknown geocoding provider: {provider}")
                return None
        except Exception as e:
            logger.error(f"Failed to initialize {provider} geocoder: {e}")
            return None

        logger.info(f"{provider} geocoder initialized with {delay}s rate limit")
        return RateLimiter(
            geocoder.geocode,
            min_delay_seconds=delay,
            max_retries=self.max_retries,
            error_wait_seconds=5,
            return_value_on_exception=None,
        )

    def _get_cache_key(self, query: str, provider: str) -> str:
        """Generate cache key for geocoding result.

        Args:
            query: Address string to geocode
            provider: Geocoding provider name

        Returns:
            Cache key string
        """
        # Not security-critical, SHA256 only avoids scanner noise
        query_hash = hashlib.sha256(query.lower().encode()).hexdigest()
        return f"geocode:{provider}:{query_hash}"

    def _get_cached_result(
        self, query: str, provider: str
    ) -> Optional[GeocodeResult]:
        """Get cached geocoding result if available."""
        if not self.redis_client:
            return None

        try:
            cached = self.redis_client.get(self._get_cache_key(query, provider))
            if cached:
                data = json.loads(cached)
                logger.debug(f"Cache hit for address: {query[:50]}...")
                return GeocodeResult(
                    latitude=data["lat"],
                    longitude=data["lon"],
                    formatted_address=data.get("formatted_address"),
                    provider=provider,
                )
        except Exception as e:
            logger.warning(f"Cache retrieval error: {e}")

        return None

    def _cache_result(self, query: str, result: GeocodeResult) -> None:
        """Cache geocoding result."""
        if not self.redis_client or not result.provider:
            return

        try:
            cache_value = {
                "lat": result.latitude,
                "lon": result.longitude,
                "formatted_address": result.formatted_address,
            }
            self.redis_client.setex(
                self._get_cache_key(query, result.provider),
                self.cache_ttl,
                json.dumps(cache_value),
            )
            logger.debug(f"Cached result for address: {query[:50]}...")
        except Exception as e:
            logger.warning(f"Cache storage error: {e}")

    def _geocode_with(self, provider: str, query: str) -> Optional[GeocodeResult]:
        """Geocode using a single provider.

        Args:
            provider: Provider name
            query: Address to geocode

        Returns:
            GeocodeResult or None if the provider failed
        """
        geocode = self.geocoders.get(provider)
        if geocode is None:
            return None

        try:
            location = geocode(query)
            if location:
                return GeocodeResult(
                    latitude=location.latitude,
                    longitude=location.longitude,
                    formatted_address=location.address,
                    provider=provider,
                )
        except (GeocoderTimedOut, GeocoderUnavailable, GeocoderServiceError) as e:
            logger.warning(f"{provider} geocoding failed for '{query[:50]}...': {e}")
        except Exception as e:
            logger.error(f"Unexpected {provider} error for '{query[:50]}...': {e}")

        return None

    def provider_order(self, force_provider: Optional[str] = None) -> list[str]:
        """Providers to try, primary first."""
        if force_provider:
            return [force_provider]
        order = [self.primary_provider]
        if self.enable_fallback:
            order.extend(p for p in self.geocoders if p != self.primary_provider)
        return order

    def geocode(
        self, query: str, force_provider: Optional[str] = None
    ) -> Optional[GeocodeResult]:
        """Geocode a single-line address.

        Args:
            query: Address string to geocode
            force_provider: Optional provider to use exclusively

        Returns:
            GeocodeResult or None if geocoding fails
        """
        if not query or not query.strip():
            logger.warning("Empty address provided for geocoding")
            return None

        for index, provider in enumerate(self.provider_order(force_provider)):
            cached = self._get_cached_result(query, provider)
            if cached:
                return cached

            if index > 0:
                logger.info(f"Trying fallback provider {provider}")

            result = self._geocode_with(provider, query)
            if result:
                self._cache_result(query, result)
                return result

        logger.warning(f"Failed to geocode address: {query[:100]}...")
        return None

    def geocode_address(
        self, address: Union[Address, Mapping[str, Any]]
    ) -> GeocodeResult:
        """Geocode a structured address.

        Matches the ``geocode_fn`` contract of ``CoordinateValidator``.

        Args:
            address: Address to geocode

        Returns:
            GeocodeResult from the first provider that answered

        Raises:
            InvalidAddressError: If the address has no usable components
            GeocodingFailedError: If no provider returned a result
        """
        if not isinstance(address, Address):
            if not isinstance(address, Mapping):
                raise InvalidAddressError(
                    f"Invalid address object: {type(address).__name__}"
                )
            try:
                address = Address.model_validate(dict(address))
            except ValidationError as e:
                raise InvalidAddressError(f"Invalid address object: {e}") from e
        if address.is_empty():
            raise InvalidAddressError("Address is empty")

        query = address.to_query()
        result = self.geocode(query)
        if result is None:
            raise GeocodingFailedError(f"No results found for address: {query}")
        return result


# Singleton instance
_geocoding_service = None


def get_geocoding_service() -> GeocodingService:
    """Get or create the singleton geocoding service instance.

    Returns:
        GeocodingService instance
    """
    global _geocoding_service
    if _geocoding_service is None:
        _geocoding_service = GeocodingService()
    return _geocoding_service
