"""Batch correction of stored restaurant coordinates.

This module audits the restaurant table, repairs coordinates that are
missing, malformed, outside the service area or in water, and re-geocodes
restaurants from their addresses.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from lineup_geo.core.geocoding.errors import GeocodingError, GeocodingInWaterError
from lineup_geo.core.geocoding.validator import CoordinateValidator, GeocodeFn
from lineup_geo.core.logging import get_batch_logger, get_logger
from lineup_geo.models.geographic import Address, CoordinateStatus, GeoPoint

logger = get_logger()

SELECT_RESTAURANTS = text(
    """
    SELECT
        id,
        name,
        latitude,
        longitude,
        address_line1,
        city,
        state,
        zip,
        geocoded_address
    FROM restaurant
    ORDER BY name
"""
)

UPDATE_COORDINATES = text(
    """
    UPDATE restaurant
    SET latitude = :lat,
        longitude = :lng,
        geocoded_address = COALESCE(:geocoded_address, geocoded_address),
        coordinates_updated_at = CURRENT_TIMESTAMP,
        updated_at = CURRENT_TIMESTAMP
    WHERE id = :id
"""
)


class CoordinateCorrector:
    """Audits and corrects restaurant coordinates.

    The session, validator and geocoding function are all passed in; the
    corrector keeps no connection state of its own.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        validator: Optional[CoordinateValidator] = None,
        geocode_fn: Optional[GeocodeFn] = None,
    ):
        """Initialize the coordinate corrector.

        Args:
            db: Database session (optional)
            validator: Coordinate validator, defaults to the New Orleans profile
            geocode_fn: Geocoding function, defaults to the shared service
        """
        self.db = db
        self.validator = validator or CoordinateValidator()
        self._geocode_fn = geocode_fn

    @property
    def geocode_fn(self) -> GeocodeFn:
        """Geocoding function, resolved lazily to avoid network setup."""
        if self._geocode_fn is None:
            from lineup_geo.core.geocoding.service import get_geocoding_service

            self._geocode_fn = get_geocoding_service().geocode_address
        return self._geocode_fn

    def fetch_restaurants(self) -> List[Dict[str, Any]]:
        """Load every restaurant with its coordinates and address."""
        if not self.db:
            logger.warning("No database session available")
            return []

        return [
            {
                "id": row.id,
                "name": row.name,
                "latitude": row.latitude,
                "longitude": row.longitude,
                "address": Address(
                    line1=row.address_line1,
                    city=row.city,
                    state=row.state,
                    zip=row.zip,
                ),
                "geocoded_address": row.geocoded_address,
            }
            for row in self.db.execute(SELECT_RESTAURANTS)
        ]

    def audit(self) -> Dict[str, Any]:
        """Classify every stored coordinate.

        Returns:
            Totals per status and the list of restaurants that need fixing
        """
        restaurants = self.fetch_restaurants()
        counts: Counter[str] = Counter()
        issues = []

        for restaurant in restaurants:
            lat, lng = restaurant["latitude"], restaurant["longitude"]
            status = self.validator.classify(lat, lng)
            counts[status.value] += 1
            if status == CoordinateStatus.VALID:
                continue

            region = None
            if status == CoordinateStatus.IN_WATER:
                water = self.validator.water_region_for(lat, lng)
                region = water.name if water else None

            issues.append(
                {
                    "id": restaurant["id"],
                    "name": restaurant["name"],
                    "latitude": lat,
                    "longitude": lng,
                    "city": restaurant["address"].city,
                    "status": status,
                    "water_region": region,
                }
            )

        logger.info(
            "coordinate_audit_completed",
            total=len(restaurants),
            invalid=len(issues),
        )
        return {
            "total": len(restaurants),
            "counts": {status.value: counts[status.value] for status in CoordinateStatus},
            "issues": issues,
        }

    def fix_invalid(self, dry_run: bool = True) -> Dict[str, Any]:
        """Repair every restaurant whose coordinate is not valid.

        Args:
            dry_run: If True, don't actually update the database

        Returns:
            Summary of corrections made or to be made
        """
        log = get_batch_logger("fix_invalid", dry_run=dry_run)
        issues = self.audit()["issues"]
        corrections = []
        failures = []

        for issue in issues:
            try:
                if issue["status"] in (
                    CoordinateStatus.IN_WATER,
                    CoordinateStatus.OUT_OF_BOUNDS,
                ):
                    point = self.validator.repair(
                        issue["latitude"], issue["longitude"], issue["city"]
                    )
                else:
                    point = self.validator.relocate(issue["city"])

                if not dry_run:
                    self._update_coordinates(issue["id"], point)

                corrections.append(
                    {
                        "id": issue["id"],
                        "name": issue["name"],
                        "status": issue["status"],
                        "old_lat": issue["latitude"],
                        "old_lng": issue["longitude"],
                        "new_lat": point.latitude,
                        "new_lng": point.longitude,
                    }
                )
            except Exception as e:
                if self.db and not dry_run:
                    self.db.rollback()
                log.error("coordinate_fix_failed", restaurant=issue["name"], error=str(e))
                failures.append({**issue, "error": str(e)})

        log.info(
            "coordinate_fix_completed",
            fixed=len(corrections),
            failed=len(failures),
        )
        return {
            "invalid_count": len(issues),
            "fixed_count": len(corrections),
            "failed_count": len(failures),
            "corrections": corrections,
            "failures": failures,
            "dry_run": dry_run,
        }

    def needs_geocoding(self, restaurant: Dict[str, Any]) -> bool:
        """Check whether a restaurant was never geocoded successfully.

        Records without a geocoded address, with missing or zero coordinates,
        or still sitting on the default center qualify.
        """
        lat, lng = restaurant["latitude"], restaurant["longitude"]
        if not restaurant.get("geocoded_address") or not lat or not lng:
            return True
        center = self.validator.profile.default_center
        return lat == center.latitude and lng == center.longitude

    def regeocode(
        self,
        only_failed: bool = False,
        dry_run: bool = False,
        fallback_to_repair: bool = False,
    ) -> Dict[str, Any]:
        """Re-geocode restaurants from their addresses.

        Args:
            only_failed: Only process restaurants that were never geocoded
            dry_run: If True, don't actually update the database
            fallback_to_repair: Repair results that stay in water instead of
                counting them as errors

        Returns:
            Summary of the run
        """
        log = get_batch_logger("regeocode", dry_run=dry_run)
        restaurants = self.fetch_restaurants()
        if only_failed:
            restaurants = [r for r in restaurants if self.needs_geocoding(r)]

        summary: Dict[str, Any] = {
            "total": len(restaurants),
            "fixed_count": 0,
            "repaired_count": 0,
            "skipped_count": 0,
            "in_water_before": 0,
            "error_count": 0,
            "errors": [],
            "dry_run": dry_run,
        }

        for index, restaurant in enumerate(restaurants, start=1):
            address: Address = restaurant["address"]
            name = restaurant["name"]

            if address.is_empty():
                log.info("restaurant_skipped_no_address", restaurant=name)
                summary["skipped_count"] += 1
                continue

            lat, lng = restaurant["latitude"], restaurant["longitude"]
            if self.validator.classify(lat, lng) == CoordinateStatus.IN_WATER:
                summary["in_water_before"] += 1

            log.info(
                "geocoding_restaurant",
                restaurant=name,
                position=f"{index}/{len(restaurants)}",
                query=address.to_query(),
            )

            try:
                result = self.validator.geocode_and_validate(address, self.geocode_fn)
            except GeocodingInWaterError as e:
                if not fallback_to_repair:
                    log.warning(
                        "geocoded_coordinates_in_water",
                        restaurant=name,
                        region=e.region,
                    )
                    summary["error_count"] += 1
                    summary["errors"].append({"id": restaurant["id"], "error": str(e)})
                    continue

                point = self.validator.repair(
                    e.point.latitude, e.point.longitude, address.city
                )
                if not dry_run:
                    self._update_coordinates(restaurant["id"], point)
                summary["repaired_count"] += 1
                continue
            except GeocodingError as e:
                log.error("geocoding_failed", restaurant=name, error=str(e))
                summary["error_count"] += 1
                summary["errors"].append({"id": restaurant["id"], "error": str(e)})
                continue

            if not dry_run:
                self._update_coordinates(
                    restaurant["id"], result, result.formatted_address
                )
            summary["fixed_count"] += 1

        log.info(
            "regeocode_completed",
            fixed=summary["fixed_count"],
            repaired=summary["repaired_count"],
            skipped=summary["skipped_count"],
            errors=summary["error_count"],
        )
        return summary

    def _update_coordinates(
        self,
        restaurant_id: Any,
        point: GeoPoint,
        geocoded_address: Optional[str] = None,
    ) -> None:
        """Persist new coordinates for one restaurant.

        Each record is committed on its own so an interrupted batch keeps
        the records already written.
        """
        if not self.db:
            return
        self.db.execute(
            UPDATE_COORDINATES,
            {
                "id": restaurant_id,
                "lat": point.latitude,
                "lng": point.longitude,
                "geocoded_address": geocoded_address,
            },
        )
        self.db.commit()
