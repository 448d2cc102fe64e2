"""Tests for batch coordinate correction."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import text

from lineup_geo.core.geocoding.corrector import CoordinateCorrector
from lineup_geo.core.geocoding.errors import GeocodingFailedError
from lineup_geo.database.models import RestaurantModel
from lineup_geo.models.geographic import CoordinateStatus, GeocodeResult, GeoPoint

ROWS = [
    # id, name, lat, lng, line1, city
    ("valid", "Valid Cafe", 29.93, -90.08, "100 St Charles Ave", "New Orleans"),
    ("lake", "Lake House", 30.05, -90.1, "1 Lakeshore Dr", "Metairie"),
    ("river", "River Boat", 29.95, -89.97, "1 Canal St", "New Orleans"),
    ("nyc", "Big Apple", 40.7128, -74.0060, "5 Broadway", "New Orleans"),
    ("missing", "Nowhere", None, None, None, None),
]


def coordinates(session, restaurant_id):
    """Read a row back without going through the ORM identity map."""
    return session.execute(
        text(
            "SELECT latitude, longitude, geocoded_address, coordinates_updated_at "
            "FROM restaurant WHERE id = :id"
        ),
        {"id": restaurant_id},
    ).one()


@pytest.fixture
def restaurants(db_session):
    """Seed one restaurant per coordinate status."""
    for restaurant_id, name, lat, lng, line1, city in ROWS:
        db_session.add(
            RestaurantModel(
                id=restaurant_id,
                name=name,
                latitude=lat,
                longitude=lng,
                address_line1=line1,
                city=city,
                state="LA" if city else None,
            )
        )
    db_session.commit()

    # Legacy imports stored text in the coordinate columns
    db_session.execute(
        text(
            "INSERT INTO restaurant "
            "(id, name, latitude, longitude, address_line1, city, state, "
            "created_at, updated_at) "
            "VALUES ('typo', 'Typo Grill', 'abc', -90.08, '200 Huey P Long Ave', "
            "'Gretna', 'LA', CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        )
    )
    db_session.commit()
    return db_session


@pytest.fixture
def geocode_fn():
    """Geocoder that always lands Uptown."""
    return MagicMock(
        return_value=GeocodeResult(
            latitude=29.93,
            longitude=-90.08,
            formatted_address="Uptown, New Orleans, LA",
            provider="test",
        )
    )


@pytest.fixture
def corrector(restaurants, validator, geocode_fn):
    """Corrector over the seeded database."""
    return CoordinateCorrector(db=restaurants, validator=validator, geocode_fn=geocode_fn)


class TestAudit:
    """Test CoordinateCorrector.audit."""

    def test_counts_every_status(self, corrector):
        """Test one bucket per status."""
        report = corrector.audit()

        assert report["total"] == 6
        assert report["counts"] == {
            "valid": 1,
            "out_of_bounds": 1,
            "in_water": 2,
            "missing": 1,
            "invalid_type": 1,
        }
        assert len(report["issues"]) == 5

    def test_issue_details(self, corrector):
        """Test water regions and statuses are reported per restaurant."""
        issues = {i["id"]: i for i in corrector.audit()["issues"]}

        assert issues["lake"]["water_region"] == "Lake Pontchartrain"
        assert issues["river"]["water_region"] == "Mississippi River"
        assert issues["nyc"]["status"] == CoordinateStatus.OUT_OF_BOUNDS
        assert issues["nyc"]["water_region"] is None
        assert issues["typo"]["status"] == CoordinateStatus.INVALID_TYPE
        assert issues["typo"]["latitude"] == "abc"
        assert issues["typo"]["city"] == "Gretna"
        assert issues["missing"]["status"] == CoordinateStatus.MISSING
        assert "valid" not in issues

    def test_without_database(self, validator):
        """Test an unconnected corrector reports nothing."""
        report = CoordinateCorrector(validator=validator).audit()

        assert report["total"] == 0
        assert report["issues"] == []


class TestFixInvalid:
    """Test CoordinateCorrector.fix_invalid."""

    def test_dry_run_does_not_write(self, corrector, restaurants):
        """Test the default dry run leaves rows untouched."""
        summary = corrector.fix_invalid()

        assert summary["dry_run"] is True
        assert summary["invalid_count"] == 5
        assert summary["fixed_count"] == 5
        assert summary["failed_count"] == 0
        row = coordinates(restaurants, "lake")
        assert (row.latitude, row.longitude) == (30.05, -90.1)
        assert row.coordinates_updated_at is None

    def test_apply_repairs_every_issue(self, corrector, restaurants, validator):
        """Test every repaired coordinate is valid afterwards."""
        summary = corrector.fix_invalid(dry_run=False)

        assert summary["fixed_count"] == 5
        for correction in summary["corrections"]:
            assert validator.classify(correction["new_lat"], correction["new_lng"]) == (
                CoordinateStatus.VALID
            )

        counts = corrector.audit()["counts"]
        assert counts["valid"] == 6
        assert counts["in_water"] == 0

        row = coordinates(restaurants, "lake")
        assert row.coordinates_updated_at is not None
        # Only the repair touched the row, no geocoded address was written
        assert row.geocoded_address is None

    def test_valid_rows_are_untouched(self, corrector, restaurants):
        """Test the valid restaurant keeps its coordinates."""
        corrector.fix_invalid(dry_run=False)

        row = coordinates(restaurants, "valid")
        assert (row.latitude, row.longitude) == (29.93, -90.08)
        assert row.coordinates_updated_at is None

    def test_repair_failures_are_collected(self, corrector):
        """Test an error on one restaurant does not stop the batch."""
        with patch.object(
            corrector.validator, "repair", side_effect=RuntimeError("boom")
        ):
            summary = corrector.fix_invalid()

        # Water and out-of-bounds rows go through repair; the rest relocate
        assert summary["failed_count"] == 3
        assert summary["fixed_count"] == 2
        assert {f["id"] for f in summary["failures"]} == {"lake", "river", "nyc"}
        assert all(f["error"] == "boom" for f in summary["failures"])

    def test_interrupted_run_keeps_earlier_repairs(self, corrector, restaurants):
        """Test each repaired record is committed as soon as it is written."""
        # Issues are processed by name: Big Apple first, then Lake House
        with patch.object(
            corrector.validator,
            "repair",
            side_effect=[GeoPoint(latitude=29.93, longitude=-90.08), KeyboardInterrupt()],
        ):
            with pytest.raises(KeyboardInterrupt):
                corrector.fix_invalid(dry_run=False)

        restaurants.rollback()
        row = coordinates(restaurants, "nyc")
        assert (row.latitude, row.longitude) == (29.93, -90.08)
        row = coordinates(restaurants, "lake")
        assert (row.latitude, row.longitude) == (30.05, -90.1)


class TestNeedsGeocoding:
    """Test CoordinateCorrector.needs_geocoding."""

    @pytest.mark.parametrize(
        "restaurant,expected",
        [
            ({"latitude": 29.93, "longitude": -90.08, "geocoded_address": "X"}, False),
            ({"latitude": 29.93, "longitude": -90.08, "geocoded_address": None}, True),
            ({"latitude": 0, "longitude": -90.08, "geocoded_address": "X"}, True),
            ({"latitude": None, "longitude": None, "geocoded_address": "X"}, True),
            ({"latitude": 29.9511, "longitude": -90.12, "geocoded_address": "X"}, True),
        ],
    )
    def test_needs_geocoding(self, validator, restaurant, expected):
        """Test which records count as never geocoded."""
        assert CoordinateCorrector(validator=validator).needs_geocoding(restaurant) is (
            expected
        )


class TestRegeocode:
    """Test CoordinateCorrector.regeocode."""

    def test_regeocodes_every_restaurant_with_an_address(
        self, corrector, restaurants, geocode_fn
    ):
        """Test each addressed restaurant is geocoded and saved."""
        summary = corrector.regeocode()

        assert summary["total"] == 6
        assert summary["fixed_count"] == 5
        assert summary["skipped_count"] == 1
        assert summary["in_water_before"] == 2
        assert summary["error_count"] == 0
        assert geocode_fn.call_count == 5

        row = coordinates(restaurants, "lake")
        assert (row.latitude, row.longitude) == (29.93, -90.08)
        assert row.geocoded_address == "Uptown, New Orleans, LA"
        assert row.coordinates_updated_at is not None

    def test_dry_run(self, corrector, restaurants):
        """Test a dry run geocodes but does not write."""
        summary = corrector.regeocode(dry_run=True)

        assert summary["dry_run"] is True
        assert summary["fixed_count"] == 5
        row = coordinates(restaurants, "lake")
        assert (row.latitude, row.longitude) == (30.05, -90.1)

    def test_only_failed(self, corrector, restaurants, geocode_fn):
        """Test restaurants with a good geocode are left alone."""
        restaurants.execute(
            text("UPDATE restaurant SET geocoded_address = 'Uptown' WHERE id = 'valid'")
        )
        restaurants.commit()

        summary = corrector.regeocode(only_failed=True)

        assert summary["total"] == 5
        assert summary["fixed_count"] == 4
        assert summary["skipped_count"] == 1

    def test_in_water_results_are_errors(self, corrector, restaurants, geocode_fn):
        """Test results that stay in the river are reported, not saved."""
        geocode_fn.return_value = GeocodeResult(latitude=29.95, longitude=-89.97)

        summary = corrector.regeocode()

        assert summary["error_count"] == 5
        assert summary["fixed_count"] == 0
        assert {e["id"] for e in summary["errors"]} == {
            "valid",
            "lake",
            "river",
            "nyc",
            "typo",
        }
        row = coordinates(restaurants, "valid")
        assert (row.latitude, row.longitude) == (29.93, -90.08)

    def test_fallback_to_repair(self, corrector, restaurants, geocode_fn, validator):
        """Test in-water results are repaired when asked."""
        geocode_fn.return_value = GeocodeResult(latitude=29.95, longitude=-89.97)

        summary = corrector.regeocode(fallback_to_repair=True)

        assert summary["repaired_count"] == 5
        assert summary["error_count"] == 0
        row = coordinates(restaurants, "river")
        assert validator.is_in_water(row.latitude, row.longitude) is False

    def test_interrupted_run_keeps_earlier_results(
        self, corrector, restaurants, geocode_fn
    ):
        """Test geocoded records survive an abort later in the batch."""
        # Big Apple and Lake House succeed, River Boat is interrupted
        geocode_fn.side_effect = [
            geocode_fn.return_value,
            geocode_fn.return_value,
            KeyboardInterrupt(),
        ]

        with pytest.raises(KeyboardInterrupt):
            corrector.regeocode()

        restaurants.rollback()
        for restaurant_id in ("nyc", "lake"):
            row = coordinates(restaurants, restaurant_id)
            assert (row.latitude, row.longitude) == (29.93, -90.08)
            assert row.geocoded_address == "Uptown, New Orleans, LA"
        row = coordinates(restaurants, "river")
        assert (row.latitude, row.longitude) == (29.95, -89.97)

    def test_provider_failures_are_errors(self, corrector, geocode_fn):
        """Test provider failures are counted per restaurant."""
        geocode_fn.side_effect = GeocodingFailedError("ZERO_RESULTS")

        summary = corrector.regeocode()

        assert summary["error_count"] == 5
        assert all("ZERO_RESULTS" in e["error"] for e in summary["errors"])

    def test_default_geocode_fn_uses_shared_service(self, validator):
        """Test the geocoding service is only resolved when needed."""
        service = MagicMock()
        with patch(
            "lineup_geo.core.geocoding.service.get_geocoding_service",
            return_value=service,
        ) as get_service:
            corrector = CoordinateCorrector(validator=validator)
            get_service.assert_not_called()

            assert corrector.geocode_fn is service.geocode_address
            get_service.assert_called_once_with()
