"""Geographic models for coordinate validation and repair."""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CoordinateStatus(str, Enum):
    """Classification of a stored or geocoded coordinate."""

    VALID = "valid"
    OUT_OF_BOUNDS = "out_of_bounds"
    IN_WATER = "in_water"
    MISSING = "missing"
    INVALID_TYPE = "invalid_type"


class GeoPoint(BaseModel):
    """A latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude")

    def offset(self, lat_delta: float, lng_delta: float) -> "GeoPoint":
        """Return a new point shifted by the given deltas."""
        return GeoPoint(
            latitude=self.latitude + lat_delta,
            longitude=self.longitude + lng_delta,
        )


class GeocodeResult(GeoPoint):
    """A point returned by a geocoding provider."""

    formatted_address: Optional[str] = None
    provider: Optional[str] = None


class RegionBounds(BaseModel):
    """Inclusive geographic envelope."""

    model_config = ConfigDict(frozen=True)

    min_lat: float = Field(..., description="Southern boundary")
    max_lat: float = Field(..., description="Northern boundary")
    min_lng: float = Field(..., description="Western boundary")
    max_lng: float = Field(..., description="Eastern boundary")

    @model_validator(mode="after")
    def check_ordering(self) -> "RegionBounds":
        """Reject inverted boxes."""
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError(
                f"Inverted bounds: lat [{self.min_lat}, {self.max_lat}], "
                f"lng [{self.min_lng}, {self.max_lng}]"
            )
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check whether a point lies inside the box, edges included."""
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lng <= longitude <= self.max_lng
        )


class WaterRegion(RegionBounds):
    """A named body of water approximated by a bounding box."""

    name: str = Field(..., description="Display name of the water body")


class Address(BaseModel):
    """Postal address of a restaurant."""

    # ZIP codes are often stored as integers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    def parts(self) -> list[str]:
        """Non-empty address components in query order."""
        return [
            part.strip()
            for part in (self.line1, self.city, self.state, self.zip)
            if part and part.strip()
        ]

    def is_empty(self) -> bool:
        """Check whether the address has no usable components."""
        return not self.parts()

    def to_query(self) -> str:
        """Build a single-line geocoder query."""
        return ", ".join(self.parts())


class RepairTuning(BaseModel):
    """Offsets and budgets used by the repair pipeline."""

    model_config = ConfigDict(frozen=True)

    # Roughly 0.6 miles north-west
    nudge_lat: float = 0.01
    nudge_lng: float = -0.01

    search_attempts: int = Field(default=20, ge=0)
    search_radius: float = Field(default=0.03, gt=0)
    # Longitude draw is Uniform(-radius * west, +radius * east)
    search_west_factor: float = Field(default=1.4, ge=0)
    search_east_factor: float = Field(default=0.6, ge=0)

    # Open interval of longitudes considered "on the river"
    river_band_min_lng: float = -90.05
    river_band_max_lng: float = -89.95
    river_shift_west: float = 0.05
    east_of_river_shift_west: float = 0.04

    northern_lake_lat: float = 30.0
    northern_lake_shift_south: float = 0.05


class RegionProfile(BaseModel):
    """Service-area configuration consumed by the coordinate validator."""

    model_config = ConfigDict(frozen=True)

    name: str
    bounds: RegionBounds
    water_regions: tuple[WaterRegion, ...] = ()
    city_centers: dict[str, GeoPoint] = Field(default_factory=dict)
    default_center: GeoPoint
    fallback_point: GeoPoint
    tuning: RepairTuning = Field(default_factory=RepairTuning)

    @model_validator(mode="after")
    def check_fallback_is_dry(self) -> "RegionProfile":
        """The hard fallback must be usable without further checks."""
        point = self.fallback_point
        for region in self.water_regions:
            if region.contains(point.latitude, point.longitude):
                raise ValueError(
                    f"Fallback point {point.latitude}, {point.longitude} "
                    f"lies in {region.name}"
                )
        if not self.bounds.contains(point.latitude, point.longitude):
            raise ValueError("Fallback point lies outside the region bounds")
        return self

    @classmethod
    def from_file(cls, file_path: Path) -> "RegionProfile":
        """Load a profile from a JSON file.

        Args:
            file_path: Path to the JSON document

        Returns:
            RegionProfile: Parsed and validated profile

        Raises:
            ValueError: If the file cannot be read or is invalid
        """
        try:
            return cls.model_validate_json(Path(file_path).read_text())
        except OSError as e:
            raise ValueError(f"Failed to read region profile {file_path}: {e}") from e

    def city_center(self, city: Optional[str]) -> Optional[GeoPoint]:
        """Look up a city center, ignoring case and surrounding whitespace."""
        if not city:
            return None
        if city in self.city_centers:
            return self.city_centers[city]
        wanted = city.strip().casefold()
        for name, center in self.city_centers.items():
            if name.casefold() == wanted:
                return center
        return None
