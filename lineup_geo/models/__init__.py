"""Models package."""

from .geographic import (
    Address,
    CoordinateStatus,
    GeocodeResult,
    GeoPoint,
    RegionBounds,
    RegionProfile,
    RepairTuning,
    WaterRegion,
)

__all__ = [
    "Address",
    "CoordinateStatus",
    "GeocodeResult",
    "GeoPoint",
    "RegionBounds",
    "RegionProfile",
    "RepairTuning",
    "WaterRegion",
]
