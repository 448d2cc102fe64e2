"""Geographic constants for the New Orleans service area.

These values seed the default region profile. Deployments serving another
metro area supply their own profile through ``REGION_PROFILE_PATH``.
"""

from lineup_geo.models.geographic import (
    GeoPoint,
    RegionBounds,
    RegionProfile,
    WaterRegion,
)

# New Orleans metro area
NEW_ORLEANS_BOUNDS = RegionBounds(
    min_lat=29.85,
    max_lat=30.15,
    min_lng=-90.35,
    max_lng=-89.75,
)

LAKE_PONTCHARTRAIN = WaterRegion(
    name="Lake Pontchartrain",
    min_lat=30.0,
    max_lat=30.25,
    min_lng=-90.25,
    max_lng=-90.0,
)

LAKE_BORGNE = WaterRegion(
    name="Lake Borgne",
    min_lat=29.95,
    max_lat=30.1,
    min_lng=-89.75,
    max_lng=-89.5,
)

# River channel only, not the neighbourhoods on either bank
MISSISSIPPI_RIVER = WaterRegion(
    name="Mississippi River",
    min_lat=29.85,
    max_lat=30.1,
    min_lng=-90.02,
    max_lng=-89.92,
)

WATER_REGIONS = (LAKE_PONTCHARTRAIN, LAKE_BORGNE, MISSISSIPPI_RIVER)

CITY_CENTERS = {
    "New Orleans": (29.9511, -90.08),
    "Metairie": (29.9841, -90.1529),
    "Kenner": (29.9941, -90.2417),
    "Mandeville": (30.3582, -90.0656),
    "Slidell": (30.2752, -89.7812),
    "Covington": (30.4755, -90.1009),
    "Westwego": (29.9060, -90.1423),
    "Belle Chasse": (29.8549, -90.0054),
    "Arabi": (29.9541, -89.9962),
    "Chalmette": (29.9427, -89.9634),
    "Gretna": (29.9147, -90.0539),
    "Algiers": (29.9444, -90.0281),
    "Jefferson": (29.9661, -90.1531),
    "Harahan": (29.9403, -90.2031),
    "River Ridge": (29.9606, -90.2167),
    "Elmwood": (29.9561, -90.1861),
}

# New Orleans center shifted west of the river
DEFAULT_CENTER = (29.9511, -90.12)

# Uptown, away from the river
FALLBACK_POINT = (29.93, -90.08)

NEW_ORLEANS_PROFILE = RegionProfile(
    name="New Orleans",
    bounds=NEW_ORLEANS_BOUNDS,
    water_regions=WATER_REGIONS,
    city_centers={
        city: GeoPoint(latitude=lat, longitude=lng)
        for city, (lat, lng) in CITY_CENTERS.items()
    },
    default_center=GeoPoint(latitude=DEFAULT_CENTER[0], longitude=DEFAULT_CENTER[1]),
    fallback_point=GeoPoint(latitude=FALLBACK_POINT[0], longitude=FALLBACK_POINT[1]),
)
