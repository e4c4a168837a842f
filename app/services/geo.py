import math


EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres on a spherical Earth."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    lat_diff = math.radians(lat2 - lat1)
    lon_diff = math.radians(lon2 - lon1)
    a = (
        math.sin(lat_diff / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(lon_diff / 2) ** 2
    )
    # Rounding can push a just past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(
    origin: tuple[float, float] | None,
    latitude: float | None,
    longitude: float | None,
) -> float | None:
    # None means "unknown", which is not the same as zero distance.
    if origin is None or latitude is None or longitude is None:
        return None
    return haversine_km(origin[0], origin[1], latitude, longitude)
