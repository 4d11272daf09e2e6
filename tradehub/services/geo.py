# tradehub/services/geo.py
"""Approximate distances between suburb/postcode locations for radius filtering."""

import math

EARTH_RADIUS_KM = 6371.0


def _coordinate(value, limit):
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or abs(number) > limit:
        return None
    return number


def coordinates_of(point):
    """
    Extract a (lat, lng) pair from a location-like object or mapping.

    Returns None when either coordinate is missing or invalid; a suburb or
    postcode alone is never geocoded here.
    """
    if point is None:
        return None
    if isinstance(point, dict):
        lat, lng = point.get('lat'), point.get('lng')
    else:
        lat, lng = getattr(point, 'lat', None), getattr(point, 'lng', None)

    lat = _coordinate(lat, 90.0)
    lng = _coordinate(lng, 180.0)
    if lat is None or lng is None:
        return None
    return lat, lng


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a, b):
    """
    Distance between two locations, or None when it cannot be known.

    Callers must treat None as "cannot exclude on distance grounds".
    """
    first = coordinates_of(a)
    second = coordinates_of(b)
    if first is None or second is None:
        return None
    return haversine_km(first[0], first[1], second[0], second[1])
