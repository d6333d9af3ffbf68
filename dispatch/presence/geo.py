"""Great-circle distance helpers."""

from math import radians, sin, cos, sqrt, atan2, floor

from dispatch.constants import EARTH_RADIUS_M, ON_SITE_RADIUS_M


def distance_m(lat1, lon1, lat2, lon2):
    """Calculate distance in meters between two coordinates using Haversine formula."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1-a))
    return EARTH_RADIUS_M * c


def distance_to_task(fix, task):
    """Distance in meters from a location fix to the task's target coordinates."""
    coords = task['coordinates']
    return distance_m(fix.latitude, fix.longitude, coords['latitude'], coords['longitude'])


def is_on_site(distance, radius=ON_SITE_RADIUS_M):
    """The boundary itself counts as on site."""
    return distance <= radius


def remaining_distance(distance, radius=ON_SITE_RADIUS_M):
    """Whole meters the worker still has to cover to reach the radius, halves rounded up."""
    return max(floor(distance - radius + 0.5), 0)
