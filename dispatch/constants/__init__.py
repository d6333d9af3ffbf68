"""Shared constants for the application."""

from dispatch.constants.geofence import (
    ON_SITE_RADIUS_M,
    CONFIRM_MAX_ACCURACY_M,
    COMPLETE_MAX_ACCURACY_M,
    LOCATION_TIMEOUT_SECONDS,
    PROGRESS_STEP,
    PROGRESS_INTERVAL_SECONDS,
    PROGRESS_RESET_DELAY_SECONDS,
    EARTH_RADIUS_M,
)

USER_TYPES = {'admin', 'worker'}

__all__ = [
    'ON_SITE_RADIUS_M',
    'CONFIRM_MAX_ACCURACY_M',
    'COMPLETE_MAX_ACCURACY_M',
    'LOCATION_TIMEOUT_SECONDS',
    'PROGRESS_STEP',
    'PROGRESS_INTERVAL_SECONDS',
    'PROGRESS_RESET_DELAY_SECONDS',
    'EARTH_RADIUS_M',
    'USER_TYPES',
]
