"""Geofence thresholds for on-site confirmation and task completion.

All distances and accuracies are in meters.
"""

# Workers within this great-circle radius of the task are on site (inclusive)
ON_SITE_RADIUS_M = 100.0

# Worst acceptable fix accuracy per step; completion demands a stronger signal
CONFIRM_MAX_ACCURACY_M = 100.0
COMPLETE_MAX_ACCURACY_M = 50.0

# How long a location request may take before it is abandoned
LOCATION_TIMEOUT_SECONDS = 15.0

# Synthetic progress shown while waiting for a fix
PROGRESS_STEP = 5
PROGRESS_INTERVAL_SECONDS = 0.5
PROGRESS_RESET_DELAY_SECONDS = 0.5

EARTH_RADIUS_M = 6371000.0
