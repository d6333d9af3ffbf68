"""Presence confirmation workflow.

- workflow: confirm_presence / complete_task and their result type
- location: location fixes and the providers that produce them
- race: timer race and synthetic progress ticker
- activity: per-task loading/progress flags
- geo: haversine distance and radius checks
- errors: failure kinds reported to the worker
"""

from dispatch.presence.errors import (
    PresenceError,
    PermissionDenied,
    LocationUnavailable,
    AccuracyTooLow,
    NotOnSite,
    OutOfRange,
    TaskAlreadyCompleted,
    ActionInProgress,
    InvalidLocation,
)
from dispatch.presence.activity import TaskActivity
from dispatch.presence.location import (
    AccuracyMode,
    LocationFix,
    LocationProvider,
    ReportedLocationProvider,
    SocketLocationProvider,
)
from dispatch.presence.workflow import PresenceWorkflow, PresenceResult

__all__ = [
    'PresenceError',
    'PermissionDenied',
    'LocationUnavailable',
    'AccuracyTooLow',
    'NotOnSite',
    'OutOfRange',
    'TaskAlreadyCompleted',
    'ActionInProgress',
    'InvalidLocation',
    'TaskActivity',
    'AccuracyMode',
    'LocationFix',
    'LocationProvider',
    'ReportedLocationProvider',
    'SocketLocationProvider',
    'PresenceWorkflow',
    'PresenceResult',
]
