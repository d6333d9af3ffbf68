"""Failure kinds of the on-site confirmation and completion workflows.

Every failure is scoped to a single task action and leaves the stored task
untouched. The workflow converts these into a PresenceResult; they never
escape to the caller.
"""


class PresenceError(Exception):
    """Base class for workflow failures that the worker can act on."""

    code = 'presence_error'
    http_status = 400
    default_message = 'Location check failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(PresenceError):
    code = 'permission_denied'
    http_status = 403
    default_message = 'Location permission is required'


class LocationUnavailable(PresenceError):
    """The provider failed, or the timer won the race."""

    code = 'location_unavailable'
    http_status = 503
    default_message = (
        'Could not access geolocation. '
        'Check the location settings on your device.'
    )
    timeout_message = (
        'Could not determine your location. Please:\n\n'
        '1. Check that GPS is enabled\n'
        '2. Move to an open area\n'
        '3. Wait 1-2 minutes\n'
        '4. Try again'
    )

    def __init__(self, message=None, timed_out=False):
        self.timed_out = timed_out
        if message is None and timed_out:
            message = self.timeout_message
        super().__init__(message)


class AccuracyTooLow(PresenceError):
    code = 'accuracy_too_low'
    http_status = 422

    def __init__(self, accuracy, threshold, message=None):
        self.accuracy = accuracy
        self.threshold = threshold
        super().__init__(message or (
            f'Location accuracy is ±{round(accuracy)} m. '
            'Move to a more open area for a better signal.'
        ))


class NotOnSite(PresenceError):
    code = 'not_on_site'
    http_status = 409
    default_message = 'Confirm your location first'


class OutOfRange(PresenceError):
    code = 'out_of_range'
    http_status = 422
    default_message = 'You must be on site to complete the task'

    def __init__(self, distance, message=None):
        self.distance = distance
        super().__init__(message)


class TaskAlreadyCompleted(PresenceError):
    code = 'already_completed'
    http_status = 409
    default_message = 'Task is already completed'


class ActionInProgress(PresenceError):
    code = 'in_progress'
    http_status = 409
    default_message = 'A location check for this task is already running'


class InvalidLocation(PresenceError):
    """The caller sent a fix that is not a usable location."""

    code = 'invalid_location'
    http_status = 400
    default_message = 'Invalid latitude/longitude/accuracy format'
