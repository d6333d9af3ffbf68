"""On-site confirmation and task completion.

Both actions follow the same shape: check the task's state, get a location
fix raced against a timer, gate on fix accuracy, measure the distance to
the task and, only at the single success point, merge the result into the
task store. Any failure before that point leaves the task untouched.

Confirmation records every evaluation, on site or not:

    isOnSite, lastChecked, lastLocation

Completion needs a prior confirmation, a tighter accuracy and the worker
still within the radius:

    completed, completedAt, completedLocation
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime

from dispatch.constants import (
    CONFIRM_MAX_ACCURACY_M,
    COMPLETE_MAX_ACCURACY_M,
    LOCATION_TIMEOUT_SECONDS,
    PROGRESS_INTERVAL_SECONDS,
    PROGRESS_RESET_DELAY_SECONDS,
)
from dispatch.presence.activity import TaskActivity
from dispatch.presence.errors import (
    PresenceError,
    PermissionDenied,
    LocationUnavailable,
    AccuracyTooLow,
    NotOnSite,
    OutOfRange,
    TaskAlreadyCompleted,
    ActionInProgress,
)
from dispatch.presence.geo import distance_to_task, is_on_site, remaining_distance
from dispatch.presence.location import AccuracyMode
from dispatch.presence.race import race_with_timeout, ProgressTicker
from dispatch.services.task_store import task_path

logger = logging.getLogger(__name__)


@dataclass
class PresenceResult:
    """Outcome of one workflow invocation, ready to hand to the client."""

    ok: bool
    message: str
    task_id: str = None
    on_site: bool = None
    distance_m: float = None
    remaining_m: int = None
    error: str = None
    http_status: int = 200

    @classmethod
    def failure(cls, task_id, error):
        return cls(
            ok=False,
            message=error.message,
            task_id=task_id,
            error=error.code,
            http_status=error.http_status,
        )

    def to_dict(self):
        data = asdict(self)
        data.pop('http_status')
        return data


class PresenceWorkflow:
    """Runs confirm/complete actions against a task store.

    One instance is shared by every caller of an application; ``activity``
    holds the per-task loading/progress flags those callers can inspect.
    """

    def __init__(self, store, activity=None,
                 location_timeout=LOCATION_TIMEOUT_SECONDS,
                 progress_interval=PROGRESS_INTERVAL_SECONDS,
                 progress_reset_delay=PROGRESS_RESET_DELAY_SECONDS,
                 clock=datetime.utcnow):
        self.store = store
        self.activity = activity or TaskActivity()
        self.location_timeout = location_timeout
        self.progress_interval = progress_interval
        self.progress_reset_delay = progress_reset_delay
        self.clock = clock

    async def confirm_presence(self, task, provider, on_progress=None):
        """Check whether the worker is within the radius and record the result.

        Args:
            task: task dict as returned by the store
            provider: LocationProvider for the worker's device
            on_progress: optional callable receiving synthetic progress 0-100

        Returns:
            PresenceResult; when the worker is too far, ``ok`` is still True
            and ``remaining_m`` says how much closer to get.
        """
        task_id = task['id']
        path = task_path(task['assigned_to'], task_id)
        try:
            self._ensure_open(task)
            self._begin(path)
        except PresenceError as e:
            return PresenceResult.failure(task_id, e)

        ticker = None
        try:
            if not await provider.request_permission():
                raise PermissionDenied()

            ticker = ProgressTicker(
                lambda value: self._report(path, value, on_progress),
                interval=self.progress_interval,
            ).start()
            try:
                fix = await self._locate(provider, AccuracyMode.BALANCED)
            finally:
                await ticker.stop()
            self._report(path, 100, on_progress)

            if fix.accuracy > CONFIRM_MAX_ACCURACY_M:
                raise AccuracyTooLow(fix.accuracy, CONFIRM_MAX_ACCURACY_M)

            distance = distance_to_task(fix, task)
            on_site = is_on_site(distance)
            now = self.clock()
            self.store.update(path, {
                'is_on_site': on_site,
                'last_checked': now,
                'last_location': {
                    'latitude': fix.latitude,
                    'longitude': fix.longitude,
                    'accuracy': fix.accuracy,
                    'timestamp': now.isoformat(),
                },
            })
            logger.info(
                f"Presence check for task {task['assigned_to']}/{task_id}: "
                f"on_site={on_site} distance={distance:.1f}m accuracy={fix.accuracy:.0f}m"
            )

            if on_site:
                return PresenceResult(
                    ok=True,
                    message='You are on site! You can now complete the task',
                    task_id=task_id,
                    on_site=True,
                    distance_m=round(distance, 2),
                    remaining_m=0,
                )
            remaining = remaining_distance(distance)
            return PresenceResult(
                ok=True,
                message=f'Too far away: move closer ({remaining} m to go)',
                task_id=task_id,
                on_site=False,
                distance_m=round(distance, 2),
                remaining_m=remaining,
            )
        except PresenceError as e:
            logger.info(f'Presence check for task {task_id} failed: {e.code}')
            return PresenceResult.failure(task_id, e)
        except Exception:
            logger.exception(f'Unexpected error confirming presence for task {task_id}')
            return PresenceResult(
                ok=False,
                message='An unexpected error occurred. Please try again.',
                task_id=task_id,
                error='unexpected',
                http_status=500,
            )
        finally:
            self.activity.finish(path)
            await self._settle_progress(path, on_progress, delayed=ticker is not None)

    async def complete_task(self, task, provider):
        """Finish a task after re-checking location with a stricter accuracy gate."""
        task_id = task['id']
        path = task_path(task['assigned_to'], task_id)
        try:
            self._ensure_open(task)
            if not task.get('is_on_site'):
                raise NotOnSite()
            self._begin(path)
        except PresenceError as e:
            return PresenceResult.failure(task_id, e)

        try:
            fix = await self._locate(
                provider,
                AccuracyMode.HIGH,
                failure_message='Could not confirm your location. Check GPS access and try again.',
            )

            if fix.accuracy > COMPLETE_MAX_ACCURACY_M:
                raise AccuracyTooLow(
                    fix.accuracy,
                    COMPLETE_MAX_ACCURACY_M,
                    message='Location accuracy is too low to complete the task. Wait for GPS to stabilise.',
                )

            distance = distance_to_task(fix, task)
            if not is_on_site(distance):
                raise OutOfRange(distance)

            self.store.update(path, {
                'completed': True,
                'completed_at': self.clock(),
                'completed_location': fix.to_dict(),
            })
            logger.info(
                f"Task {task['assigned_to']}/{task_id} completed "
                f"at distance={distance:.1f}m accuracy={fix.accuracy:.0f}m"
            )
            return PresenceResult(
                ok=True,
                message='Task completed successfully!',
                task_id=task_id,
                on_site=True,
                distance_m=round(distance, 2),
            )
        except PresenceError as e:
            logger.info(f'Completion of task {task_id} failed: {e.code}')
            return PresenceResult.failure(task_id, e)
        except Exception:
            logger.exception(f'Unexpected error completing task {task_id}')
            return PresenceResult(
                ok=False,
                message='Could not complete the task. Please try again.',
                task_id=task_id,
                error='unexpected',
                http_status=500,
            )
        finally:
            self.activity.finish(path)

    def _ensure_open(self, task):
        if task.get('completed'):
            raise TaskAlreadyCompleted()

    def _begin(self, path):
        if not self.activity.begin(path):
            raise ActionInProgress()

    async def _locate(self, provider, mode, failure_message=None):
        try:
            return await race_with_timeout(
                provider.get_current_position(mode),
                self.location_timeout,
            )
        except LocationUnavailable as e:
            if failure_message and not e.timed_out:
                raise LocationUnavailable(failure_message) from e
            raise
        except PresenceError:
            raise
        except Exception as e:
            logger.warning(f'Location provider failed: {e!r}')
            raise LocationUnavailable(failure_message) from e

    def _report(self, path, value, on_progress):
        self.activity.set_progress(path, value)
        if on_progress is not None:
            on_progress(value)

    async def _settle_progress(self, path, on_progress, delayed):
        if delayed and on_progress is not None and self.progress_reset_delay:
            await asyncio.sleep(self.progress_reset_delay)
        self._report(path, 0, on_progress if delayed else None)
