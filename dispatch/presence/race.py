"""Timer race and synthetic progress for location requests."""

import asyncio
import contextlib
import logging

from dispatch.constants import PROGRESS_STEP, PROGRESS_INTERVAL_SECONDS
from dispatch.presence.errors import LocationUnavailable

logger = logging.getLogger(__name__)


def _discard_late_result(task):
    """Done-callback for a fix that lost the race; its outcome must not be used."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f'Discarded late location failure: {exc!r}')
    else:
        logger.info('Discarded location fix that arrived after the timeout')


async def race_with_timeout(awaitable, timeout):
    """Settle with whichever comes first: the awaitable or the timer.

    On timeout the pending awaitable is cancelled and a done-callback takes
    ownership of whatever it eventually produces, so a late fix is dropped
    instead of reaching the caller.

    Raises:
        LocationUnavailable: with ``timed_out=True`` when the timer wins
    """
    pending = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({pending}, timeout=timeout)
    if pending in done:
        return pending.result()

    pending.add_done_callback(_discard_late_result)
    pending.cancel()
    raise LocationUnavailable(timed_out=True)


class ProgressTicker:
    """Advisory progress indicator for a pending location request.

    Adds ``step`` every ``interval`` seconds, capped at 100. It says nothing
    about the real state of the request.
    """

    def __init__(self, report, step=PROGRESS_STEP, interval=PROGRESS_INTERVAL_SECONDS):
        self.report = report
        self.step = step
        self.interval = interval
        self.value = 0
        self._task = None

    def start(self):
        self.value = 0
        self.report(0)
        self._task = asyncio.ensure_future(self._run())
        return self

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            self.value = min(self.value + self.step, 100)
            self.report(self.value)

    async def stop(self):
        """Stop ticking; no report is made after this returns."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
