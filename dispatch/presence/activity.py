"""Per-task loading and progress flags owned by whoever runs the workflow."""

import logging
import threading

from dispatch.services.redis_client import acquire_task_slot, release_task_slot

logger = logging.getLogger(__name__)


class TaskActivity:
    """Tracks which tasks have a workflow action running and its progress.

    Tasks are keyed by their store path (``tasks/{worker}/{id}``); ids are
    only unique within one worker's list. ``begin`` refuses a task that is
    already busy. When Redis is configured the busy flag is shared between
    processes; otherwise it is local.
    """

    def __init__(self):
        self.loading = {}
        self.progress = {}
        self._lock = threading.Lock()

    def begin(self, path):
        """Mark the task busy. Returns False if an action is already running."""
        with self._lock:
            if self.loading.get(path):
                return False
            if acquire_task_slot(path) is False:
                return False
            self.loading[path] = True
            self.progress[path] = 0
        return True

    def finish(self, path):
        with self._lock:
            self.loading[path] = False
        release_task_slot(path)

    def set_progress(self, path, value):
        self.progress[path] = value

    def is_busy(self, path):
        return bool(self.loading.get(path))

    def snapshot(self, path):
        return {
            'loading': self.is_busy(path),
            'progress': self.progress.get(path, 0),
        }
