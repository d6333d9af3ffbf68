"""Shared helper functions for task routes."""

TASK_STATUSES = {'active', 'completed', 'all'}


def filter_by_status(tasks: list[dict], status: str) -> list[dict]:
    """Active tasks are the ones not completed yet."""
    if status == 'active':
        return [t for t in tasks if not t.get('completed')]
    if status == 'completed':
        return [t for t in tasks if t.get('completed')]
    return tasks


def can_view_worker(current_user, worker: str) -> bool:
    """Admins see every worker's tasks; workers only their own."""
    return current_user.is_admin or current_user.username == worker
