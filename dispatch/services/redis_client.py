"""Redis client for shared state across workers."""

import os
import redis
import logging

logger = logging.getLogger(__name__)

# Redis connection (lazy initialization)
_redis_client = None


def get_redis():
    """Get or create Redis connection."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = os.environ.get('REDIS_URL')

    if not redis_url:
        return None

    try:
        _redis_client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        _redis_client.ping()
        logger.info("Redis connected successfully")
        return _redis_client
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        _redis_client = None
        return None


# Task action slots
TASK_SLOT_PREFIX = "task:action:"
TASK_SLOT_TTL = 60  # seconds; outlives the location timeout so a crashed worker frees the slot


def acquire_task_slot(task_key: str):
    """Claim the action slot for a task, keyed by its path (tasks/{worker}/{id}).

    Returns True if claimed, False if another process holds it, and None
    when Redis is not available (caller falls back to local tracking).
    """
    r = get_redis()
    if not r:
        return None

    try:
        return bool(r.set(f"{TASK_SLOT_PREFIX}{task_key}", "1", nx=True, ex=TASK_SLOT_TTL))
    except Exception as e:
        logger.error(f"Redis acquire_task_slot error: {e}")
        return None


def release_task_slot(task_key: str) -> bool:
    """Release a task's action slot."""
    r = get_redis()
    if not r:
        return False

    try:
        r.delete(f"{TASK_SLOT_PREFIX}{task_key}")
        return True
    except Exception as e:
        logger.error(f"Redis release_task_slot error: {e}")
        return False
