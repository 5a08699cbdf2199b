from __future__ import annotations

import logging
import uuid

import redis

from notify_scheduler.cache import cache, cache_key
from notify_scheduler.config import settings


logger = logging.getLogger(__name__)
_KEY_PREFIX = 'job_lock'


def _lock_key(job_label: str, class_id: int) -> str:
    return cache_key(_KEY_PREFIX, f'{job_label}:class:{int(class_id or 0)}')


def acquire_job_lock(job_label: str, class_id: int, *, ttl_seconds: int | None = None) -> str | None:
    """Take the per-class lock for ``job_label``; returns the owner token or None when held."""
    key = _lock_key(job_label, class_id)
    token = uuid.uuid4().hex
    ttl = ttl_seconds if ttl_seconds is not None else settings.notification_job_lock_ttl_seconds
    try:
        acquired = cache.backend.add(key, token, max(1, int(ttl)))
    except redis.RedisError:
        logger.exception('job_lock_acquire_failed key=%s', key)
        return None
    return token if acquired else None


def release_job_lock(job_label: str, class_id: int, token: str | None) -> None:
    if not token:
        return
    key = _lock_key(job_label, class_id)
    try:
        cache.backend.delete_if(key, token)
    except redis.RedisError:
        logger.exception('job_lock_release_failed key=%s', key)
