from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from notify_scheduler.db import SessionLocal
from notify_scheduler.domain.jobs.job_lock import acquire_job_lock, release_job_lock
from notify_scheduler.metrics import run_timed_job


logger = logging.getLogger(__name__)


def for_each_class(
    task: Callable[[Session, int], object],
    class_ids: Callable[[Session], list[int]],
    *,
    job_label: str,
    session_factory=SessionLocal,
) -> dict:
    """Run ``task`` once per class, each under its own job lock.

    A class that raises is rolled back and logged; the remaining classes
    still run.
    """
    summary = {'ok': 0, 'failed': 0, 'skipped': 0}
    db: Session = session_factory()
    try:
        for class_id in class_ids(db):
            lock_token = acquire_job_lock(job_label, class_id)
            if not lock_token:
                logger.info('job_lock_skipped_concurrent job=%s class_id=%s', job_label, class_id)
                summary['skipped'] += 1
                continue
            try:
                task(db, class_id)
                summary['ok'] += 1
            except Exception:
                db.rollback()
                logger.exception('job_class_failure class_id=%s job=%s', class_id, job_label)
                summary['failed'] += 1
            finally:
                release_job_lock(job_label, class_id, lock_token)
    finally:
        db.close()
    return summary


def run_job(label: str, task: Callable[[Session, int], object], class_ids: Callable[[Session], list[int]], **kwargs) -> dict:
    return run_timed_job(label, lambda: for_each_class(task, class_ids, job_label=label, **kwargs))
