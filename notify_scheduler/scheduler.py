import logging

from apscheduler.schedulers.background import BackgroundScheduler

from notify_scheduler.config import settings
from notify_scheduler.domain.jobs import timetable_notification_sweep


scheduler = BackgroundScheduler(timezone=settings.app_timezone)
logger = logging.getLogger(__name__)


def timetable_notification_sweep_job():
    timetable_notification_sweep.execute()


def start_scheduler():
    interval = max(1, int(settings.notification_sweep_interval_minutes))
    scheduler.add_job(
        timetable_notification_sweep_job,
        'interval',
        minutes=interval,
        id=timetable_notification_sweep.JOB_LABEL,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
        logger.info('scheduler_started sweep_interval_minutes=%s', interval)


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
