import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from notify_scheduler.cache import cache
from notify_scheduler.core.time_provider import APP_ZONEINFO, TimeProvider
from notify_scheduler.db import Base
from notify_scheduler.domain.jobs import timetable_notification_sweep
from notify_scheduler.domain.jobs.job_lock import acquire_job_lock, release_job_lock
from notify_scheduler.models import ClassTimetable, NotificationRule, SchoolClass, ScheduledNotification, Setting
from notify_scheduler.services.notification_materializer import NotificationMaterializer


class FixedTimeProvider(TimeProvider):
    def __init__(self, frozen_dt: datetime):
        self._frozen_dt = frozen_dt

    def now(self) -> datetime:
        return self._frozen_dt


class TimetableSweepTests(unittest.TestCase):
    NOW = datetime(2025, 3, 5, 10, 0, tzinfo=APP_ZONEINFO)

    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_timetable_sweep.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        cache.invalidate_prefix('settings')
        cache.invalidate_prefix('job_lock')
        db = self._session_factory()
        try:
            for table in (ScheduledNotification, NotificationRule, ClassTimetable, SchoolClass, Setting):
                db.query(table).delete()
            db.commit()
            self.class_ids = {}
            for title, status, active in (
                ('Active A', 'active', True),
                ('Active B', 'active', True),
                ('Cancelled', 'cancelled', True),
                ('Paused timetable', 'active', False),
            ):
                row = SchoolClass(title=title, status=status)
                db.add(row)
                db.commit()
                db.add(ClassTimetable(class_id=row.id, weekly_schedule={'monday': ['09:00']}, is_active=active))
                db.add(NotificationRule(class_id=row.id, notification_type='session_reminder_24h', is_enabled=True))
                db.commit()
                self.class_ids[title] = row.id
        finally:
            db.close()

    def _run(self):
        return timetable_notification_sweep.execute(
            lookahead_days=7,
            time_provider=FixedTimeProvider(self.NOW),
            session_factory=self._session_factory,
        )

    def test_only_active_classes_with_active_timetables_are_swept(self):
        db = self._session_factory()
        try:
            ids = timetable_notification_sweep.active_timetable_class_ids(db)
        finally:
            db.close()
        self.assertEqual(ids, [self.class_ids['Active A'], self.class_ids['Active B']])

    def test_sweep_creates_rows_and_is_idempotent(self):
        summary = self._run()
        self.assertEqual(summary, {'ok': 2, 'failed': 0, 'skipped': 0, 'created': 2})
        again = self._run()
        self.assertEqual(again['created'], 0)

        db = self._session_factory()
        try:
            class_ids = sorted(row.class_id for row in db.query(ScheduledNotification).all())
        finally:
            db.close()
        self.assertEqual(class_ids, [self.class_ids['Active A'], self.class_ids['Active B']])

    def test_failing_class_does_not_stop_the_sweep(self):
        original = NotificationMaterializer.schedule_from_timetable
        failing_id = self.class_ids['Active A']

        def flaky(materializer, school_class, lookahead_days=None):
            if school_class.id == failing_id:
                raise RuntimeError('boom')
            return original(materializer, school_class, lookahead_days)

        with patch.object(NotificationMaterializer, 'schedule_from_timetable', flaky):
            summary = self._run()
        self.assertEqual(summary['ok'], 1)
        self.assertEqual(summary['failed'], 1)
        self.assertEqual(summary['created'], 1)

    def test_locked_class_is_skipped(self):
        class_id = self.class_ids['Active B']
        token = acquire_job_lock(timetable_notification_sweep.JOB_LABEL, class_id)
        try:
            summary = self._run()
        finally:
            release_job_lock(timetable_notification_sweep.JOB_LABEL, class_id, token)
        self.assertEqual(summary['skipped'], 1)
        self.assertEqual(summary['ok'], 1)


if __name__ == '__main__':
    unittest.main()
