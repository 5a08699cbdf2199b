import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from notify_scheduler.cache import cache
from notify_scheduler.core.time_provider import APP_ZONEINFO, default_time_provider
from notify_scheduler.db import Base, get_db
from notify_scheduler.models import ClassSession, ClassTimetable, NotificationRule, SchoolClass, ScheduledNotification, Setting, Teacher
from notify_scheduler.routers import class_session as class_session_router
from notify_scheduler.routers import notifications as notifications_router


NOW = datetime(2025, 3, 5, 10, 0, tzinfo=APP_ZONEINFO)


class NotificationsApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_notifications_api.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.include_router(notifications_router.router)
        app.include_router(class_session_router.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        cache.invalidate_prefix('settings')
        self._now_patch = patch.object(default_time_provider, 'now', return_value=NOW)
        self._now_patch.start()
        db = self._session_factory()
        try:
            for table in (ScheduledNotification, NotificationRule, ClassSession, ClassTimetable, SchoolClass, Teacher, Setting):
                db.query(table).delete()
            db.commit()
            teacher = Teacher(name='Cikgu Aminah', phone_number='60111111111')
            db.add(teacher)
            db.commit()
            school_class = SchoolClass(title='Biology', teacher_id=teacher.id)
            db.add(school_class)
            db.commit()
            self.class_id = school_class.id
        finally:
            db.close()

    def tearDown(self):
        self._now_patch.stop()

    def _enable(self, *rule_types):
        db = self._session_factory()
        try:
            for rule_type in rule_types:
                db.add(NotificationRule(class_id=self.class_id, notification_type=rule_type, is_enabled=True))
            db.commit()
        finally:
            db.close()

    def _put_timetable(self, **overrides):
        body = {'weekly_schedule': {'monday': ['09:00']}, 'recurrence_pattern': 'weekly'}
        body.update(overrides)
        return self.client.put(f'/classes/{self.class_id}/timetable', json=body)

    def test_timetable_validation(self):
        self.assertEqual(self._put_timetable().status_code, 200)
        self.assertEqual(self._put_timetable(recurrence_pattern='yearly').status_code, 422)
        self.assertEqual(self._put_timetable(weekly_schedule={'funday': ['09:00']}).status_code, 422)
        self.assertEqual(self._put_timetable(weekly_schedule={'monday': ['9am']}).status_code, 422)
        self.assertEqual(
            self._put_timetable(start_date='2025-04-01', end_date='2025-03-01').status_code,
            422,
        )
        self.assertEqual(
            self._put_timetable(recurrence_pattern='monthly', weekly_schedule={'monday': ['09:00']}).status_code,
            422,
        )
        monthly = self._put_timetable(recurrence_pattern='monthly', weekly_schedule={'week_2': {'friday': ['18:00']}})
        self.assertEqual(monthly.status_code, 200)
        self.assertEqual(monthly.json()['recurrence_pattern'], 'monthly')

    def test_preview_slots(self):
        self.assertEqual(self.client.get(f'/classes/{self.class_id}/notifications/preview-slots').json(), [])
        self._put_timetable()
        resp = self.client.get(f'/classes/{self.class_id}/notifications/preview-slots', params={'lookahead_days': 7})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            [{'class_id': self.class_id, 'session_date': '2025-03-10', 'session_time': '09:00', 'starts_at': '2025-03-10T09:00:00+08:00'}],
        )
        bad = self.client.get(f'/classes/{self.class_id}/notifications/preview-slots', params={'lookahead_days': -1})
        self.assertEqual(bad.status_code, 422)

    def test_schedule_and_list(self):
        self._enable('session_reminder_24h', 'session_reminder_3h')
        self._put_timetable()
        resp = self.client.post(f'/classes/{self.class_id}/notifications/schedule', json={'lookahead_days': 7})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['created'], 2)

        again = self.client.post(f'/classes/{self.class_id}/notifications/schedule', json={'lookahead_days': 7})
        self.assertEqual(again.json()['created'], 0)

        listed = self.client.get(f'/classes/{self.class_id}/notifications').json()
        self.assertEqual([item['scheduled_at'] for item in listed], ['2025-03-09T09:00:00+08:00', '2025-03-10T06:00:00+08:00'])
        self.assertTrue(all(item['session_id'] is None for item in listed))
        self.assertTrue(all(item['total_recipients'] == 1 for item in listed))

        self.assertEqual(self.client.get(f'/classes/{self.class_id}/notifications', params={'status': 'sent'}).json(), [])
        cancelled = self.client.post(f'/classes/{self.class_id}/notifications/cancel').json()
        self.assertEqual(cancelled['cancelled'], 2)

    def test_schedule_rejects_negative_lookahead(self):
        resp = self.client.post(f'/classes/{self.class_id}/notifications/schedule', json={'lookahead_days': -2})
        self.assertEqual(resp.status_code, 422)

    def test_unknown_class_is_404(self):
        self.assertEqual(self.client.get('/classes/99999/notifications').status_code, 404)
        self.assertEqual(self.client.post('/classes/99999/notifications/schedule', json={}).status_code, 404)
        self.assertEqual(self.client.post('/class-sessions/99999/cancel').status_code, 404)
        resp = self.client.post('/class-sessions', json={'class_id': 99999, 'session_date': '2025-03-10', 'session_time': '09:00'})
        self.assertEqual(resp.status_code, 404)

    def test_default_rules(self):
        resp = self.client.post(f'/classes/{self.class_id}/notification-rules/defaults')
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(
            [item['notification_type'] for item in body],
            ['session_reminder_24h', 'session_reminder_1h', 'session_followup_immediate'],
        )
        self.assertFalse(any(item['is_enabled'] for item in body))
        self.assertEqual(len(self.client.post(f'/classes/{self.class_id}/notification-rules/defaults').json()), 3)

    def test_session_lifecycle(self):
        self._enable('session_reminder_1h', 'session_followup_1h')
        created = self.client.post(
            '/class-sessions',
            json={'class_id': self.class_id, 'session_date': '2025-03-10', 'session_time': '09:00'},
        )
        self.assertEqual(created.status_code, 200)
        session_id = created.json()['id']
        self.assertEqual(len(created.json()['notifications']), 1)
        self.assertEqual(created.json()['notifications'][0]['scheduled_at'], '2025-03-10T08:00:00+08:00')

        completed = self.client.post(f'/class-sessions/{session_id}/complete', json={'completed_at': '2025-03-10T10:15:00'})
        self.assertEqual(completed.status_code, 200)
        self.assertEqual(completed.json()['status'], 'completed')
        self.assertEqual(completed.json()['notifications'][0]['scheduled_at'], '2025-03-10T11:15:00+08:00')

        cancelled = self.client.post(f'/class-sessions/{session_id}/cancel')
        self.assertEqual(cancelled.json()['cancelled_notifications'], 2)
        self.assertEqual(self.client.post(f'/class-sessions/{session_id}/complete').status_code, 409)

    def test_placeholders(self):
        body = self.client.get('/classes/notification-placeholders').json()
        self.assertIn('{{student_name}}', body['placeholders'])


if __name__ == '__main__':
    unittest.main()
