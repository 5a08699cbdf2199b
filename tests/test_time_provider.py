import unittest
from datetime import date, datetime, time, timezone

from freezegun import freeze_time

from notify_scheduler.core.time_provider import (
    APP_ZONEINFO,
    as_app_aware,
    combine_local,
    default_time_provider,
    ensure_aware,
    from_storage,
    to_storage,
)
from notify_scheduler.domain.timetable import TimetableSnapshot
from notify_scheduler.services.occurrence_generator import OccurrenceGenerator


class TimeProviderTests(unittest.TestCase):
    @freeze_time('2025-03-04 17:30:00')
    def test_today_follows_app_zone(self):
        now = default_time_provider.now()
        self.assertEqual(now.utcoffset().total_seconds(), 8 * 3600)
        self.assertEqual(now.replace(tzinfo=None), datetime(2025, 3, 5, 1, 30))
        self.assertEqual(default_time_provider.today(), date(2025, 3, 5))

    def test_storage_roundtrip_is_naive_utc(self):
        local = combine_local(date(2025, 3, 10), time(9, 0))
        stored = to_storage(local)
        self.assertIsNone(stored.tzinfo)
        self.assertEqual(stored, datetime(2025, 3, 10, 1, 0))
        self.assertEqual(from_storage(stored), local)

    def test_naive_values(self):
        with self.assertRaises(ValueError):
            ensure_aware(datetime(2025, 3, 10, 9, 0))
        with self.assertRaises(ValueError):
            to_storage(datetime(2025, 3, 10, 9, 0))
        self.assertEqual(as_app_aware(datetime(2025, 3, 10, 9, 0)), datetime(2025, 3, 10, 9, 0, tzinfo=APP_ZONEINFO))
        utc = datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc)
        self.assertEqual(as_app_aware(utc).hour, 9)

    @freeze_time('2025-03-05 02:00:00')
    def test_generator_uses_default_clock(self):
        snapshot = TimetableSnapshot.from_mapping(class_id=1, schedule={'wednesday': ['09:00', '11:00']}, recurrence='weekly')
        slots = OccurrenceGenerator().generate(snapshot, 0)
        self.assertEqual([slot.session_time for slot in slots], ['11:00'])


if __name__ == '__main__':
    unittest.main()
