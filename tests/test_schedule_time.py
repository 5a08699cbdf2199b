import unittest
from datetime import date, time

from notify_scheduler.core.schedule_time import (
    Weekday,
    iter_days,
    lookahead_window,
    parse_time_of_day,
    week_of_month,
    weeks_between,
)


class ScheduleTimeTests(unittest.TestCase):
    def test_weekday_from_date_and_parse(self):
        self.assertEqual(Weekday.from_date(date(2025, 3, 10)), Weekday.MONDAY)
        self.assertEqual(Weekday.from_date(date(2025, 3, 16)), Weekday.SUNDAY)
        self.assertEqual(Weekday.parse(' Friday '), Weekday.FRIDAY)
        self.assertIsNone(Weekday.parse('funday'))
        self.assertIsNone(Weekday.parse(3))

    def test_week_of_month(self):
        self.assertEqual(week_of_month(date(2025, 3, 1)), 1)
        self.assertEqual(week_of_month(date(2025, 3, 7)), 1)
        self.assertEqual(week_of_month(date(2025, 3, 8)), 2)
        self.assertEqual(week_of_month(date(2025, 3, 14)), 2)
        self.assertEqual(week_of_month(date(2025, 3, 29)), 5)

    def test_weeks_between_counts_monday_weeks(self):
        anchor = date(2025, 3, 5)  # Wednesday
        self.assertEqual(weeks_between(anchor, date(2025, 3, 9)), 0)
        self.assertEqual(weeks_between(anchor, date(2025, 3, 10)), 1)
        self.assertEqual(weeks_between(anchor, date(2025, 3, 17)), 2)

    def test_parse_time_of_day(self):
        self.assertEqual(parse_time_of_day('09:00'), time(9, 0))
        self.assertEqual(parse_time_of_day('9:05'), time(9, 5))
        self.assertEqual(parse_time_of_day('18:30:15'), time(18, 30, 15))
        self.assertEqual(parse_time_of_day('2025-03-10 07:45'), time(7, 45))
        self.assertIsNone(parse_time_of_day('25:00'))
        self.assertIsNone(parse_time_of_day('noon'))
        self.assertIsNone(parse_time_of_day(None))
        self.assertIsNone(parse_time_of_day(900))

    def test_lookahead_window_clamps_to_bounds(self):
        today = date(2025, 3, 5)
        self.assertEqual(lookahead_window(today, 7), (date(2025, 3, 5), date(2025, 3, 12)))
        self.assertEqual(
            lookahead_window(today, 7, start_date=date(2025, 3, 8), end_date=date(2025, 3, 10)),
            (date(2025, 3, 8), date(2025, 3, 10)),
        )
        self.assertEqual(lookahead_window(today, 0), (today, today))
        self.assertIsNone(lookahead_window(today, 7, end_date=date(2025, 3, 1)))
        self.assertIsNone(lookahead_window(today, 7, start_date=date(2025, 4, 1)))

    def test_lookahead_window_rejects_negative(self):
        with self.assertRaises(ValueError):
            lookahead_window(date(2025, 3, 5), -1)

    def test_iter_days_inclusive(self):
        days = list(iter_days(date(2025, 2, 27), date(2025, 3, 2)))
        self.assertEqual(days, [date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2)])


if __name__ == '__main__':
    unittest.main()
