from datetime import date

from django.test import SimpleTestCase

from .dates import (
    days_in_month,
    ensure_not_future_date,
    ensure_not_future_month,
    month_bounds,
    next_month,
    parse_date,
)
from .exceptions import FutureDateError, InvalidInputError, OverpaymentError


class DateHelperTests(SimpleTestCase):
    def test_month_arithmetic(self):
        self.assertEqual(days_in_month(2024, 2), 29)
        self.assertEqual(days_in_month(2025, 2), 28)
        self.assertEqual(month_bounds(2025, 4), (date(2025, 4, 1), date(2025, 4, 30)))
        self.assertEqual(next_month(2024, 12), (2025, 1))
        self.assertEqual(next_month(2025, 6), (2025, 7))

    def test_invalid_period_and_dates(self):
        with self.assertRaises(InvalidInputError):
            month_bounds(2025, 13)
        with self.assertRaises(InvalidInputError):
            parse_date('not-a-date')
        self.assertEqual(parse_date('2025-06-02'), date(2025, 6, 2))

    def test_future_guards(self):
        current = date(2025, 6, 15)
        ensure_not_future_date(date(2025, 6, 15), 'attendance', current)
        with self.assertRaises(FutureDateError):
            ensure_not_future_date(date(2025, 6, 16), 'attendance', current)
        ensure_not_future_month(2025, 6, current)
        with self.assertRaises(FutureDateError) as ctx:
            ensure_not_future_month(2025, 7, current)
        self.assertEqual(ctx.exception.message, 'Cannot generate payroll for future months.')


class ExceptionTests(SimpleTestCase):
    def test_overpayment_message_carries_limit(self):
        error = OverpaymentError(max_allowed=1200)
        self.assertEqual(error.message, 'Payment would exceed remaining salary. Max remaining: 1200')
        self.assertEqual(error.status_code, 400)
