from datetime import date, datetime, time
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from core.exceptions import AuthenticationError, DataIntegrityError, FutureDateError, InvalidInputError
from employees.models import Employee

from .models import AttendanceRecord
from .services import (
    AttendanceDay,
    BiometricScan,
    aggregate_attendance,
    biometric_check_in,
    biometric_check_out,
    bulk_mark_attendance,
    compute_hours_worked,
    derive_hours,
    mark_attendance,
    split_overtime,
)


class HoursWorkedTests(SimpleTestCase):
    def test_night_shift_wraps_past_midnight(self):
        self.assertEqual(compute_hours_worked("19:00", "08:00", "night"), Decimal("13.00"))
        self.assertEqual(compute_hours_worked(time(22, 30), time(6, 15)), Decimal("7.75"))

    def test_same_day_shift(self):
        self.assertEqual(compute_hours_worked("08:30", "17:00", "regular"), Decimal("8.50"))
        self.assertEqual(compute_hours_worked("08:00:00", "08:20:00"), Decimal("0.33"))

    def test_missing_time_counts_as_zero(self):
        self.assertEqual(compute_hours_worked("08:00", None), Decimal("0.00"))
        self.assertEqual(compute_hours_worked("", "17:00"), Decimal("0.00"))

    def test_malformed_input_is_rejected(self):
        with self.assertRaises(InvalidInputError):
            compute_hours_worked("8 o'clock", "17:00")
        with self.assertRaises(InvalidInputError):
            compute_hours_worked("08:00", "17:00", "evening")

    def test_overtime_and_undertime_are_exclusive(self):
        standard = Decimal("8.5")
        for worked in ["0", "4.25", "8.49", "8.5", "8.51", "10", "16"]:
            overtime, undertime = split_overtime(Decimal(worked), standard, Decimal("4"))
            self.assertTrue(overtime == 0 or undertime == 0, worked)
            self.assertGreaterEqual(overtime, 0)
            self.assertGreaterEqual(undertime, 0)
        self.assertEqual(split_overtime(Decimal("16"), standard, Decimal("4")), (Decimal("4.00"), Decimal("0.00")))
        self.assertEqual(split_overtime(Decimal("8"), standard, Decimal("4")), (Decimal("0.00"), Decimal("0.50")))


class AggregationTests(SimpleTestCase):
    def test_every_record_lands_in_one_bucket(self):
        records = [
            {"attendance_date": date(2025, 6, 1), "status": "present", "overtime_hours": "1.5", "hours_worked": "10"},
            {"attendance_date": date(2025, 6, 2), "status": "present", "undertime_hours": "0.5", "hours_worked": "8"},
            {"attendance_date": date(2025, 6, 3), "status": "absent"},
            {"attendance_date": "2025-06-04", "status": "leave"},
            AttendanceDay(attendance_date=date(2025, 6, 5), status="holiday"),
        ]
        summary = aggregate_attendance(records)
        self.assertEqual(
            (summary.present_days, summary.absent_days, summary.leave_days, summary.holiday_days),
            (2, 1, 1, 1),
        )
        self.assertEqual(summary.total_overtime_hours, Decimal("1.5"))
        self.assertEqual(summary.total_undertime_hours, Decimal("0.5"))
        self.assertEqual(summary.total_hours_worked, Decimal("18"))

    def test_unknown_status_is_integrity_error(self):
        with self.assertRaises(DataIntegrityError):
            aggregate_attendance([{"attendance_date": date(2025, 6, 1), "status": "remote"}])


class AttendanceTestCase(TestCase):
    def setUp(self):
        self.workshop = self._employee("W-001", Employee.DEPARTMENT_WORKSHOP)
        self.enamel = self._employee("E-001", Employee.DEPARTMENT_ENAMEL, biometric_credential_id="cred-e1")
        self.guard = self._employee("G-001", Employee.DEPARTMENT_GUARDS)

    def _employee(self, code, department, **extra):
        extra.setdefault("joining_date", date(2025, 1, 1))
        return Employee.objects.create(
            employee_id=code,
            name=f"Employee {code}",
            department=department,
            base_salary=Decimal("30000"),
            **extra,
        )


class MarkAttendanceTests(AttendanceTestCase):
    def test_enamel_day_shift_overtime(self):
        record = mark_attendance(
            self.enamel, date(2025, 6, 2), "present",
            check_in_time="08:00", check_out_time="21:00", shift_type="day",
        )
        self.assertEqual(record.hours_worked, Decimal("13.00"))
        self.assertEqual(record.overtime_hours, Decimal("2.00"))
        self.assertEqual(record.undertime_hours, Decimal("0.00"))

    def test_enamel_night_shift_uses_night_baseline(self):
        record = mark_attendance(
            self.enamel, date(2025, 6, 2), "present",
            check_in_time="19:00", check_out_time="08:00", shift_type="night",
        )
        self.assertEqual(record.hours_worked, Decimal("13.00"))
        self.assertEqual(record.overtime_hours, Decimal("0.00"))
        self.assertEqual(record.undertime_hours, Decimal("0.00"))

    def test_overtime_capped_per_day(self):
        record = mark_attendance(
            self.workshop, date(2025, 6, 2), "present", check_in_time="06:00", check_out_time="22:00",
        )
        self.assertEqual(record.hours_worked, Decimal("16.00"))
        self.assertEqual(record.overtime_hours, Decimal("4.00"))

    def test_departments_outside_allowlist_store_no_overtime(self):
        record = mark_attendance(
            self.guard, date(2025, 6, 2), "present", check_in_time="06:00", check_out_time="22:00",
        )
        self.assertEqual(record.hours_worked, Decimal("16.00"))
        self.assertEqual(record.overtime_hours, Decimal("0.00"))
        self.assertEqual(record.undertime_hours, Decimal("0.00"))

    def test_remarking_overwrites_same_day(self):
        mark_attendance(self.workshop, date(2025, 6, 2), "present", check_in_time="08:30", check_out_time="16:00")
        record = mark_attendance(self.workshop, date(2025, 6, 2), "absent")
        self.assertEqual(AttendanceRecord.objects.filter(employee=self.workshop).count(), 1)
        self.assertEqual(record.status, "absent")
        self.assertEqual(record.undertime_hours, Decimal("0.00"))

    def test_rejections(self):
        with self.assertRaises(FutureDateError):
            mark_attendance(self.workshop, date(2025, 6, 11), "present", current_date=date(2025, 6, 10))
        with self.assertRaises(InvalidInputError):
            mark_attendance(self.workshop, date(2024, 12, 31), "present")
        with self.assertRaises(InvalidInputError):
            mark_attendance(self.workshop, date(2025, 6, 2), "sick")
        with self.assertRaises(InvalidInputError):
            mark_attendance(self.workshop, "2025-13-01", "present")

        self.workshop.is_active = False
        self.workshop.save()
        with self.assertRaises(InvalidInputError):
            mark_attendance(self.workshop, date(2025, 6, 2), "present")
        self.assertFalse(AttendanceRecord.objects.exists())

    def test_bulk_mark_is_all_or_nothing(self):
        late = self._employee("W-002", Employee.DEPARTMENT_WORKSHOP, joining_date=date(2025, 7, 1))
        with self.assertRaises(InvalidInputError):
            bulk_mark_attendance([self.workshop, late], date(2025, 6, 2), "present", check_in_time="08:30")
        self.assertFalse(AttendanceRecord.objects.exists())

    def test_bulk_mark_present(self):
        records = bulk_mark_attendance([self.workshop, self.guard], date(2025, 6, 2), "present", check_in_time="08:30")
        self.assertEqual(len(records), 2)
        for record in records:
            record.refresh_from_db()
            self.assertEqual(record.check_in_time, time(8, 30))
            self.assertIsNone(record.check_out_time)
            self.assertEqual(record.hours_worked, Decimal("0.00"))

    def test_bulk_mark_back_dated_present_leaves_check_in_open(self):
        records = bulk_mark_attendance([self.workshop], date(2025, 6, 2), "present", current_date=date(2025, 6, 10))
        records[0].refresh_from_db()
        self.assertIsNone(records[0].check_in_time)

        records = bulk_mark_attendance([self.workshop], date(2025, 6, 10), "present", current_date=date(2025, 6, 10))
        records[0].refresh_from_db()
        self.assertIsNotNone(records[0].check_in_time)

    def test_mark_updates_row_inserted_after_validation(self):
        def insert_then_derive(record, rules=None):
            AttendanceRecord.objects.get_or_create(
                employee=record.employee,
                attendance_date=record.attendance_date,
                defaults={"status": AttendanceRecord.STATUS_ABSENT},
            )
            return derive_hours(record, rules)

        with mock.patch("attendance.services.derive_hours", side_effect=insert_then_derive):
            record = mark_attendance(
                self.workshop, date(2025, 6, 2), "present", check_in_time="08:30", check_out_time="17:00",
            )

        self.assertEqual(AttendanceRecord.objects.filter(employee=self.workshop).count(), 1)
        record.refresh_from_db()
        self.assertEqual(record.status, "present")
        self.assertEqual(record.hours_worked, Decimal("8.50"))


class BiometricTests(AttendanceTestCase):
    def _at(self, year, month, day, hour, minute=0):
        return timezone.make_aware(datetime(year, month, day, hour, minute))

    def test_failed_scan_is_rejected(self):
        with self.assertRaises(AuthenticationError):
            biometric_check_in(BiometricScan(success=False), when=self._at(2025, 6, 2, 8))
        with self.assertRaises(AuthenticationError):
            biometric_check_in(BiometricScan(success=True, credential_id="unknown"), when=self._at(2025, 6, 2, 8))
        self.assertFalse(AttendanceRecord.objects.exists())

    def test_regular_check_in_and_out(self):
        scan = BiometricScan(success=True, employee=self.workshop)
        record = biometric_check_in(scan, when=self._at(2025, 6, 2, 8, 30))
        self.assertEqual(record.status, "present")
        self.assertEqual(record.shift_type, "regular")
        self.assertTrue(record.biometric_verified)

        with self.assertRaises(InvalidInputError):
            biometric_check_in(scan, when=self._at(2025, 6, 2, 9))

        record = biometric_check_out(scan, when=self._at(2025, 6, 2, 18))
        self.assertEqual(record.hours_worked, Decimal("9.50"))
        self.assertEqual(record.overtime_hours, Decimal("1.00"))

    def test_enamel_night_shift_checks_out_next_morning(self):
        scan = BiometricScan(success=True, credential_id="cred-e1")
        record = biometric_check_in(scan, when=self._at(2025, 6, 2, 19))
        self.assertEqual(record.employee, self.enamel)
        self.assertEqual(record.shift_type, "night")

        record = biometric_check_out(scan, when=self._at(2025, 6, 3, 8))
        self.assertEqual(record.attendance_date, date(2025, 6, 2))
        self.assertEqual(record.hours_worked, Decimal("13.00"))
        self.assertEqual(record.overtime_hours, Decimal("0.00"))

    def test_check_out_without_check_in(self):
        with self.assertRaises(InvalidInputError):
            biometric_check_out(BiometricScan(success=True, employee=self.workshop), when=self._at(2025, 6, 2, 17))
