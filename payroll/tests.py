from dataclasses import replace
from datetime import date
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from attendance.models import AttendanceRecord
from attendance.services import mark_attendance
from core.exceptions import (
    AdvanceLimitError,
    DataIntegrityError,
    FutureDateError,
    InvalidInputError,
    OverpaymentError,
)
from employees.models import Employee

from payroll.calculation import SalaryInput, calculate_salary, check_advance_limit
from payroll.ledger import (
    STATUS_OVERPAID,
    STATUS_PENDING,
    STATUS_SETTLED,
    payment_headroom,
    reconcile,
    recovery_note,
    recovery_schedule,
    validate_payment_amount,
)
from payroll.models import Advance, DepartmentRule, Payment, Payroll
from payroll.rules import default_rules, ensure_default_rules, get_rules, shift_presets, standard_hours_for
from payroll.services import (
    OUTCOME_OK,
    OUTCOME_SKIPPED,
    PayrollCalculationService,
    bulk_mark_paid,
    cancel_overpayment_recovery,
    get_payroll_balance,
    lock_payroll,
    mark_payroll_paid,
    recompute_payroll,
    record_advance,
    record_payment,
    safe_recompute_payroll,
    schedule_overpayment_recovery,
    update_payment,
)
from payroll.signals import RECOMPUTE_TRIGGERS

WORKSHOP = Employee.DEPARTMENT_WORKSHOP
ENAMEL = Employee.DEPARTMENT_ENAMEL
GUARDS = Employee.DEPARTMENT_GUARDS


def day(day_of_month, status="present", overtime="0", undertime="0", shift="regular", year=2025, month=6):
    return {
        "attendance_date": date(year, month, day_of_month),
        "status": status,
        "overtime_hours": Decimal(overtime),
        "undertime_hours": Decimal(undertime),
        "shift_type": shift,
    }


def salary_input(department=WORKSHOP, base="30000", records=(), advance="0", overtime_rate=None,
                 rules=None, year=2025, month=6):
    return SalaryInput(
        base_salary=Decimal(base),
        overtime_rate=overtime_rate,
        department=department,
        year=year,
        month=month,
        rules=rules or default_rules(department),
        attendance_records=list(records),
        advance_amount=Decimal(advance),
    )


class DepartmentRuleTests(TestCase):
    def test_missing_rule_falls_back_to_defaults(self):
        rules = get_rules(ENAMEL)
        self.assertEqual(rules.day_shift_hours, Decimal("11"))
        self.assertEqual(rules.night_shift_hours, Decimal("13"))
        self.assertEqual(get_rules(WORKSHOP).standard_hours_per_day, Decimal("8.5"))
        self.assertEqual(get_rules(GUARDS).standard_hours_per_day, Decimal("8"))
        self.assertTrue(get_rules(GUARDS).is_exempt_from_deductions)

    def test_persisted_rule_overrides_defaults(self):
        DepartmentRule.objects.create(department=WORKSHOP, max_advance_percentage=Decimal("25.00"))
        self.assertEqual(get_rules(WORKSHOP).max_advance_percentage, Decimal("25.00"))

    def test_unknown_department_is_integrity_error(self):
        with self.assertRaises(DataIntegrityError):
            get_rules("Kitchen")

    def test_seeding_creates_one_row_per_department(self):
        self.assertEqual(ensure_default_rules(), len(Employee.DEPARTMENTS))
        self.assertEqual(ensure_default_rules(), 0)
        self.assertEqual(DepartmentRule.objects.get(department=ENAMEL).night_shift_hours, Decimal("13.00"))

    def test_shift_presets(self):
        rules = default_rules(ENAMEL)
        check_in, check_out = shift_presets(ENAMEL, "night", rules)
        self.assertEqual((check_in.isoformat(), check_out.isoformat()), ("19:00:00", "08:00:00"))
        check_in, check_out = shift_presets(ENAMEL, "day", rules)
        self.assertEqual((check_in.isoformat(), check_out.isoformat()), ("08:00:00", "19:00:00"))
        check_in, check_out = shift_presets(WORKSHOP, "regular", default_rules(WORKSHOP))
        self.assertEqual((check_in.isoformat(), check_out.isoformat()), ("08:30:00", "17:00:00"))
        self.assertIsNone(shift_presets(GUARDS, "regular", default_rules(GUARDS)))

    def test_standard_hours_only_split_by_shift_for_enamel(self):
        rules = default_rules(WORKSHOP)
        self.assertEqual(standard_hours_for(WORKSHOP, "night", rules), Decimal("8.5"))
        self.assertEqual(standard_hours_for(ENAMEL, "regular", default_rules(ENAMEL)), Decimal("11"))


class SalaryCalculationTests(SimpleTestCase):
    def test_per_day_rate_uses_calendar_days(self):
        base = Decimal("30000")
        rates = {}
        for year, month, days in [(2024, 2, 29), (2025, 2, 28), (2025, 1, 31), (2025, 6, 30)]:
            breakdown = calculate_salary(salary_input(base=str(base), year=year, month=month))
            self.assertEqual(breakdown.total_days, days)
            self.assertAlmostEqual(breakdown.per_day_salary * days, base, places=6)
            rates[(year, month)] = breakdown.per_day_salary
        self.assertNotEqual(rates[(2025, 2)], rates[(2025, 1)])
        self.assertNotEqual(rates[(2024, 2)], rates[(2025, 2)])

    def test_full_workshop_month(self):
        records = [day(d) for d in range(1, 27)]
        records += [day(27, "absent"), day(28, "absent"), day(29, "leave"), day(30, "leave")]
        breakdown = calculate_salary(salary_input(base="30000", records=records, advance="2000"))

        self.assertEqual(breakdown.present_days, 26)
        self.assertEqual(breakdown.absent_days, 2)
        self.assertEqual(breakdown.leave_days, 2)
        self.assertEqual(breakdown.holiday_days, 0)
        self.assertEqual(breakdown.per_day_salary, Decimal("1000"))
        self.assertEqual(breakdown.earned_salary, Decimal("26000"))
        self.assertEqual(breakdown.overtime_pay, Decimal("0"))
        self.assertEqual(breakdown.undertime_deduction, Decimal("0"))
        self.assertEqual(breakdown.final_salary, Decimal("24000"))

    def test_enamel_day_shift_overtime_uses_day_baseline(self):
        # 33000 / 30 days = 1100 per day, 100 per hour on an 11h day shift
        breakdown = calculate_salary(
            salary_input(ENAMEL, base="33000", records=[day(2, overtime="2", shift="day")])
        )
        self.assertEqual(breakdown.overtime_hours, Decimal("2"))
        self.assertEqual(breakdown.overtime_pay, Decimal("300"))
        self.assertEqual(breakdown.final_salary, Decimal("1400"))

    def test_enamel_night_shift_uses_night_baseline_and_multiplier(self):
        rules = replace(default_rules(ENAMEL), night_shift_multiplier=Decimal("2"))
        # 39000 / 30 = 1300 per day, 100 per hour on a 13h night shift
        breakdown = calculate_salary(
            salary_input(ENAMEL, base="39000", rules=rules, records=[day(2, overtime="1", shift="night")])
        )
        self.assertEqual(breakdown.overtime_pay, Decimal("200"))

    def test_overtime_capped_by_daily_maximum_times_present_days(self):
        # 25500 / 30 = 850 per day, 100 per hour on an 8.5h day
        breakdown = calculate_salary(salary_input(base="25500", records=[day(2, overtime="6")]))
        self.assertEqual(breakdown.overtime_hours, Decimal("4"))
        self.assertEqual(breakdown.overtime_pay, Decimal("600"))

    def test_employee_overtime_rate_replaces_derived_wage(self):
        breakdown = calculate_salary(
            salary_input(base="25500", records=[day(2, overtime="2")], overtime_rate=Decimal("250"))
        )
        self.assertEqual(breakdown.overtime_pay, Decimal("500"))
        self.assertEqual(breakdown.overtime_rate, Decimal("250"))

    def test_undertime_is_deducted_without_multiplier(self):
        breakdown = calculate_salary(salary_input(base="25500", records=[day(2, undertime="2")]))
        self.assertEqual(breakdown.undertime_hours, Decimal("2"))
        self.assertEqual(breakdown.undertime_deduction, Decimal("200"))
        self.assertEqual(breakdown.final_salary, Decimal("650"))

    def test_departments_outside_allowlist_get_no_overtime_or_undertime(self):
        for department in [GUARDS, Employee.DEPARTMENT_COOKS, Employee.DEPARTMENT_DIRECTORS]:
            rules = replace(default_rules(department), is_exempt_from_overtime=False,
                            is_exempt_from_deductions=False)
            breakdown = calculate_salary(
                salary_input(department, rules=rules, records=[day(2, overtime="3"), day(3, undertime="2")])
            )
            self.assertEqual(breakdown.overtime_hours, 0)
            self.assertEqual(breakdown.undertime_hours, 0)
            self.assertEqual(breakdown.overtime_pay, 0)
            self.assertEqual(breakdown.undertime_deduction, 0)

    def test_exemption_flags_gate_allowlisted_departments(self):
        rules = replace(default_rules(WORKSHOP), is_exempt_from_overtime=True, is_exempt_from_deductions=True)
        breakdown = calculate_salary(
            salary_input(base="25500", rules=rules, records=[day(2, overtime="2"), day(3, undertime="2")])
        )
        self.assertEqual(breakdown.overtime_pay, 0)
        self.assertEqual(breakdown.undertime_hours, Decimal("2"))
        self.assertEqual(breakdown.undertime_deduction, 0)

    def test_final_salary_is_not_clamped(self):
        breakdown = calculate_salary(salary_input(base="30000", records=[day(1)], advance="5000"))
        self.assertEqual(breakdown.final_salary, Decimal("-4000"))

    def test_records_outside_period_are_ignored(self):
        records = [day(1), day(31, month=5), day(1, month=7)]
        breakdown = calculate_salary(salary_input(records=records))
        self.assertEqual(breakdown.present_days, 1)

    def test_negative_money_is_rejected(self):
        with self.assertRaises(InvalidInputError):
            calculate_salary(salary_input(base="-1"))
        with self.assertRaises(InvalidInputError):
            calculate_salary(salary_input(overtime_rate=Decimal("-5")))
        with self.assertRaises(InvalidInputError):
            calculate_salary(salary_input(advance="-100"))

    def test_record_with_overtime_and_undertime_is_integrity_error(self):
        with self.assertRaises(DataIntegrityError):
            calculate_salary(salary_input(records=[day(2, overtime="1", undertime="1")]))

    def test_unknown_status_is_integrity_error(self):
        with self.assertRaises(DataIntegrityError):
            calculate_salary(salary_input(records=[day(2, status="sick")]))

    def test_payroll_fields_are_rounded_consistently(self):
        breakdown = calculate_salary(
            salary_input(base="30000", year=2025, month=2,
                         records=[day(3, year=2025, month=2), day(4, undertime="1", year=2025, month=2)],
                         advance="100")
        )
        fields = breakdown.as_payroll_fields()
        self.assertEqual(fields["earned_salary"], Decimal("2142.86"))
        self.assertEqual(
            fields["final_salary"],
            fields["earned_salary"] + fields["overtime_pay"] - fields["undertime_deduction"] - fields["advance_amount"],
        )
        self.assertEqual(fields["absence_deduction"], fields["undertime_deduction"])


class AdvanceLimitTests(SimpleTestCase):
    def test_thirty_percent_cap(self):
        rules = replace(default_rules(GUARDS), max_advance_percentage=Decimal("30"))
        self.assertEqual(check_advance_limit(Decimal("30000"), Decimal("9000"), rules), Decimal("0"))
        with self.assertRaises(AdvanceLimitError) as ctx:
            check_advance_limit(Decimal("30000"), Decimal("9001"), rules)
        self.assertEqual(ctx.exception.max_allowed, Decimal("9000"))

    def test_existing_advances_count_towards_cap(self):
        rules = default_rules(WORKSHOP)
        with self.assertRaises(AdvanceLimitError) as ctx:
            check_advance_limit(Decimal("10000"), Decimal("3001"), rules, already_advanced=Decimal("2000"))
        self.assertEqual(ctx.exception.max_allowed, Decimal("3000"))

    def test_negative_gross_allows_nothing(self):
        with self.assertRaises(AdvanceLimitError):
            check_advance_limit(Decimal("-500"), Decimal("1"), default_rules(WORKSHOP))


class LedgerTests(SimpleTestCase):
    def test_pending_balance_is_floored(self):
        balance = reconcile(Decimal("1000.75"), [Decimal("200")])
        self.assertEqual(balance.total_paid, Decimal("200"))
        self.assertEqual(balance.balance, Decimal("800.75"))
        self.assertEqual(balance.display_balance, Decimal("800"))
        self.assertEqual(balance.status, STATUS_PENDING)

    def test_fractional_remainder_counts_as_settled(self):
        self.assertEqual(reconcile(Decimal("1000.40"), [{"amount": "1000"}]).status, STATUS_SETTLED)
        self.assertEqual(reconcile(Decimal("1000"), [Decimal("1000.50")]).status, STATUS_SETTLED)

    def test_overpaid_keeps_sign_and_floors_magnitude(self):
        balance = reconcile(Decimal("1000"), [Decimal("1000"), Decimal("500.70")])
        self.assertEqual(balance.balance, Decimal("-500.70"))
        self.assertEqual(balance.display_balance, Decimal("-500"))
        self.assertEqual(balance.status, STATUS_OVERPAID)
        self.assertTrue(balance.is_overpaid)

    def test_display_balance_is_stable(self):
        for final, paid in [("1000.99", "0"), ("50", "75.5"), ("0", "0")]:
            first = reconcile(Decimal(final), [Decimal(paid)])
            second = reconcile(first.display_balance, [])
            self.assertEqual(second.display_balance, first.display_balance)

    def test_payment_beyond_final_salary_is_rejected(self):
        with self.assertRaises(OverpaymentError) as ctx:
            validate_payment_amount(Decimal("50000"), Decimal("50000"), Decimal("0.01"))
        self.assertEqual(ctx.exception.max_allowed, Decimal("0"))
        self.assertIn("Max remaining: 0", ctx.exception.message)

    def test_payment_headroom_is_floored(self):
        self.assertEqual(payment_headroom(Decimal("1000.90"), Decimal("0")), Decimal("1000"))
        self.assertEqual(payment_headroom(Decimal("100"), Decimal("250")), Decimal("0"))
        self.assertEqual(validate_payment_amount(Decimal("1000.90"), Decimal("0"), Decimal("999.5")), Decimal("999.50"))
        self.assertEqual(validate_payment_amount(Decimal("1000.90"), Decimal("0"), Decimal("999.995")), Decimal("1000.00"))
        with self.assertRaises(OverpaymentError):
            validate_payment_amount(Decimal("1000.90"), Decimal("0"), Decimal("1000.01"))

    def test_non_positive_payment_is_invalid(self):
        for amount in ["0", "-10", "0.004"]:
            with self.assertRaises(InvalidInputError):
                validate_payment_amount(Decimal("1000"), Decimal("0"), Decimal(amount))

    def test_recovery_schedule_targets_first_of_next_month(self):
        plan = recovery_schedule(12, 2024, Decimal("-1500.60"))
        self.assertEqual(plan.advance_date, date(2025, 1, 1))
        self.assertEqual(plan.amount, Decimal("1500"))
        self.assertEqual(plan.note, "Recovery of overpayment for 12/2024")
        self.assertIsNone(recovery_schedule(6, 2025, Decimal("10")))
        self.assertIsNone(recovery_schedule(6, 2025, Decimal("-0.40")))


class PayrollServiceTestCase(TestCase):
    year = 2025
    month = 6
    today = date(2025, 7, 15)

    def setUp(self):
        # 25500 / 30 days = 850 per day
        self.employee = self._employee("W-001", WORKSHOP, "25500")

    def _employee(self, code, department, base, **extra):
        extra.setdefault("joining_date", date(2025, 1, 1))
        return Employee.objects.create(
            employee_id=code,
            name=f"Employee {code}",
            department=department,
            base_salary=Decimal(base),
            **extra,
        )

    def _present(self, day_of_month, employee=None, check_in="08:30", check_out="17:00", month=None):
        return mark_attendance(
            employee or self.employee,
            date(self.year, month or self.month, day_of_month),
            AttendanceRecord.STATUS_PRESENT,
            check_in_time=check_in,
            check_out_time=check_out,
        )

    def _generate(self, employee=None, month=None):
        service = PayrollCalculationService(self.year, month or self.month, today=self.today)
        return service.generate(employee or self.employee)


class PayrollLifecycleTests(PayrollServiceTestCase):
    def test_generate_creates_pending_snapshot(self):
        self._present(2)
        self._present(3)
        result = self._generate()

        self.assertEqual(result.outcome, OUTCOME_OK)
        payroll = result.payroll
        self.assertEqual(payroll.status, Payroll.STATUS_PENDING)
        self.assertEqual(payroll.total_days, 30)
        self.assertEqual(payroll.present_days, 2)
        self.assertEqual(payroll.base_salary, Decimal("25500"))
        self.assertEqual(payroll.earned_salary, Decimal("1700.00"))
        self.assertEqual(payroll.final_salary, Decimal("1700.00"))

    def test_generate_upserts_single_row(self):
        self._present(2)
        self._generate()
        self._present(3)
        self._generate()
        payrolls = Payroll.objects.filter(employee=self.employee, year=self.year, month=self.month)
        self.assertEqual(payrolls.count(), 1)
        self.assertEqual(payrolls.get().present_days, 2)

    def test_generate_updates_row_inserted_after_lookup(self):
        self._present(2)
        service = PayrollCalculationService(self.year, self.month, today=self.today)
        payroll_values = service.payroll_values

        def values_after_concurrent_insert(employee):
            values = payroll_values(employee)
            Payroll.objects.create(employee=employee, year=self.year, month=self.month, **values)
            return values

        with mock.patch.object(service, "payroll_values", side_effect=values_after_concurrent_insert):
            result = service.generate(self.employee)

        self.assertEqual(result.outcome, OUTCOME_OK)
        payrolls = Payroll.objects.filter(employee=self.employee, year=self.year, month=self.month)
        self.assertEqual(payrolls.count(), 1)
        self.assertEqual(payrolls.get().status, Payroll.STATUS_PENDING)

    def test_generate_rejects_future_month(self):
        service = PayrollCalculationService(2025, 8, today=self.today)
        with self.assertRaises(FutureDateError):
            service.generate(self.employee)
        self.assertFalse(Payroll.objects.exists())

    def test_generate_skips_paid_payroll(self):
        self._present(2)
        payroll = self._generate().payroll
        mark_payroll_paid(payroll)
        self._present(3)

        result = self._generate()
        self.assertEqual(result.outcome, OUTCOME_SKIPPED)
        result.payroll.refresh_from_db()
        self.assertEqual(result.payroll.present_days, 1)

    def test_run_covers_active_employees_of_department(self):
        self._employee("W-002", WORKSHOP, "20000")
        self._employee("G-001", GUARDS, "20000")
        self._employee("W-003", WORKSHOP, "20000", is_active=False)
        self._employee("W-004", WORKSHOP, "20000", joining_date=date(2025, 9, 1))

        results = PayrollCalculationService(self.year, self.month, today=self.today).run(department=WORKSHOP)
        codes = sorted(result.payroll.employee.employee_id for result in results)
        self.assertEqual(codes, ["W-001", "W-002"])

    def test_run_rejects_unknown_department(self):
        with self.assertRaises(InvalidInputError):
            PayrollCalculationService(self.year, self.month, today=self.today).run(department="Kitchen")

    def test_status_is_never_downgraded(self):
        payroll = self._generate().payroll
        lock_payroll(payroll)
        with self.assertRaises(InvalidInputError):
            mark_payroll_paid(payroll)
        payroll.refresh_from_db()
        self.assertEqual(payroll.status, Payroll.STATUS_LOCKED)

    def test_bulk_mark_paid_only_settled(self):
        self._present(2)
        settled = self._generate().payroll
        record_payment(settled, Decimal("1700"), payment_date=date(2025, 7, 1), current_date=self.today)

        other = self._employee("W-002", WORKSHOP, "25500")
        self._present(2, employee=other)
        unsettled = self._generate(employee=other).payroll

        marked = bulk_mark_paid(self.year, self.month)
        self.assertEqual([p.pk for p in marked], [settled.pk])
        unsettled.refresh_from_db()
        self.assertEqual(unsettled.status, Payroll.STATUS_PENDING)

        bulk_mark_paid(self.year, self.month, settled_only=False)
        unsettled.refresh_from_db()
        self.assertEqual(unsettled.status, Payroll.STATUS_PAID)


class PayrollRecomputeTests(PayrollServiceTestCase):
    def test_triggers_cover_advances_and_attendance(self):
        self.assertEqual(RECOMPUTE_TRIGGERS[Advance], "advance_date")
        self.assertEqual(RECOMPUTE_TRIGGERS[AttendanceRecord], "attendance_date")

    def test_attendance_change_refreshes_pending_payroll(self):
        self._present(2)
        payroll = self._generate().payroll

        with self.captureOnCommitCallbacks(execute=True):
            self._present(3)
        payroll.refresh_from_db()
        self.assertEqual(payroll.present_days, 2)
        self.assertEqual(payroll.final_salary, Decimal("1700.00"))

        record = AttendanceRecord.objects.get(employee=self.employee, attendance_date=date(2025, 6, 3))
        with self.captureOnCommitCallbacks(execute=True):
            record.delete()
        payroll.refresh_from_db()
        self.assertEqual(payroll.present_days, 1)

    def test_recompute_is_suppressed_for_paid_payroll(self):
        self._present(2)
        payroll = self._generate().payroll
        mark_payroll_paid(payroll)

        with self.captureOnCommitCallbacks(execute=True):
            self._present(3)
        payroll.refresh_from_db()
        self.assertEqual(payroll.present_days, 1)

    def test_moving_advance_refreshes_both_months(self):
        self._present(2)
        self._present(3)
        june = self._generate().payroll
        may = self._generate(month=5).payroll

        with self.captureOnCommitCallbacks(execute=True):
            advance = record_advance(self.employee, Decimal("500"), advance_date=date(2025, 6, 10),
                                     current_date=self.today)
        june.refresh_from_db()
        self.assertEqual(june.advance_amount, Decimal("500.00"))
        self.assertEqual(june.final_salary, Decimal("1200.00"))

        advance.advance_date = date(2025, 5, 20)
        with self.captureOnCommitCallbacks(execute=True):
            advance.save()
        june.refresh_from_db()
        may.refresh_from_db()
        self.assertEqual(june.advance_amount, Decimal("0.00"))
        self.assertEqual(may.advance_amount, Decimal("500.00"))
        self.assertEqual(may.final_salary, Decimal("-500.00"))

    def test_rule_change_refreshes_pending_payrolls(self):
        self._present(2, check_out="16:30")
        payroll = self._generate().payroll
        self.assertEqual(payroll.undertime_deduction, Decimal("50.00"))

        with self.captureOnCommitCallbacks(execute=True):
            DepartmentRule.objects.create(
                department=WORKSHOP,
                is_exempt_from_deductions=True,
                standard_hours_per_day=Decimal("8.5"),
                day_shift_hours=Decimal("8.5"),
                night_shift_hours=Decimal("8.5"),
            )
        payroll.refresh_from_db()
        self.assertEqual(payroll.undertime_deduction, Decimal("0.00"))

    def _workshop_rule(self, hours):
        return DepartmentRule.objects.create(
            department=WORKSHOP,
            standard_hours_per_day=Decimal(hours),
            day_shift_hours=Decimal(hours),
            night_shift_hours=Decimal(hours),
        )

    def test_changed_standard_hours_rederive_undertime(self):
        record = self._present(2)
        payroll = self._generate().payroll
        self.assertEqual(payroll.undertime_hours, Decimal("0.00"))

        with self.captureOnCommitCallbacks(execute=True):
            self._workshop_rule("9.5")

        payroll.refresh_from_db()
        # 850 per day / 9.5 hours
        self.assertEqual(payroll.hourly_rate, Decimal("89.4737"))
        self.assertEqual(payroll.undertime_hours, Decimal("1.00"))
        self.assertEqual(payroll.undertime_deduction, Decimal("89.47"))
        self.assertEqual(payroll.final_salary, Decimal("760.53"))
        record.refresh_from_db()
        self.assertEqual(record.undertime_hours, Decimal("1.00"))

    def test_generate_uses_current_rules_for_stored_hours(self):
        self._present(2, check_in="08:00", check_out="18:00")
        self._workshop_rule("10")
        AttendanceRecord.objects.filter(employee=self.employee).update(overtime_hours=Decimal("1.50"))

        payroll = self._generate().payroll
        self.assertEqual(payroll.overtime_hours, Decimal("0.00"))
        self.assertEqual(payroll.undertime_hours, Decimal("0.00"))

    def test_rule_change_leaves_paid_months_alone(self):
        record = self._present(2)
        payroll = self._generate().payroll
        mark_payroll_paid(payroll)

        with self.captureOnCommitCallbacks(execute=True):
            self._workshop_rule("9.5")

        record.refresh_from_db()
        payroll.refresh_from_db()
        self.assertEqual(record.undertime_hours, Decimal("0.00"))
        self.assertEqual(payroll.undertime_hours, Decimal("0.00"))
        self.assertEqual(payroll.status, Payroll.STATUS_PAID)

    def test_recompute_without_payroll_is_noop(self):
        self._present(2)
        self.assertIsNone(recompute_payroll(self.employee.pk, self.year, self.month))
        self.assertFalse(Payroll.objects.exists())

    def test_background_recompute_failure_is_logged(self):
        with mock.patch("payroll.services.recompute_payroll", side_effect=RuntimeError("boom")):
            with self.assertLogs("payroll.services", level="ERROR") as logs:
                self.assertIsNone(safe_recompute_payroll(self.employee.pk, self.year, self.month))
        self.assertIn("Payroll recompute failed", logs.output[0])


class AdvanceTests(PayrollServiceTestCase):
    def test_advance_is_rounded_to_whole_units(self):
        self._present(2)
        advance = record_advance(self.employee, "300.5", advance_date=date(2025, 6, 10), current_date=self.today)
        self.assertEqual(advance.amount, Decimal("301"))

    def test_cap_includes_existing_advances(self):
        # Two present days: gross 1700, 50% cap = 850
        self._present(2)
        self._present(3)
        record_advance(self.employee, Decimal("500"), advance_date=date(2025, 6, 10), current_date=self.today)
        with self.assertRaises(AdvanceLimitError) as ctx:
            record_advance(self.employee, Decimal("400"), advance_date=date(2025, 6, 11), current_date=self.today)
        self.assertEqual(ctx.exception.max_allowed, Decimal("350"))
        self.assertEqual(Advance.objects.count(), 1)

    def test_rejects_inactive_future_and_non_positive(self):
        self._present(2)
        with self.assertRaises(FutureDateError):
            record_advance(self.employee, Decimal("100"), advance_date=date(2025, 7, 16), current_date=self.today)
        with self.assertRaises(InvalidInputError):
            record_advance(self.employee, Decimal("0"), advance_date=date(2025, 6, 10), current_date=self.today)

        self.employee.is_active = False
        self.employee.save()
        with self.assertRaises(InvalidInputError):
            record_advance(self.employee, Decimal("100"), advance_date=date(2025, 6, 10), current_date=self.today)
        self.assertFalse(Advance.objects.exists())


class PaymentTests(PayrollServiceTestCase):
    def setUp(self):
        super().setUp()
        self._present(2)
        self._present(3)
        self.payroll = self._generate().payroll

    def _pay(self, amount, payroll=None):
        return record_payment(payroll or self.payroll, amount, payment_date=date(2025, 7, 1),
                              current_date=self.today)

    def test_payment_after_full_settlement_is_rejected(self):
        self._pay(Decimal("1700"))
        with self.assertRaises(OverpaymentError) as ctx:
            self._pay(Decimal("0.01"))
        self.assertEqual(ctx.exception.max_allowed, Decimal("0"))
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(get_payroll_balance(self.payroll).status, STATUS_SETTLED)

    def test_payment_amount_keeps_cents(self):
        payment = self._pay(Decimal("100.6"))
        self.assertEqual(payment.amount, Decimal("100.60"))
        self.assertEqual(payment.employee, self.employee)

        payment = self._pay(Decimal("100.40"))
        payment.refresh_from_db()
        self.assertEqual(payment.amount, Decimal("100.40"))
        self.assertEqual(get_payroll_balance(self.payroll).total_paid, Decimal("201.00"))

        payment = self._pay(Decimal("0.005"))
        self.assertEqual(payment.amount, Decimal("0.01"))

    def test_update_excludes_the_payment_itself(self):
        payment = self._pay(Decimal("1000"))
        update_payment(payment, amount=Decimal("1700"), current_date=self.today)
        payment.refresh_from_db()
        self.assertEqual(payment.amount, Decimal("1700"))
        with self.assertRaises(OverpaymentError):
            update_payment(payment, amount=Decimal("1701"), current_date=self.today)

    def test_future_payment_is_rejected(self):
        with self.assertRaises(FutureDateError):
            record_payment(self.payroll, Decimal("100"), payment_date=date(2025, 7, 20), current_date=self.today)

    def test_payments_do_not_trigger_recompute(self):
        with self.captureOnCommitCallbacks() as callbacks:
            self._pay(Decimal("100"))
        self.assertEqual(callbacks, [])


class OverpaymentRecoveryTests(PayrollServiceTestCase):
    def setUp(self):
        super().setUp()
        self._present(2)
        self._present(3)
        self.payroll = self._generate().payroll
        record_payment(self.payroll, Decimal("1700"), payment_date=date(2025, 7, 1), current_date=self.today)
        with self.captureOnCommitCallbacks(execute=True):
            record_advance(self.employee, Decimal("500"), advance_date=date(2025, 6, 20), current_date=self.today)
        self.payroll.refresh_from_db()

    def _recovery_advances(self):
        return Advance.objects.filter(employee=self.employee, notes=recovery_note(6, 2025))

    def test_overpaid_after_advance(self):
        self.assertEqual(self.payroll.final_salary, Decimal("1200.00"))
        balance = get_payroll_balance(self.payroll)
        self.assertEqual(balance.status, STATUS_OVERPAID)
        self.assertEqual(balance.display_balance, Decimal("-500"))

    def test_scheduling_twice_keeps_one_recovery_advance(self):
        first = schedule_overpayment_recovery(self.payroll)
        second = schedule_overpayment_recovery(self.payroll)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(self._recovery_advances().count(), 1)
        self.assertEqual(first.advance_date, date(2025, 7, 1))
        self.assertEqual(first.amount, Decimal("500"))

    def test_rescheduling_replaces_amount(self):
        schedule_overpayment_recovery(self.payroll)
        Payment.objects.filter(payroll=self.payroll).update(amount=Decimal("1900"))

        advance = schedule_overpayment_recovery(self.payroll)
        self.assertEqual(self._recovery_advances().count(), 1)
        self.assertEqual(advance.amount, Decimal("700"))

    def test_cancel_removes_recovery_advance(self):
        schedule_overpayment_recovery(self.payroll)
        self.assertEqual(cancel_overpayment_recovery(self.payroll), 1)
        self.assertFalse(self._recovery_advances().exists())

    def test_nothing_scheduled_when_not_overpaid(self):
        Payment.objects.filter(payroll=self.payroll).update(amount=Decimal("1000"))
        self.assertIsNone(schedule_overpayment_recovery(self.payroll))
        self.assertFalse(self._recovery_advances().exists())


class PayrollApiTests(PayrollServiceTestCase):
    def setUp(self):
        super().setUp()
        user = get_user_model().objects.create_user(username="payroll", password="pass")
        self.client = APIClient()
        self.client.force_authenticate(user)

    def test_generate_endpoint(self):
        self._present(2)
        response = self.client.post(
            "/api/payroll/generate/",
            {"year": self.year, "month": self.month, "department": WORKSHOP},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["processed"], 1)
        self.assertEqual(response.data["data"]["results"][0]["outcome"], OUTCOME_OK)

    def test_overpayment_returns_remaining_headroom(self):
        self._present(2)
        payroll = self._generate().payroll
        response = self.client.post(
            "/api/payroll/payments/",
            {"payroll": str(payroll.pk), "amount": "900", "payment_date": "2025-07-01"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["max_allowed"], "850")

    def test_rule_update_refreshes_pending_payroll(self):
        self._present(2)
        payroll = self._generate().payroll
        self.assertEqual(payroll.undertime_deduction, Decimal("0.00"))

        response = self.client.get("/api/payroll/rules/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(len(response.data["data"]), len(Employee.DEPARTMENTS))

        rule = DepartmentRule.objects.get(department=WORKSHOP)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(
                f"/api/payroll/rules/{rule.pk}/",
                {"standard_hours_per_day": "9.5"},
                format="json",
            )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["standard_hours_per_day"], "9.50")

        payroll.refresh_from_db()
        self.assertEqual(payroll.undertime_hours, Decimal("1.00"))
        self.assertEqual(payroll.undertime_deduction, Decimal("89.47"))

    def test_balance_endpoint(self):
        self._present(2)
        payroll = self._generate().payroll
        response = self.client.get(f"/api/payroll/payrolls/{payroll.pk}/balance/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["status"], STATUS_PENDING)
        self.assertEqual(response.data["data"]["display_balance"], "850")
