"""
Pure salary calculation: one employee, one month, no database access.

Every report, dialog and persisted payroll goes through calculate_salary()
so the formulas exist in exactly one place.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Sequence

from attendance.models import AttendanceRecord
from attendance.services import AttendanceDay, aggregate_attendance
from core.dates import days_in_month, validate_period
from core.exceptions import AdvanceLimitError, DataIntegrityError, InvalidInputError

from .rules import (
    OVERTIME_DEPARTMENTS,
    DepartmentRules,
    overtime_multiplier_for,
    standard_hours_for,
)

ZERO = Decimal("0")
MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.0001")
HUNDRED = Decimal("100")


def _to_decimal(value, default=ZERO) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise InvalidInputError(f"Invalid amount: {value!r}")


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _round_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SalaryInput:
    base_salary: Decimal
    department: str
    year: int
    month: int
    rules: DepartmentRules
    attendance_records: Sequence = field(default_factory=tuple)
    overtime_rate: Optional[Decimal] = None
    advance_amount: Decimal = ZERO


@dataclass(frozen=True)
class SalaryBreakdown:
    year: int
    month: int
    total_days: int
    present_days: int
    absent_days: int
    leave_days: int
    holiday_days: int
    per_day_salary: Decimal
    hourly_rate: Decimal
    overtime_hours: Decimal
    overtime_rate: Decimal
    overtime_pay: Decimal
    undertime_hours: Decimal
    undertime_deduction: Decimal
    earned_salary: Decimal
    advance_amount: Decimal
    final_salary: Decimal

    @property
    def gross_salary(self) -> Decimal:
        """Earned pay adjusted by overtime and undertime, before advances."""
        return self.earned_salary + self.overtime_pay - self.undertime_deduction

    def as_payroll_fields(self) -> Dict[str, object]:
        """
        Values for a Payroll row. Money is rounded half-up to 0.01 and the
        final salary is re-derived from the rounded components so the stored
        row always satisfies final = earned + overtime - undertime - advance.
        """
        earned = _round_money(self.earned_salary)
        overtime_pay = _round_money(self.overtime_pay)
        undertime_deduction = _round_money(self.undertime_deduction)
        advance = _round_money(self.advance_amount)
        return {
            "total_days": self.total_days,
            "present_days": self.present_days,
            "absent_days": self.absent_days,
            "leave_days": self.leave_days,
            "holiday_days": self.holiday_days,
            "per_day_salary": _round_rate(self.per_day_salary),
            "hourly_rate": _round_rate(self.hourly_rate),
            "overtime_hours": _round_money(self.overtime_hours),
            "overtime_rate": _round_rate(self.overtime_rate),
            "overtime_pay": overtime_pay,
            "undertime_hours": _round_money(self.undertime_hours),
            "undertime_deduction": undertime_deduction,
            "absence_deduction": undertime_deduction,
            "earned_salary": earned,
            "advance_amount": advance,
            "final_salary": earned + overtime_pay - undertime_deduction - advance,
        }


def _records_in_period(records, year: int, month: int):
    days = []
    for record in records:
        day = AttendanceDay.from_record(record)
        if day.attendance_date.year != year or day.attendance_date.month != month:
            continue
        if day.overtime_hours < 0 or day.undertime_hours < 0:
            raise DataIntegrityError(f"Negative overtime/undertime hours on {day.attendance_date}.")
        if day.overtime_hours > 0 and day.undertime_hours > 0:
            raise DataIntegrityError(f"Attendance on {day.attendance_date} has both overtime and undertime.")
        days.append(day)
    return sorted(days, key=lambda d: d.attendance_date)


def calculate_salary(salary_input: SalaryInput) -> SalaryBreakdown:
    year, month = salary_input.year, salary_input.month
    validate_period(year, month)
    rules = salary_input.rules
    department = salary_input.department

    base_salary = _to_decimal(salary_input.base_salary)
    overtime_rate = _to_decimal(salary_input.overtime_rate)
    advance_amount = _to_decimal(salary_input.advance_amount)
    if base_salary < 0:
        raise InvalidInputError("Base salary cannot be negative.", field="base_salary")
    if overtime_rate < 0:
        raise InvalidInputError("Overtime rate cannot be negative.", field="overtime_rate")
    if advance_amount < 0:
        raise InvalidInputError("Advance amount cannot be negative.", field="advance_amount")

    days = _records_in_period(salary_input.attendance_records, year, month)
    summary = aggregate_attendance(days)

    total_days = days_in_month(year, month)
    per_day_salary = base_salary / Decimal(total_days)
    standard_hours = Decimal(str(rules.standard_hours_per_day))
    hourly_rate = per_day_salary / standard_hours if standard_hours > 0 else ZERO
    earned_salary = per_day_salary * summary.present_days

    overtime_hours = overtime_pay = ZERO
    undertime_hours = undertime_deduction = ZERO
    if department in OVERTIME_DEPARTMENTS:
        overtime_allowance = Decimal(str(rules.max_overtime_hours_per_day)) * summary.present_days
        for day in days:
            if day.status != AttendanceRecord.STATUS_PRESENT:
                continue
            day_standard = standard_hours_for(department, day.shift_type, rules)
            day_rate = per_day_salary / day_standard if day_standard > 0 else ZERO

            if not rules.is_exempt_from_overtime and day.overtime_hours > 0 and overtime_allowance > 0:
                hours = min(day.overtime_hours, overtime_allowance)
                overtime_allowance -= hours
                if overtime_rate > 0:
                    wage = overtime_rate
                else:
                    wage = day_rate * overtime_multiplier_for(department, day.shift_type, rules)
                overtime_hours += hours
                overtime_pay += hours * wage

            if day.undertime_hours > 0:
                undertime_hours += day.undertime_hours
                if not rules.is_exempt_from_deductions:
                    undertime_deduction += day.undertime_hours * day_rate

    if overtime_hours > 0:
        effective_overtime_rate = overtime_pay / overtime_hours
    elif overtime_rate > 0:
        effective_overtime_rate = overtime_rate
    else:
        effective_overtime_rate = hourly_rate * Decimal(str(rules.overtime_multiplier))

    final_salary = earned_salary + overtime_pay - undertime_deduction - advance_amount

    return SalaryBreakdown(
        year=year,
        month=month,
        total_days=total_days,
        present_days=summary.present_days,
        absent_days=summary.absent_days,
        leave_days=summary.leave_days,
        holiday_days=summary.holiday_days,
        per_day_salary=per_day_salary,
        hourly_rate=hourly_rate,
        overtime_hours=overtime_hours,
        overtime_rate=effective_overtime_rate,
        overtime_pay=overtime_pay,
        undertime_hours=undertime_hours,
        undertime_deduction=undertime_deduction,
        earned_salary=earned_salary,
        advance_amount=advance_amount,
        final_salary=final_salary,
    )


def advance_allowance(gross_salary, rules: DepartmentRules) -> Decimal:
    """Total that may be advanced against a month with the given gross pay."""
    gross_salary = max(_to_decimal(gross_salary), ZERO)
    return _round_money(gross_salary * Decimal(str(rules.max_advance_percentage)) / HUNDRED)


def check_advance_limit(gross_salary, requested, rules: DepartmentRules, already_advanced=ZERO) -> Decimal:
    """
    Raise AdvanceLimitError when the month's advances would exceed the
    department's percentage of gross pay. Returns the allowance left after
    the requested amount.
    """
    requested = _to_decimal(requested)
    already_advanced = _to_decimal(already_advanced)
    limit = advance_allowance(gross_salary, rules)
    remaining = max(limit - already_advanced, ZERO)
    if already_advanced + requested > limit:
        raise AdvanceLimitError(
            f"Advance exceeds {rules.max_advance_percentage}% of gross salary. Max allowed: {remaining}",
            max_allowed=remaining,
        )
    return remaining - requested
