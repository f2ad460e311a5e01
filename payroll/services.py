import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import Sum

from attendance.models import AttendanceRecord
from attendance.services import attendance_for_month, derive_hours
from core import dates
from core.dates import ensure_not_future_date, ensure_not_future_month, month_bounds, parse_date, validate_period
from core.exceptions import InvalidInputError
from employees.models import Employee
from employees.services import ensure_active

from .calculation import SalaryBreakdown, SalaryInput, calculate_salary, check_advance_limit
from .ledger import STATUS_SETTLED, LedgerBalance, reconcile, recovery_note, recovery_schedule, validate_payment_amount
from .models import Advance, Payment, Payroll
from .rules import OVERTIME_DEPARTMENTS, get_rules

logger = logging.getLogger(__name__)

OUTCOME_OK = "OK"
OUTCOME_SKIPPED = "SKIPPED"

WHOLE = Decimal("1")


def _to_decimal(value, field: str = "amount") -> Decimal:
    if value is None or value == "":
        raise InvalidInputError("Amount is required.", field=field)
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise InvalidInputError(f"Invalid amount: {value!r}", field=field)


def _sum_amounts(queryset) -> Decimal:
    return queryset.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")


def month_advances(employee, year: int, month: int):
    start, end = month_bounds(year, month)
    return Advance.objects.filter(employee=employee, advance_date__gte=start, advance_date__lte=end)


@dataclass
class PayrollRunResult:
    payroll: Payroll
    outcome: str
    reason: str = ""


class PayrollCalculationService:
    def __init__(self, year: int, month: int, today: Optional[date] = None):
        validate_period(year, month)
        self.year = year
        self.month = month
        self.today = today or dates.today()

    def build_input(self, employee: Employee, advance_amount: Optional[Decimal] = None) -> SalaryInput:
        if advance_amount is None:
            advance_amount = _sum_amounts(month_advances(employee, self.year, self.month))
        rules = get_rules(employee.department)
        records = []
        for record in attendance_for_month(employee, self.year, self.month):
            # Hours are re-derived against the current rules.
            record.employee = employee
            records.append(derive_hours(record, rules))
        return SalaryInput(
            base_salary=employee.base_salary,
            overtime_rate=employee.overtime_rate,
            department=employee.department,
            year=self.year,
            month=self.month,
            rules=rules,
            attendance_records=records,
            advance_amount=advance_amount,
        )

    def calculate(self, employee: Employee, advance_amount: Optional[Decimal] = None) -> SalaryBreakdown:
        return calculate_salary(self.build_input(employee, advance_amount))

    def payroll_values(self, employee: Employee) -> dict:
        values = self.calculate(employee).as_payroll_fields()
        values["base_salary"] = employee.base_salary
        return values

    def generate(self, employee: Employee) -> PayrollRunResult:
        ensure_not_future_month(self.year, self.month, self.today)

        with transaction.atomic():
            payroll = (
                Payroll.objects.select_for_update()
                .filter(employee=employee, year=self.year, month=self.month)
                .first()
            )
            if payroll and payroll.is_frozen:
                return PayrollRunResult(
                    payroll=payroll,
                    outcome=OUTCOME_SKIPPED,
                    reason=f"Payroll already {payroll.status}.",
                )

            values = self.payroll_values(employee)
            payroll, _ = Payroll.objects.update_or_create(
                employee=employee,
                year=self.year,
                month=self.month,
                defaults=values,
                create_defaults={**values, "status": Payroll.STATUS_PENDING},
            )

        logger.info(
            f"Payroll generated for {employee.employee_id} {self.month:02d}/{self.year}: "
            f"final={payroll.final_salary}"
        )
        return PayrollRunResult(payroll=payroll, outcome=OUTCOME_OK)

    def run(self, department: Optional[str] = None, employee_ids: Optional[Iterable] = None) -> List[PayrollRunResult]:
        ensure_not_future_month(self.year, self.month, self.today)
        _, month_end = month_bounds(self.year, self.month)

        employees = Employee.objects.filter(is_active=True)
        if department:
            if department not in Employee.DEPARTMENTS:
                raise InvalidInputError(f"Unknown department: {department!r}", field="department")
            employees = employees.filter(department=department)
        if employee_ids:
            employees = employees.filter(id__in=list(employee_ids))

        results: List[PayrollRunResult] = []
        for employee in employees.order_by("employee_id"):
            if employee.joining_date and employee.joining_date > month_end:
                continue
            results.append(self.generate(employee))

        skipped = sum(1 for result in results if result.outcome == OUTCOME_SKIPPED)
        logger.info(
            f"Payroll run {self.month:02d}/{self.year}: {len(results) - skipped} generated, {skipped} skipped"
        )
        return results


def recompute_payroll(employee_id, year: int, month: int) -> Optional[Payroll]:
    """
    Re-derive an existing pending payroll from current attendance and advances.
    Missing records are left missing; paid and locked records are left untouched.
    """
    with transaction.atomic():
        payroll = (
            Payroll.objects.select_for_update()
            .select_related("employee")
            .filter(employee_id=employee_id, year=year, month=month)
            .first()
        )
        if payroll is None:
            logger.debug(f"No payroll for employee {employee_id} {month:02d}/{year}; recompute skipped")
            return None
        if payroll.is_frozen:
            logger.info(f"Payroll {payroll.pk} is {payroll.status}; recompute suppressed")
            return payroll

        values = PayrollCalculationService(year, month).payroll_values(payroll.employee)
        for name, value in values.items():
            setattr(payroll, name, value)
        payroll.save()

    logger.info(f"Payroll {payroll.pk} recomputed: final={payroll.final_salary}")
    return payroll


def safe_recompute_payroll(employee_id, year: int, month: int) -> Optional[Payroll]:
    """Background recompute: failures are logged and never reach the caller."""
    try:
        return recompute_payroll(employee_id, year, month)
    except Exception:
        logger.exception(f"Payroll recompute failed for employee {employee_id} {month:02d}/{year}")
        return None


def refresh_department_hours(department: str) -> int:
    """
    Re-derive stored overtime/undertime for a department's present records
    after its rules change. Months whose payroll is paid or locked keep
    the hours they were settled on.
    """
    if department not in OVERTIME_DEPARTMENTS:
        return 0
    rules = get_rules(department)
    frozen = set(
        Payroll.objects.filter(employee__department=department, status__in=Payroll.FROZEN_STATUSES)
        .values_list("employee_id", "year", "month")
    )
    records = AttendanceRecord.objects.select_related("employee").filter(
        employee__department=department,
        status=AttendanceRecord.STATUS_PRESENT,
        check_in_time__isnull=False,
        check_out_time__isnull=False,
    )

    changed = []
    for record in records:
        period = (record.employee_id, record.attendance_date.year, record.attendance_date.month)
        if period in frozen:
            continue
        before = (record.overtime_hours, record.undertime_hours)
        derive_hours(record, rules)
        if (record.overtime_hours, record.undertime_hours) != before:
            changed.append(record)

    AttendanceRecord.objects.bulk_update(changed, ["hours_worked", "overtime_hours", "undertime_hours"])
    if changed:
        logger.info(f"Rule change for {department}: re-derived hours on {len(changed)} attendance records")
    return len(changed)


def mark_payroll_paid(payroll: Payroll) -> Payroll:
    if payroll.status == Payroll.STATUS_PAID:
        return payroll
    if payroll.status == Payroll.STATUS_LOCKED:
        raise InvalidInputError("Locked payroll cannot change status.", field="status")
    payroll.status = Payroll.STATUS_PAID
    payroll.save(update_fields=["status", "updated_at"])
    logger.info(f"Payroll {payroll.pk} marked as paid")
    return payroll


def lock_payroll(payroll: Payroll) -> Payroll:
    if payroll.status == Payroll.STATUS_LOCKED:
        return payroll
    payroll.status = Payroll.STATUS_LOCKED
    payroll.save(update_fields=["status", "updated_at"])
    logger.info(f"Payroll {payroll.pk} locked")
    return payroll


def bulk_mark_paid(year: int, month: int, settled_only: bool = True) -> List[Payroll]:
    """Mark the month's pending payrolls as paid, optionally only those fully settled."""
    validate_period(year, month)
    marked = []
    with transaction.atomic():
        pending = (
            Payroll.objects.select_for_update()
            .filter(year=year, month=month, status=Payroll.STATUS_PENDING)
            .order_by("created_at")
        )
        for payroll in pending:
            if settled_only and get_payroll_balance(payroll).status != STATUS_SETTLED:
                continue
            payroll.status = Payroll.STATUS_PAID
            payroll.save(update_fields=["status", "updated_at"])
            marked.append(payroll)
    logger.info(f"Bulk marked {len(marked)} payrolls as paid for {month:02d}/{year}")
    return marked


def _whole_amount(value) -> Decimal:
    amount = _to_decimal(value)
    if amount <= 0:
        raise InvalidInputError("Amount must be greater than zero.", field="amount")
    amount = amount.quantize(WHOLE, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidInputError("Amount must be at least 1.", field="amount")
    return amount


def record_advance(
    employee: Employee,
    amount,
    advance_date=None,
    notes: Optional[str] = None,
    current_date: Optional[date] = None,
) -> Advance:
    """Record a manual advance, enforcing the department's cap against the month's gross pay."""
    ensure_active(employee, "advances")
    advance_date = parse_date(advance_date, field="advance_date") if advance_date else (current_date or dates.today())
    ensure_not_future_date(advance_date, "advances", current_date)
    amount = _whole_amount(amount)

    with transaction.atomic():
        # Lock the employee row so concurrent advances see each other.
        Employee.objects.select_for_update().filter(pk=employee.pk).first()
        service = PayrollCalculationService(advance_date.year, advance_date.month, today=current_date)
        breakdown = service.calculate(employee, advance_amount=Decimal("0"))
        already_advanced = _sum_amounts(month_advances(employee, advance_date.year, advance_date.month))
        check_advance_limit(breakdown.gross_salary, amount, get_rules(employee.department), already_advanced)
        advance = Advance.objects.create(
            employee=employee,
            advance_date=advance_date,
            amount=amount,
            notes=notes,
        )

    logger.info(f"Advance {amount} recorded for {employee.employee_id} on {advance_date}")
    return advance


def delete_advance(advance: Advance) -> None:
    employee_code = advance.employee.employee_id
    amount, advance_date = advance.amount, advance.advance_date
    advance.delete()
    logger.info(f"Advance {amount} for {employee_code} on {advance_date} deleted")


def _locked_payroll(payroll: Payroll) -> Payroll:
    return Payroll.objects.select_for_update().select_related("employee").get(pk=payroll.pk)


def record_payment(
    payroll: Payroll,
    amount,
    payment_date=None,
    notes: Optional[str] = None,
    current_date: Optional[date] = None,
) -> Payment:
    """Record a disbursement; the remaining-salary check runs against the committed payment sum."""
    payment_date = parse_date(payment_date, field="payment_date") if payment_date else (current_date or dates.today())
    ensure_not_future_date(payment_date, "payments", current_date)

    with transaction.atomic():
        locked = _locked_payroll(payroll)
        ensure_active(locked.employee, "payments")
        total_paid = _sum_amounts(locked.payments.all())
        amount = validate_payment_amount(locked.final_salary, total_paid, _to_decimal(amount))
        payment = Payment.objects.create(
            employee=locked.employee,
            payroll=locked,
            payment_date=payment_date,
            amount=amount,
            notes=notes,
        )

    logger.info(f"Payment {amount} recorded against payroll {locked.pk}")
    return payment


def update_payment(
    payment: Payment,
    amount=None,
    payment_date=None,
    notes: Optional[str] = None,
    current_date: Optional[date] = None,
) -> Payment:
    if payment_date:
        payment_date = parse_date(payment_date, field="payment_date")
        ensure_not_future_date(payment_date, "payments", current_date)

    with transaction.atomic():
        locked = _locked_payroll(payment.payroll)
        ensure_active(locked.employee, "payments")
        if amount is not None:
            paid_excluding = _sum_amounts(locked.payments.exclude(pk=payment.pk))
            payment.amount = validate_payment_amount(locked.final_salary, paid_excluding, _to_decimal(amount))
        if payment_date:
            payment.payment_date = payment_date
        if notes is not None:
            payment.notes = notes
        payment.save()

    logger.info(f"Payment {payment.pk} updated: amount={payment.amount}")
    return payment


def delete_payment(payment: Payment) -> None:
    payroll_id, amount = payment.payroll_id, payment.amount
    payment.delete()
    logger.info(f"Payment {amount} against payroll {payroll_id} deleted")


def get_payroll_balance(payroll: Payroll) -> LedgerBalance:
    return reconcile(payroll.final_salary, payroll.payments.values_list("amount", flat=True))


def _recovery_advances(payroll: Payroll):
    return Advance.objects.filter(
        employee_id=payroll.employee_id,
        notes=recovery_note(payroll.month, payroll.year),
    ).order_by("created_at")


def schedule_overpayment_recovery(payroll: Payroll) -> Optional[Advance]:
    """
    Carry an overpayment into next month as an advance. At most one recovery
    advance exists per payroll month; it is identified by its note.
    """
    plan = recovery_schedule(payroll.month, payroll.year, get_payroll_balance(payroll).balance)
    if plan is None:
        return None

    with transaction.atomic():
        existing = list(_recovery_advances(payroll).select_for_update())
        if existing:
            advance, duplicates = existing[0], existing[1:]
            for duplicate in duplicates:
                duplicate.delete()
            if advance.amount == plan.amount and advance.advance_date == plan.advance_date:
                return advance
            advance.amount = plan.amount
            advance.advance_date = plan.advance_date
            advance.save()
            logger.info(f"Recovery advance {advance.pk} updated to {plan.amount}")
            return advance

        advance = Advance.objects.create(
            employee_id=payroll.employee_id,
            advance_date=plan.advance_date,
            amount=plan.amount,
            notes=plan.note,
        )

    logger.info(f"Recovery advance {plan.amount} scheduled on {plan.advance_date} for payroll {payroll.pk}")
    return advance


def cancel_overpayment_recovery(payroll: Payroll) -> int:
    deleted, _ = _recovery_advances(payroll).delete()
    if deleted:
        logger.info(f"Recovery advance for payroll {payroll.pk} cancelled")
    return deleted


def affected_periods(*values) -> List[Tuple[int, int]]:
    """Distinct (year, month) pairs touched by the given dates."""
    periods = set()
    for value in values:
        if value in (None, ""):
            continue
        value = parse_date(value)
        periods.add((value.year, value.month))
    return sorted(periods)
