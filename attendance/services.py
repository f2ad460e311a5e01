"""
Attendance hours math, monthly aggregation and the write paths
(manual mark, bulk mark, biometric check-in/out).
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time as dtime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from core.dates import ensure_not_future_date, month_bounds, parse_date, today
from core.exceptions import AuthenticationError, DataIntegrityError, InvalidInputError
from employees.models import Employee
from employees.services import ensure_active
from payroll.rules import (
    OVERTIME_DEPARTMENTS,
    DepartmentRules,
    get_rules,
    standard_hours_for,
)

from .models import AttendanceRecord

logger = logging.getLogger(__name__)

HOURS_QUANT = Decimal("0.01")
ZERO_HOURS = Decimal("0.00")
SECONDS_PER_DAY = 24 * 60 * 60

# Enamel check-ins from this hour onwards start a night shift.
NIGHT_SHIFT_CHECK_IN_FROM = dtime(17, 0)


def _to_hours(value) -> Decimal:
    if value is None:
        return ZERO_HOURS
    return Decimal(str(value))


def _quantize_hours(value: Decimal) -> Decimal:
    return value.quantize(HOURS_QUANT, rounding=ROUND_HALF_UP)


def parse_clock(value, field: str = "time") -> Optional[dtime]:
    """Accept time/datetime objects or 'HH:MM' / 'HH:MM:SS' strings."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, dtime):
        return value
    try:
        return dtime.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"Invalid clock time: {value!r}", field=field)


def compute_hours_worked(check_in, check_out, shift_type: Optional[str] = None) -> Decimal:
    """
    Hours between two clock times, rounded to 2 places.

    A check-out earlier than the check-in belongs to the next day
    (night shift 19:00 -> 08:00 is 13 hours).
    """
    if shift_type is not None and shift_type not in AttendanceRecord.SHIFTS:
        raise InvalidInputError(f"Unknown shift type: {shift_type!r}", field="shift_type")
    start = parse_clock(check_in, "check_in_time")
    end = parse_clock(check_out, "check_out_time")
    if start is None or end is None:
        return ZERO_HOURS

    start_seconds = start.hour * 3600 + start.minute * 60 + start.second
    end_seconds = end.hour * 3600 + end.minute * 60 + end.second
    elapsed = end_seconds - start_seconds
    if elapsed < 0:
        elapsed += SECONDS_PER_DAY
    return _quantize_hours(Decimal(elapsed) / Decimal(3600))


def split_overtime(
    hours_worked: Decimal,
    standard_hours: Decimal,
    max_overtime_per_day: Decimal,
) -> Tuple[Decimal, Decimal]:
    """Return (overtime, undertime) for one day. At most one of them is non-zero."""
    hours_worked = _to_hours(hours_worked)
    if hours_worked > standard_hours:
        overtime = min(hours_worked - standard_hours, _to_hours(max_overtime_per_day))
        return _quantize_hours(overtime), ZERO_HOURS
    if hours_worked < standard_hours:
        return ZERO_HOURS, _quantize_hours(standard_hours - hours_worked)
    return ZERO_HOURS, ZERO_HOURS


def derive_hours(record: AttendanceRecord, rules: Optional[DepartmentRules] = None) -> AttendanceRecord:
    """Fill hours_worked / overtime_hours / undertime_hours from the check times (no save)."""
    record.hours_worked = compute_hours_worked(record.check_in_time, record.check_out_time, record.shift_type)
    record.overtime_hours = ZERO_HOURS
    record.undertime_hours = ZERO_HOURS

    if record.status != AttendanceRecord.STATUS_PRESENT:
        return record
    if not (record.check_in_time and record.check_out_time):
        return record

    department = record.employee.department
    if department not in OVERTIME_DEPARTMENTS:
        return record

    rules = rules or get_rules(department)
    standard = standard_hours_for(department, record.shift_type, rules)
    record.overtime_hours, record.undertime_hours = split_overtime(
        record.hours_worked,
        standard,
        rules.max_overtime_hours_per_day,
    )
    return record


@dataclass(frozen=True)
class AttendanceDay:
    """Calculation view of one attendance row, detached from the ORM."""

    attendance_date: date
    status: str
    hours_worked: Decimal = ZERO_HOURS
    overtime_hours: Decimal = ZERO_HOURS
    undertime_hours: Decimal = ZERO_HOURS
    shift_type: str = AttendanceRecord.SHIFT_REGULAR

    @classmethod
    def from_record(cls, record) -> "AttendanceDay":
        if isinstance(record, cls):
            return record
        if isinstance(record, dict):
            get = record.get
        else:
            def get(name, default=None):
                return getattr(record, name, default)
        return cls(
            attendance_date=parse_date(get("attendance_date"), field="attendance_date"),
            status=get("status"),
            hours_worked=_to_hours(get("hours_worked")),
            overtime_hours=_to_hours(get("overtime_hours")),
            undertime_hours=_to_hours(get("undertime_hours")),
            shift_type=get("shift_type") or AttendanceRecord.SHIFT_REGULAR,
        )


@dataclass(frozen=True)
class AttendanceSummary:
    present_days: int
    absent_days: int
    leave_days: int
    holiday_days: int
    total_overtime_hours: Decimal
    total_undertime_hours: Decimal
    total_hours_worked: Decimal


def aggregate_attendance(records: Iterable) -> AttendanceSummary:
    """Count each record in exactly one day bucket and sum its hours."""
    counts = {status: 0 for status in AttendanceRecord.STATUSES}
    overtime = undertime = worked = ZERO_HOURS
    for record in records:
        day = AttendanceDay.from_record(record)
        if day.status not in counts:
            raise DataIntegrityError(f"Unknown attendance status {day.status!r} on {day.attendance_date}.")
        counts[day.status] += 1
        overtime += day.overtime_hours
        undertime += day.undertime_hours
        worked += day.hours_worked
    return AttendanceSummary(
        present_days=counts[AttendanceRecord.STATUS_PRESENT],
        absent_days=counts[AttendanceRecord.STATUS_ABSENT],
        leave_days=counts[AttendanceRecord.STATUS_LEAVE],
        holiday_days=counts[AttendanceRecord.STATUS_HOLIDAY],
        total_overtime_hours=overtime,
        total_undertime_hours=undertime,
        total_hours_worked=worked,
    )


def attendance_for_month(employee, year: int, month: int):
    start, end = month_bounds(year, month)
    return AttendanceRecord.objects.filter(
        employee=employee,
        attendance_date__gte=start,
        attendance_date__lte=end,
    ).order_by("attendance_date")


def _validate_target(
    employee: Employee,
    attendance_date: date,
    status: str,
    shift_type: str,
    current_date: Optional[date] = None,
) -> None:
    ensure_not_future_date(attendance_date, "attendance", current_date)
    ensure_active(employee, "attendance")
    if employee.joining_date and attendance_date < employee.joining_date:
        raise InvalidInputError(
            f"Cannot mark attendance before joining date ({employee.joining_date}) for {employee.employee_id}.",
            field="attendance_date",
        )
    if status not in AttendanceRecord.STATUSES:
        raise InvalidInputError(f"Unknown attendance status: {status!r}", field="status")
    if shift_type not in AttendanceRecord.SHIFTS:
        raise InvalidInputError(f"Unknown shift type: {shift_type!r}", field="shift_type")


def _upsert_record(employee: Employee, attendance_date: date, **values) -> AttendanceRecord:
    """Write the day's record with freshly derived hours; the last write for a day wins."""
    draft = derive_hours(AttendanceRecord(employee=employee, attendance_date=attendance_date, **values))
    values.update(
        hours_worked=draft.hours_worked,
        overtime_hours=draft.overtime_hours,
        undertime_hours=draft.undertime_hours,
    )
    record, _ = AttendanceRecord.objects.update_or_create(
        employee=employee,
        attendance_date=attendance_date,
        defaults=values,
    )
    return record


def mark_attendance(
    employee: Employee,
    attendance_date,
    status: str,
    *,
    check_in_time=None,
    check_out_time=None,
    shift_type: str = AttendanceRecord.SHIFT_REGULAR,
    notes: Optional[str] = None,
    current_date: Optional[date] = None,
) -> AttendanceRecord:
    """Create or overwrite the employee's record for one day and derive its hours."""
    attendance_date = parse_date(attendance_date, field="attendance_date")
    shift_type = shift_type or AttendanceRecord.SHIFT_REGULAR
    _validate_target(employee, attendance_date, status, shift_type, current_date)
    check_in = parse_clock(check_in_time, "check_in_time")
    check_out = parse_clock(check_out_time, "check_out_time")

    record = _upsert_record(
        employee,
        attendance_date,
        status=status,
        check_in_time=check_in,
        check_out_time=check_out,
        shift_type=shift_type,
        notes=notes,
    )

    logger.info(
        f"Attendance {status} recorded for {employee.employee_id} on {attendance_date} "
        f"(worked={record.hours_worked}, ot={record.overtime_hours}, ut={record.undertime_hours})"
    )
    return record


def bulk_mark_attendance(
    employees: Iterable[Employee],
    attendance_date,
    status: str,
    *,
    check_in_time=None,
    shift_type: str = AttendanceRecord.SHIFT_REGULAR,
    notes: Optional[str] = None,
    current_date: Optional[date] = None,
) -> List[AttendanceRecord]:
    """
    Mark the same status for many employees on one day.
    Every employee is validated before anything is written.
    """
    attendance_date = parse_date(attendance_date, field="attendance_date")
    shift_type = shift_type or AttendanceRecord.SHIFT_REGULAR
    employees = list(employees)
    for employee in employees:
        _validate_target(employee, attendance_date, status, shift_type, current_date)

    check_in = parse_clock(check_in_time, "check_in_time")
    if status != AttendanceRecord.STATUS_PRESENT:
        check_in = None
    elif check_in is None and attendance_date == (current_date or today()):
        # Only a mark for today defaults to the current clock.
        check_in = timezone.localtime().time().replace(microsecond=0)

    records = []
    with transaction.atomic():
        for employee in employees:
            records.append(_upsert_record(
                employee,
                attendance_date,
                status=status,
                check_in_time=check_in,
                check_out_time=None,
                shift_type=shift_type,
                notes=notes,
                biometric_verified=False,
                biometric_credential_id=None,
                biometric_verification_time=None,
            ))

    logger.info(f"Bulk attendance {status} recorded for {len(records)} employees on {attendance_date}")
    return records


def delete_attendance(record: AttendanceRecord) -> None:
    employee_code = record.employee.employee_id
    attendance_date = record.attendance_date
    record.delete()
    logger.info(f"Attendance for {employee_code} on {attendance_date} deleted")


@dataclass(frozen=True)
class BiometricScan:
    """Outcome of the external scan-and-identify step."""

    success: bool
    employee: Optional[Employee] = None
    credential_id: Optional[str] = None


def resolve_scanned_employee(scan: BiometricScan) -> Employee:
    if not scan.success:
        raise AuthenticationError()
    employee = scan.employee
    if employee is None and scan.credential_id:
        employee = Employee.objects.filter(biometric_credential_id=scan.credential_id).first()
    if employee is None:
        raise AuthenticationError("Employee not found for this biometric credential.")
    return employee


def infer_shift_type(employee: Employee, check_in_at: dtime) -> str:
    if employee.department != Employee.DEPARTMENT_ENAMEL:
        return AttendanceRecord.SHIFT_REGULAR
    if check_in_at >= NIGHT_SHIFT_CHECK_IN_FROM:
        return AttendanceRecord.SHIFT_NIGHT
    return AttendanceRecord.SHIFT_DAY


def _scan_moment(when: Optional[datetime]) -> datetime:
    when = when or timezone.now()
    if timezone.is_aware(when):
        when = timezone.localtime(when)
    return when.replace(microsecond=0)


def biometric_check_in(scan: BiometricScan, when: Optional[datetime] = None) -> AttendanceRecord:
    """Create (or convert) today's record as present with a verified check-in."""
    employee = resolve_scanned_employee(scan)
    moment = _scan_moment(when)
    attendance_date = moment.date()
    shift_type = infer_shift_type(employee, moment.time())
    _validate_target(employee, attendance_date, AttendanceRecord.STATUS_PRESENT, shift_type)

    with transaction.atomic():
        existing = (
            AttendanceRecord.objects.select_for_update()
            .filter(employee=employee, attendance_date=attendance_date)
            .first()
        )
        if existing and existing.check_in_time and existing.status == AttendanceRecord.STATUS_PRESENT:
            raise InvalidInputError(
                f"{employee.name} has already checked in on {attendance_date}.",
                field="check_in_time",
            )
        record = _upsert_record(
            employee,
            attendance_date,
            status=AttendanceRecord.STATUS_PRESENT,
            check_in_time=moment.time(),
            check_out_time=None,
            shift_type=shift_type,
            biometric_verified=True,
            biometric_credential_id=scan.credential_id,
            biometric_verification_time=moment,
        )

    logger.info(f"Biometric check-in for {employee.employee_id} at {moment} ({shift_type} shift)")
    return record


def _open_record_for_checkout(employee: Employee, moment: datetime) -> Optional[AttendanceRecord]:
    open_records = AttendanceRecord.objects.select_for_update().filter(
        employee=employee,
        status=AttendanceRecord.STATUS_PRESENT,
        check_in_time__isnull=False,
        check_out_time__isnull=True,
    )
    record = open_records.filter(attendance_date=moment.date()).first()
    if record:
        return record
    # Night shifts are checked out the morning after they start.
    return open_records.filter(
        attendance_date=moment.date() - timedelta(days=1),
        shift_type=AttendanceRecord.SHIFT_NIGHT,
    ).first()


def biometric_check_out(scan: BiometricScan, when: Optional[datetime] = None) -> AttendanceRecord:
    """Complete the open record with a verified check-out and derive its hours."""
    employee = resolve_scanned_employee(scan)
    moment = _scan_moment(when)
    ensure_active(employee, "attendance")
    ensure_not_future_date(moment.date(), "attendance")

    with transaction.atomic():
        record = _open_record_for_checkout(employee, moment)
        if record is None:
            raise InvalidInputError(f"No open check-in found for {employee.name}.", field="check_out_time")
        record.check_out_time = moment.time()
        record.biometric_verified = True
        record.biometric_credential_id = scan.credential_id or record.biometric_credential_id
        record.biometric_verification_time = moment
        derive_hours(record)
        record.save()

    logger.info(
        f"Biometric check-out for {employee.employee_id} at {moment}: {record.hours_worked}h worked"
    )
    return record
