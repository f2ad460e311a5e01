"""
Department calculation policy: persisted overrides with deterministic defaults.

Every department resolves to a complete rule set; this module is the only
place the shift hours, multipliers and caps are defined.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, time as dtime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from django.db import transaction

from attendance.models import AttendanceRecord
from core.exceptions import DataIntegrityError
from employees.models import Employee

from .models import DepartmentRule


SHIFT_DAY = AttendanceRecord.SHIFT_DAY
SHIFT_NIGHT = AttendanceRecord.SHIFT_NIGHT
SHIFT_REGULAR = AttendanceRecord.SHIFT_REGULAR

# Only these departments accrue overtime or undertime, independently of the exemption flags.
OVERTIME_DEPARTMENTS = {Employee.DEPARTMENT_WORKSHOP, Employee.DEPARTMENT_ENAMEL}

EXEMPT_DEPARTMENTS = {
    Employee.DEPARTMENT_GUARDS,
    Employee.DEPARTMENT_ADMINS,
    Employee.DEPARTMENT_ACCOUNTS,
}

# (standard, day shift, night shift) hours
DEFAULT_DEPARTMENT_HOURS = {
    Employee.DEPARTMENT_ENAMEL: (Decimal("11"), Decimal("11"), Decimal("13")),
    Employee.DEPARTMENT_WORKSHOP: (Decimal("8.5"), Decimal("8.5"), Decimal("8.5")),
}
DEFAULT_HOURS = (Decimal("8"), Decimal("8"), Decimal("8"))

# Check-in clock presets; the check-out preset is derived from the rule hours.
SHIFT_CHECK_IN_PRESETS = {
    (Employee.DEPARTMENT_ENAMEL, SHIFT_DAY): dtime(8, 0),
    (Employee.DEPARTMENT_ENAMEL, SHIFT_NIGHT): dtime(19, 0),
    (Employee.DEPARTMENT_WORKSHOP, SHIFT_DAY): dtime(8, 30),
    (Employee.DEPARTMENT_WORKSHOP, SHIFT_REGULAR): dtime(8, 30),
}


@dataclass(frozen=True)
class DepartmentRules:
    department: str
    is_exempt_from_deductions: bool
    is_exempt_from_overtime: bool
    max_overtime_hours_per_day: Decimal
    max_advance_percentage: Decimal
    working_days_per_month: int
    standard_hours_per_day: Decimal
    overtime_multiplier: Decimal
    day_shift_hours: Decimal
    night_shift_hours: Decimal
    night_shift_multiplier: Decimal

    @classmethod
    def from_model(cls, rule: DepartmentRule) -> "DepartmentRules":
        values = {}
        for field in fields(cls):
            value = getattr(rule, field.name)
            if value is None:
                raise DataIntegrityError(f"Department rule for {rule.department} is missing {field.name}.")
            values[field.name] = value
        return cls(**values)

    def as_model_defaults(self) -> Dict[str, object]:
        return {field.name: getattr(self, field.name) for field in fields(self) if field.name != "department"}


def _ensure_known_department(department: str) -> None:
    if department not in Employee.DEPARTMENTS:
        raise DataIntegrityError(f"Unknown department: {department!r}")


def default_rules(department: str) -> DepartmentRules:
    _ensure_known_department(department)
    exempt = department in EXEMPT_DEPARTMENTS
    standard, day_hours, night_hours = DEFAULT_DEPARTMENT_HOURS.get(department, DEFAULT_HOURS)
    return DepartmentRules(
        department=department,
        is_exempt_from_deductions=exempt,
        is_exempt_from_overtime=exempt,
        max_overtime_hours_per_day=Decimal("4"),
        max_advance_percentage=Decimal("30") if exempt else Decimal("50"),
        working_days_per_month=30,
        standard_hours_per_day=standard,
        overtime_multiplier=Decimal("1.5"),
        day_shift_hours=day_hours,
        night_shift_hours=night_hours,
        night_shift_multiplier=Decimal("1.5"),
    )


def get_rules(department: str) -> DepartmentRules:
    """Persisted rule for the department, or the built-in default. Never None."""
    _ensure_known_department(department)
    rule = DepartmentRule.objects.filter(department=department).first()
    if rule is None:
        return default_rules(department)
    return DepartmentRules.from_model(rule)


def ensure_default_rules() -> int:
    """Seed a rule row for every department that has none. Returns the number created."""
    created = 0
    with transaction.atomic():
        existing = set(DepartmentRule.objects.values_list("department", flat=True))
        for department in Employee.DEPARTMENTS:
            if department in existing:
                continue
            DepartmentRule.objects.create(
                department=department,
                **default_rules(department).as_model_defaults(),
            )
            created += 1
    return created


def standard_hours_for(department: str, shift_type: Optional[str], rules: DepartmentRules) -> Decimal:
    """Expected duty length for one day. Only Enamel distinguishes day and night shifts."""
    if department == Employee.DEPARTMENT_ENAMEL:
        if shift_type == SHIFT_DAY:
            return rules.day_shift_hours
        if shift_type == SHIFT_NIGHT:
            return rules.night_shift_hours
    return rules.standard_hours_per_day


def overtime_multiplier_for(department: str, shift_type: Optional[str], rules: DepartmentRules) -> Decimal:
    if department == Employee.DEPARTMENT_ENAMEL and shift_type == SHIFT_NIGHT:
        return rules.night_shift_multiplier
    return rules.overtime_multiplier


def shift_presets(
    department: str,
    shift_type: Optional[str],
    rules: DepartmentRules,
) -> Optional[Tuple[dtime, dtime]]:
    """Default (check_in, check_out) clock times for a department/shift, or None."""
    check_in = SHIFT_CHECK_IN_PRESETS.get((department, shift_type or SHIFT_REGULAR))
    if check_in is None:
        return None
    hours = standard_hours_for(department, shift_type, rules)
    start = datetime.combine(datetime.min.date(), check_in)
    check_out = (start + timedelta(minutes=int(hours * 60))).time()
    return check_in, check_out
