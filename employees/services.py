"""
Employee lifecycle helpers (soft delete / reactivation).
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from core.dates import today
from core.exceptions import InvalidInputError

from .models import Employee

logger = logging.getLogger(__name__)


def validate_compensation(base_salary, overtime_rate=None) -> None:
    """Reject negative salary or overtime wage before anything is persisted."""
    if base_salary is not None and Decimal(str(base_salary)) < 0:
        raise InvalidInputError("Base salary cannot be negative.", field="base_salary")
    if overtime_rate is not None and Decimal(str(overtime_rate)) < 0:
        raise InvalidInputError("Overtime rate cannot be negative.", field="overtime_rate")


def ensure_active(employee: Employee, what: str) -> None:
    if not employee.is_active:
        raise InvalidInputError(f"Cannot record {what} for inactive employees.", field="employee")


def deactivate_employee(employee: Employee, on_date: Optional[date] = None) -> Employee:
    if not employee.is_active:
        return employee
    employee.is_active = False
    employee.inactivation_date = on_date or today()
    employee.save(update_fields=['is_active', 'inactivation_date', 'updated_at'])
    logger.info(f"Employee {employee.employee_id} deactivated on {employee.inactivation_date}")
    return employee


def reactivate_employee(employee: Employee) -> Employee:
    if employee.is_active:
        return employee
    employee.is_active = True
    employee.inactivation_date = None
    employee.save(update_fields=['is_active', 'inactivation_date', 'updated_at'])
    logger.info(f"Employee {employee.employee_id} reactivated")
    return employee
