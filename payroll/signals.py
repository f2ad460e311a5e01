import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from attendance.models import AttendanceRecord
from employees.models import Employee

from .models import Advance, DepartmentRule, Payroll
from .services import affected_periods, refresh_department_hours, safe_recompute_payroll

logger = logging.getLogger(__name__)

# Source rows whose writes refresh the payroll of the month they are dated in.
RECOMPUTE_TRIGGERS = {
    Advance: "advance_date",
    AttendanceRecord: "attendance_date",
}


def schedule_recompute(employee_id, year: int, month: int) -> None:
    """Refresh the payroll once the triggering write has committed."""
    transaction.on_commit(partial(safe_recompute_payroll, employee_id, year, month))


@receiver(pre_save, sender=Advance)
@receiver(pre_save, sender=AttendanceRecord)
def remember_previous_date(sender, instance, **kwargs):
    """Keep the stored date so moving a row to another month refreshes both months."""
    field = RECOMPUTE_TRIGGERS[sender]
    instance._previous_trigger_date = None
    if instance._state.adding:
        return
    instance._previous_trigger_date = (
        sender.objects.filter(pk=instance.pk).values_list(field, flat=True).first()
    )


@receiver(post_save, sender=Advance)
@receiver(post_save, sender=AttendanceRecord)
def recompute_after_save(sender, instance, **kwargs):
    field = RECOMPUTE_TRIGGERS[sender]
    previous = getattr(instance, "_previous_trigger_date", None)
    for year, month in affected_periods(getattr(instance, field), previous):
        schedule_recompute(instance.employee_id, year, month)


@receiver(post_delete, sender=Advance)
@receiver(post_delete, sender=AttendanceRecord)
def recompute_after_delete(sender, instance, **kwargs):
    field = RECOMPUTE_TRIGGERS[sender]
    for year, month in affected_periods(getattr(instance, field)):
        schedule_recompute(instance.employee_id, year, month)


@receiver(post_save, sender=DepartmentRule)
def recompute_department_after_rule_change(sender, instance: DepartmentRule, **kwargs):
    refresh_department_hours(instance.department)
    pending = Payroll.objects.filter(
        employee__department=instance.department,
        status=Payroll.STATUS_PENDING,
    ).values_list("employee_id", "year", "month")
    count = 0
    for employee_id, year, month in pending:
        schedule_recompute(employee_id, year, month)
        count += 1
    if count:
        logger.info(f"Rule change for {instance.department}: {count} pending payrolls scheduled for recompute")


@receiver(post_save, sender=Employee)
def recompute_employee_after_change(sender, instance: Employee, created, **kwargs):
    """Salary, rate or department edits refresh the employee's pending payrolls."""
    if created:
        return
    pending = Payroll.objects.filter(employee=instance, status=Payroll.STATUS_PENDING).values_list("year", "month")
    for year, month in pending:
        schedule_recompute(instance.pk, year, month)
