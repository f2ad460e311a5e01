import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from employees.models import Employee


class DepartmentRule(models.Model):
    """
    Per-department calculation policy.
    Departments without a row fall back to payroll.rules.default_rules().
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    department = models.CharField(max_length=20, choices=Employee.DEPARTMENT_CHOICES, unique=True)
    is_exempt_from_deductions = models.BooleanField(default=False)
    is_exempt_from_overtime = models.BooleanField(default=False)
    max_overtime_hours_per_day = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("4.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    max_advance_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("50.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))],
    )
    working_days_per_month = models.IntegerField(default=30, validators=[MinValueValidator(1)])
    standard_hours_per_day = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("8.00"),
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    overtime_multiplier = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("1.50"))
    day_shift_hours = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("8.00"))
    night_shift_hours = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("8.00"))
    night_shift_multiplier = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("1.50"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payroll_department_rules"
        verbose_name = "Department Rule"
        verbose_name_plural = "Department Rules"
        ordering = ["department"]

    def __str__(self):
        return f"Rules for {self.department}"


class Advance(models.Model):
    """Cash advance against future salary; reduces final salary of the month it is dated in."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="advances")
    advance_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    notes = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payroll_advances"
        verbose_name = "Advance"
        verbose_name_plural = "Advances"
        ordering = ["advance_date", "created_at"]
        indexes = [
            models.Index(fields=["employee", "advance_date"], name="payroll_adv_emp_date_idx"),
        ]

    def __str__(self):
        return f"Advance {self.amount} to {self.employee_id} on {self.advance_date}"


class Payroll(models.Model):
    """Monthly snapshot of a salary calculation, one row per (employee, year, month)."""

    STATUS_PENDING = "pending"
    STATUS_PAID = "paid"
    STATUS_LOCKED = "locked"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
        (STATUS_LOCKED, "Locked"),
    ]
    FROZEN_STATUSES = {STATUS_PAID, STATUS_LOCKED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="payrolls")
    year = models.IntegerField()
    month = models.IntegerField(validators=[MinValueValidator(1), MaxValueValidator(12)])
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)

    base_salary = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_days = models.IntegerField(default=0)
    present_days = models.IntegerField(default=0)
    absent_days = models.IntegerField(default=0)
    leave_days = models.IntegerField(default=0)
    holiday_days = models.IntegerField(default=0)
    per_day_salary = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("0.0000"))
    hourly_rate = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("0.0000"))

    overtime_hours = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    overtime_rate = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("0.0000"))
    overtime_pay = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    undertime_hours = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    undertime_deduction = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    absence_deduction = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    earned_salary = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    advance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    final_salary = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payroll_payrolls"
        verbose_name = "Payroll"
        verbose_name_plural = "Payrolls"
        unique_together = [["employee", "year", "month"]]
        indexes = [
            models.Index(fields=["year", "month"], name="payroll_period_idx"),
            models.Index(fields=["status"], name="payroll_status_idx"),
        ]

    def __str__(self):
        return f"Payroll {self.employee_id} {self.month:02d}/{self.year}"

    @property
    def is_frozen(self) -> bool:
        return self.status in self.FROZEN_STATUSES


class Payment(models.Model):
    """Actual disbursement against one month's payroll."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="payments")
    payroll = models.ForeignKey(Payroll, on_delete=models.CASCADE, related_name="payments")
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    notes = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payroll_payments"
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ["payment_date", "created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payroll_payment_amount_positive"),
        ]

    def __str__(self):
        return f"Payment {self.amount} for {self.payroll_id}"
