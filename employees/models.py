from decimal import Decimal
import uuid

from django.core.validators import MinValueValidator
from django.db import models


class Employee(models.Model):
    """Employee master record. Deactivated rather than deleted so history stays reportable."""

    DEPARTMENT_ENAMEL = 'Enamel'
    DEPARTMENT_WORKSHOP = 'Workshop'
    DEPARTMENT_GUARDS = 'Guards'
    DEPARTMENT_COOKS = 'Cooks'
    DEPARTMENT_ADMINS = 'Admins'
    DEPARTMENT_DIRECTORS = 'Directors'
    DEPARTMENT_ACCOUNTS = 'Accounts'

    DEPARTMENT_CHOICES = [
        (DEPARTMENT_ENAMEL, 'Enamel'),
        (DEPARTMENT_WORKSHOP, 'Workshop'),
        (DEPARTMENT_GUARDS, 'Guards'),
        (DEPARTMENT_COOKS, 'Cooks'),
        (DEPARTMENT_ADMINS, 'Admins'),
        (DEPARTMENT_DIRECTORS, 'Directors'),
        (DEPARTMENT_ACCOUNTS, 'Accounts'),
    ]
    DEPARTMENTS = [code for code, _ in DEPARTMENT_CHOICES]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Identity fields survive activation toggles
    employee_id = models.CharField(max_length=50, unique=True, help_text='Company-assigned employee code')
    name = models.CharField(max_length=255)
    cnic = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    contact = models.CharField(max_length=20, blank=True, null=True)

    department = models.CharField(max_length=20, choices=DEPARTMENT_CHOICES)
    base_salary = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text='Monthly base salary',
    )
    overtime_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        blank=True,
        null=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text='Flat overtime wage per hour; derived from the hourly rate when empty',
    )
    joining_date = models.DateField()

    is_active = models.BooleanField(default=True)
    inactivation_date = models.DateField(blank=True, null=True)

    biometric_credential_id = models.CharField(max_length=255, blank=True, null=True, unique=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'employees'
        verbose_name = 'Employee'
        verbose_name_plural = 'Employees'
        indexes = [
            models.Index(fields=['department', 'is_active'], name='employees_dept_active_idx'),
        ]
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.employee_id})"
