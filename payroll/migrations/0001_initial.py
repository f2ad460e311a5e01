from decimal import Decimal
import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


DEPARTMENT_CHOICES = [
    ("Enamel", "Enamel"),
    ("Workshop", "Workshop"),
    ("Guards", "Guards"),
    ("Cooks", "Cooks"),
    ("Admins", "Admins"),
    ("Directors", "Directors"),
    ("Accounts", "Accounts"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, **kwargs)


def rate():
    return models.DecimalField(decimal_places=4, default=Decimal("0.0000"), max_digits=14)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("employees", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DepartmentRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("department", models.CharField(choices=DEPARTMENT_CHOICES, max_length=20, unique=True)),
                ("is_exempt_from_deductions", models.BooleanField(default=False)),
                ("is_exempt_from_overtime", models.BooleanField(default=False)),
                (
                    "max_overtime_hours_per_day",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("4.00"),
                        max_digits=5,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "max_advance_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("50.00"),
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.00")),
                            django.core.validators.MaxValueValidator(Decimal("100.00")),
                        ],
                    ),
                ),
                (
                    "working_days_per_month",
                    models.IntegerField(default=30, validators=[django.core.validators.MinValueValidator(1)]),
                ),
                (
                    "standard_hours_per_day",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("8.00"),
                        max_digits=5,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                ("overtime_multiplier", models.DecimalField(decimal_places=2, default=Decimal("1.50"), max_digits=5)),
                ("day_shift_hours", models.DecimalField(decimal_places=2, default=Decimal("8.00"), max_digits=5)),
                ("night_shift_hours", models.DecimalField(decimal_places=2, default=Decimal("8.00"), max_digits=5)),
                ("night_shift_multiplier", models.DecimalField(decimal_places=2, default=Decimal("1.50"), max_digits=5)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Department Rule",
                "verbose_name_plural": "Department Rules",
                "db_table": "payroll_department_rules",
                "ordering": ["department"],
            },
        ),
        migrations.CreateModel(
            name="Advance",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("advance_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("notes", models.CharField(blank=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="advances",
                        to="employees.employee",
                    ),
                ),
            ],
            options={
                "verbose_name": "Advance",
                "verbose_name_plural": "Advances",
                "db_table": "payroll_advances",
                "ordering": ["advance_date", "created_at"],
                "indexes": [models.Index(fields=["employee", "advance_date"], name="payroll_adv_emp_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="Payroll",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("year", models.IntegerField()),
                (
                    "month",
                    models.IntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(12),
                        ]
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("locked", "Locked")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("base_salary", money()),
                ("total_days", models.IntegerField(default=0)),
                ("present_days", models.IntegerField(default=0)),
                ("absent_days", models.IntegerField(default=0)),
                ("leave_days", models.IntegerField(default=0)),
                ("holiday_days", models.IntegerField(default=0)),
                ("per_day_salary", rate()),
                ("hourly_rate", rate()),
                ("overtime_hours", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=8)),
                ("overtime_rate", rate()),
                ("overtime_pay", money()),
                ("undertime_hours", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=8)),
                ("undertime_deduction", money()),
                ("absence_deduction", money()),
                ("earned_salary", money()),
                ("advance_amount", money()),
                ("final_salary", money()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payrolls",
                        to="employees.employee",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payroll",
                "verbose_name_plural": "Payrolls",
                "db_table": "payroll_payrolls",
                "unique_together": {("employee", "year", "month")},
                "indexes": [
                    models.Index(fields=["year", "month"], name="payroll_period_idx"),
                    models.Index(fields=["status"], name="payroll_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("payment_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("notes", models.CharField(blank=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="employees.employee",
                    ),
                ),
                (
                    "payroll",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="payroll.payroll",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "db_table": "payroll_payments",
                "ordering": ["payment_date", "created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payroll_payment_amount_positive"),
                ],
            },
        ),
    ]
