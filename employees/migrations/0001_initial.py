from decimal import Decimal
import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Employee",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "employee_id",
                    models.CharField(help_text="Company-assigned employee code", max_length=50, unique=True),
                ),
                ("name", models.CharField(max_length=255)),
                ("cnic", models.CharField(blank=True, db_index=True, max_length=20, null=True)),
                ("contact", models.CharField(blank=True, max_length=20, null=True)),
                (
                    "department",
                    models.CharField(
                        choices=[
                            ("Enamel", "Enamel"),
                            ("Workshop", "Workshop"),
                            ("Guards", "Guards"),
                            ("Cooks", "Cooks"),
                            ("Admins", "Admins"),
                            ("Directors", "Directors"),
                            ("Accounts", "Accounts"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "base_salary",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Monthly base salary",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "overtime_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Flat overtime wage per hour; derived from the hourly rate when empty",
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                ("joining_date", models.DateField()),
                ("is_active", models.BooleanField(default=True)),
                ("inactivation_date", models.DateField(blank=True, null=True)),
                ("biometric_credential_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Employee",
                "verbose_name_plural": "Employees",
                "db_table": "employees",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["department", "is_active"], name="employees_dept_active_idx")],
            },
        ),
    ]
