from decimal import Decimal
import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("employees", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AttendanceRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("attendance_date", models.DateField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("present", "Present"),
                            ("absent", "Absent"),
                            ("leave", "Leave"),
                            ("holiday", "Holiday"),
                        ],
                        db_index=True,
                        max_length=10,
                    ),
                ),
                ("check_in_time", models.TimeField(blank=True, null=True)),
                ("check_out_time", models.TimeField(blank=True, null=True)),
                ("hours_worked", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("overtime_hours", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("undertime_hours", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                (
                    "shift_type",
                    models.CharField(
                        choices=[("day", "Day"), ("night", "Night"), ("regular", "Regular")],
                        default="regular",
                        max_length=10,
                    ),
                ),
                ("notes", models.TextField(blank=True, null=True)),
                ("biometric_verified", models.BooleanField(default=False)),
                ("biometric_credential_id", models.CharField(blank=True, max_length=255, null=True)),
                ("biometric_verification_time", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_records",
                        to="employees.employee",
                    ),
                ),
            ],
            options={
                "verbose_name": "Attendance Record",
                "verbose_name_plural": "Attendance Records",
                "db_table": "attendance_records",
                "ordering": ["attendance_date"],
                "unique_together": {("employee", "attendance_date")},
                "indexes": [models.Index(fields=["attendance_date"], name="attendance_date_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("overtime_hours__gte", 0), ("undertime_hours__gte", 0)),
                        name="attendance_hours_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("overtime_hours", 0), ("undertime_hours", 0), _connector="OR"),
                        name="attendance_overtime_xor_undertime",
                    ),
                ],
            },
        ),
    ]
