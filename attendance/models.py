import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q

from employees.models import Employee


class AttendanceRecord(models.Model):
    """
    One row per employee per day. Created manually, by bulk mark or by a
    biometric check-in, and completed by the matching check-out.
    """

    STATUS_PRESENT = "present"
    STATUS_ABSENT = "absent"
    STATUS_LEAVE = "leave"
    STATUS_HOLIDAY = "holiday"
    STATUS_CHOICES = [
        (STATUS_PRESENT, "Present"),
        (STATUS_ABSENT, "Absent"),
        (STATUS_LEAVE, "Leave"),
        (STATUS_HOLIDAY, "Holiday"),
    ]
    STATUSES = [code for code, _ in STATUS_CHOICES]

    SHIFT_DAY = "day"
    SHIFT_NIGHT = "night"
    SHIFT_REGULAR = "regular"
    SHIFT_CHOICES = [
        (SHIFT_DAY, "Day"),
        (SHIFT_NIGHT, "Night"),
        (SHIFT_REGULAR, "Regular"),
    ]
    SHIFTS = [code for code, _ in SHIFT_CHOICES]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="attendance_records")
    attendance_date = models.DateField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, db_index=True)
    check_in_time = models.TimeField(blank=True, null=True)
    check_out_time = models.TimeField(blank=True, null=True)
    hours_worked = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    overtime_hours = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    undertime_hours = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    shift_type = models.CharField(max_length=10, choices=SHIFT_CHOICES, default=SHIFT_REGULAR)
    notes = models.TextField(blank=True, null=True)

    biometric_verified = models.BooleanField(default=False)
    biometric_credential_id = models.CharField(max_length=255, blank=True, null=True)
    biometric_verification_time = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "attendance_records"
        verbose_name = "Attendance Record"
        verbose_name_plural = "Attendance Records"
        ordering = ["attendance_date"]
        unique_together = [["employee", "attendance_date"]]
        constraints = [
            models.CheckConstraint(
                condition=Q(overtime_hours__gte=0) & Q(undertime_hours__gte=0),
                name="attendance_hours_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(overtime_hours=0) | Q(undertime_hours=0),
                name="attendance_overtime_xor_undertime",
            ),
        ]
        indexes = [
            models.Index(fields=["attendance_date"], name="attendance_date_idx"),
        ]

    def __str__(self):
        return f"{self.employee_id} @ {self.attendance_date} ({self.status})"
