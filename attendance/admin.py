from django.contrib import admin

from .models import AttendanceRecord


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = [
        "employee",
        "attendance_date",
        "status",
        "shift_type",
        "hours_worked",
        "overtime_hours",
        "undertime_hours",
        "biometric_verified",
    ]
    list_filter = ["status", "shift_type", "biometric_verified", "employee__department"]
    search_fields = ["employee__name", "employee__employee_id"]
    date_hierarchy = "attendance_date"
    readonly_fields = ["id", "hours_worked", "overtime_hours", "undertime_hours", "created_at", "updated_at"]
