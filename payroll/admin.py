from django.contrib import admin

from .models import Advance, DepartmentRule, Payment, Payroll


@admin.register(DepartmentRule)
class DepartmentRuleAdmin(admin.ModelAdmin):
    list_display = [
        "department",
        "is_exempt_from_overtime",
        "is_exempt_from_deductions",
        "standard_hours_per_day",
        "max_advance_percentage",
    ]


@admin.register(Payroll)
class PayrollAdmin(admin.ModelAdmin):
    list_display = ["employee", "year", "month", "status", "earned_salary", "advance_amount", "final_salary"]
    list_filter = ["status", "year", "month", "employee__department"]
    search_fields = ["employee__name", "employee__employee_id"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Advance)
class AdvanceAdmin(admin.ModelAdmin):
    list_display = ["employee", "advance_date", "amount", "notes"]
    list_filter = ["advance_date"]
    search_fields = ["employee__name", "notes"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["payroll", "employee", "payment_date", "amount"]
    list_filter = ["payment_date"]
