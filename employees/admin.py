from django.contrib import admin

from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ['employee_id', 'name', 'department', 'base_salary', 'is_active', 'joining_date']
    list_filter = ['department', 'is_active']
    search_fields = ['employee_id', 'name', 'cnic']
    readonly_fields = ['id', 'created_at', 'updated_at']
