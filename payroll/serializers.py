from rest_framework import serializers

from employees.models import Employee

from .models import Advance, DepartmentRule, Payment, Payroll


class DepartmentRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = DepartmentRule
        fields = "__all__"
        read_only_fields = ["id", "created_at", "updated_at"]


class AdvanceSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.name", read_only=True)

    class Meta:
        model = Advance
        fields = "__all__"
        read_only_fields = ["id", "created_at", "updated_at", "employee_name"]


class AdvanceCreateSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    advance_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = "__all__"
        read_only_fields = ["id", "employee", "created_at", "updated_at"]


class PaymentCreateSerializer(serializers.Serializer):
    payroll = serializers.PrimaryKeyRelatedField(queryset=Payroll.objects.all())
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class PaymentUpdateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    payment_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class PayrollSerializer(serializers.ModelSerializer):
    employee_code = serializers.CharField(source="employee.employee_id", read_only=True)
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    department = serializers.CharField(source="employee.department", read_only=True)

    class Meta:
        model = Payroll
        fields = "__all__"
        read_only_fields = [field.name for field in Payroll._meta.fields] + [
            "employee_code",
            "employee_name",
            "department",
        ]


class PayrollRunSerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=1)
    month = serializers.IntegerField(min_value=1, max_value=12)
    department = serializers.ChoiceField(choices=Employee.DEPARTMENT_CHOICES, required=False)
    employee_ids = serializers.ListField(child=serializers.UUIDField(), required=False, allow_empty=True)


class PayrollPeriodSerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=1)
    month = serializers.IntegerField(min_value=1, max_value=12)
    settled_only = serializers.BooleanField(required=False, default=True)


def balance_payload(balance):
    return {
        "total_paid": str(balance.total_paid),
        "balance": str(balance.balance),
        "display_balance": str(balance.display_balance),
        "status": balance.status,
    }
