from rest_framework import serializers

from employees.models import Employee

from .models import AttendanceRecord


class AttendanceRecordSerializer(serializers.ModelSerializer):
    employee_code = serializers.CharField(source="employee.employee_id", read_only=True)
    employee_name = serializers.CharField(source="employee.name", read_only=True)
    department = serializers.CharField(source="employee.department", read_only=True)

    class Meta:
        model = AttendanceRecord
        fields = "__all__"
        read_only_fields = [field.name for field in AttendanceRecord._meta.fields] + [
            "employee_code",
            "employee_name",
            "department",
        ]


class AttendanceMarkSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    attendance_date = serializers.DateField()
    status = serializers.ChoiceField(choices=AttendanceRecord.STATUS_CHOICES)
    check_in_time = serializers.TimeField(required=False, allow_null=True)
    check_out_time = serializers.TimeField(required=False, allow_null=True)
    shift_type = serializers.ChoiceField(
        choices=AttendanceRecord.SHIFT_CHOICES,
        required=False,
        default=AttendanceRecord.SHIFT_REGULAR,
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AttendanceBulkMarkSerializer(serializers.Serializer):
    employees = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all(), many=True)
    attendance_date = serializers.DateField()
    status = serializers.ChoiceField(choices=AttendanceRecord.STATUS_CHOICES)
    check_in_time = serializers.TimeField(required=False, allow_null=True)
    shift_type = serializers.ChoiceField(
        choices=AttendanceRecord.SHIFT_CHOICES,
        required=False,
        default=AttendanceRecord.SHIFT_REGULAR,
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_employees(self, value):
        if not value:
            raise serializers.ValidationError("Select at least one employee.")
        return value


class AttendanceMonthQuerySerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    year = serializers.IntegerField(min_value=1)
    month = serializers.IntegerField(min_value=1, max_value=12)


class BiometricScanSerializer(serializers.Serializer):
    """Result of the device-side scan; the raw biometric data never reaches the server."""

    success = serializers.BooleanField()
    credential_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    employee = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all(), required=False, allow_null=True)
