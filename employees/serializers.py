from rest_framework import serializers

from .models import Employee
from .services import validate_compensation


class EmployeeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Employee
        fields = '__all__'
        read_only_fields = ['id', 'is_active', 'inactivation_date', 'created_at', 'updated_at']

    def validate(self, attrs):
        validate_compensation(attrs.get('base_salary'), attrs.get('overtime_rate'))
        return attrs


class DeactivateEmployeeSerializer(serializers.Serializer):
    inactivation_date = serializers.DateField(required=False)
