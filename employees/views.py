from django.db.models import Q
from rest_framework import permissions, viewsets
from rest_framework.decorators import action

from core.utils import api_response

from .models import Employee
from .serializers import DeactivateEmployeeSerializer, EmployeeSerializer
from .services import deactivate_employee, reactivate_employee


class EmployeeViewSet(viewsets.ModelViewSet):
    """Employees are soft deleted through deactivate/reactivate, never destroyed."""

    permission_classes = [permissions.IsAuthenticated]
    serializer_class = EmployeeSerializer
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = Employee.objects.all()

        department = self.request.query_params.get('department')
        if department:
            queryset = queryset.filter(department=department)

        active = self.request.query_params.get('is_active')
        if active is not None:
            queryset = queryset.filter(is_active=active.lower() in ('1', 'true', 'yes'))

        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(employee_id__icontains=search) |
                Q(cnic__icontains=search)
            )
        return queryset

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        employee = self.get_object()
        serializer = DeactivateEmployeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deactivate_employee(employee, serializer.validated_data.get('inactivation_date'))
        return api_response(
            message='Employee deactivated.',
            data=EmployeeSerializer(employee).data,
        )

    @action(detail=True, methods=['post'])
    def reactivate(self, request, pk=None):
        employee = self.get_object()
        reactivate_employee(employee)
        return api_response(
            message='Employee reactivated.',
            data=EmployeeSerializer(employee).data,
        )
