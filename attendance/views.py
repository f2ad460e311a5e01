from dataclasses import asdict

from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action

from core.exceptions import InvalidInputError
from core.utils import api_response
from employees.models import Employee
from payroll.rules import get_rules, shift_presets

from .models import AttendanceRecord
from .serializers import (
    AttendanceBulkMarkSerializer,
    AttendanceMarkSerializer,
    AttendanceMonthQuerySerializer,
    AttendanceRecordSerializer,
    BiometricScanSerializer,
)
from .services import (
    BiometricScan,
    aggregate_attendance,
    attendance_for_month,
    biometric_check_in,
    biometric_check_out,
    bulk_mark_attendance,
    delete_attendance,
    mark_attendance,
)


class AttendanceRecordViewSet(mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              mixins.DestroyModelMixin,
                              viewsets.GenericViewSet):
    """Records are written only through the mark / bulk-mark / biometric actions."""

    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AttendanceRecordSerializer

    def get_queryset(self):
        qs = AttendanceRecord.objects.select_related("employee")
        params = self.request.query_params
        employee = params.get("employee")
        if employee:
            qs = qs.filter(employee=employee)
        department = params.get("department")
        if department:
            qs = qs.filter(employee__department=department)
        date_from = params.get("date_from")
        if date_from:
            qs = qs.filter(attendance_date__gte=date_from)
        date_to = params.get("date_to")
        if date_to:
            qs = qs.filter(attendance_date__lte=date_to)
        year = params.get("year")
        if year:
            qs = qs.filter(attendance_date__year=year)
        month = params.get("month")
        if month:
            qs = qs.filter(attendance_date__month=month)
        record_status = params.get("status")
        if record_status:
            qs = qs.filter(status=record_status)
        return qs.order_by("-attendance_date", "employee__name")

    def perform_destroy(self, instance):
        delete_attendance(instance)

    @action(detail=False, methods=["post"])
    def mark(self, request):
        serializer = AttendanceMarkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        record = mark_attendance(
            data["employee"],
            data["attendance_date"],
            data["status"],
            check_in_time=data.get("check_in_time"),
            check_out_time=data.get("check_out_time"),
            shift_type=data.get("shift_type"),
            notes=data.get("notes"),
        )
        return api_response(
            message="Attendance recorded.",
            data=AttendanceRecordSerializer(record).data,
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"], url_path="bulk-mark")
    def bulk_mark(self, request):
        serializer = AttendanceBulkMarkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        records = bulk_mark_attendance(
            data["employees"],
            data["attendance_date"],
            data["status"],
            check_in_time=data.get("check_in_time"),
            shift_type=data.get("shift_type"),
            notes=data.get("notes"),
        )
        return api_response(
            message=f"Attendance recorded for {len(records)} employees.",
            data={"results": AttendanceRecordSerializer(records, many=True).data, "count": len(records)},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"])
    def summary(self, request):
        serializer = AttendanceMonthQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        records = attendance_for_month(data["employee"], data["year"], data["month"])
        summary = aggregate_attendance(records)
        payload = {key: str(value) if not isinstance(value, int) else value for key, value in asdict(summary).items()}
        return api_response(message="Attendance summary retrieved.", data=payload)

    @action(detail=False, methods=["get"])
    def presets(self, request):
        department = request.query_params.get("department")
        shift_type = request.query_params.get("shift_type") or AttendanceRecord.SHIFT_REGULAR
        if department not in Employee.DEPARTMENTS:
            raise InvalidInputError(f"Unknown department: {department!r}", field="department")
        preset = shift_presets(department, shift_type, get_rules(department))
        data = {}
        if preset:
            data = {"check_in_time": preset[0].isoformat(), "check_out_time": preset[1].isoformat()}
        return api_response(message="Shift presets retrieved.", data=data)

    def _scan_from_request(self, request) -> BiometricScan:
        serializer = BiometricScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return BiometricScan(
            success=data["success"],
            employee=data.get("employee"),
            credential_id=data.get("credential_id") or None,
        )

    @action(detail=False, methods=["post"], url_path="check-in")
    def check_in(self, request):
        record = biometric_check_in(self._scan_from_request(request))
        return api_response(
            message="Check-in recorded.",
            data=AttendanceRecordSerializer(record).data,
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"], url_path="check-out")
    def check_out(self, request):
        record = biometric_check_out(self._scan_from_request(request))
        return api_response(message="Check-out recorded.", data=AttendanceRecordSerializer(record).data)
