from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView

from core.utils import api_response

from .models import Advance, DepartmentRule, Payment, Payroll
from .rules import ensure_default_rules
from .serializers import (
    AdvanceCreateSerializer,
    AdvanceSerializer,
    DepartmentRuleSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    PaymentUpdateSerializer,
    PayrollPeriodSerializer,
    PayrollRunSerializer,
    PayrollSerializer,
    balance_payload,
)
from .services import (
    OUTCOME_OK,
    PayrollCalculationService,
    bulk_mark_paid,
    cancel_overpayment_recovery,
    delete_advance,
    delete_payment,
    get_payroll_balance,
    lock_payroll,
    mark_payroll_paid,
    record_advance,
    record_payment,
    schedule_overpayment_recovery,
    update_payment,
)


class DepartmentRuleViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = DepartmentRuleSerializer
    queryset = DepartmentRule.objects.all()
    http_method_names = ["get", "put", "patch", "head", "options"]

    def list(self, request, *args, **kwargs):
        ensure_default_rules()
        serializer = self.get_serializer(self.get_queryset().order_by("department"), many=True)
        return api_response(message="Department rules retrieved.", data=serializer.data)

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return api_response(message="Department rule retrieved.", data=serializer.data)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        rule = self.get_object()
        serializer = self.get_serializer(rule, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(
            message=f"Rules for {rule.department} updated. Pending payrolls will be recalculated.",
            data=serializer.data,
        )


class PayrollRunView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PayrollRunSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = PayrollCalculationService(year=data["year"], month=data["month"])
        results = service.run(
            department=data.get("department"),
            employee_ids=data.get("employee_ids"),
        )

        payload = []
        skipped = 0
        for result in results:
            row = PayrollSerializer(result.payroll).data
            row["outcome"] = result.outcome
            if result.reason:
                row["reason"] = result.reason
            if result.outcome != OUTCOME_OK:
                skipped += 1
            payload.append(row)

        return api_response(
            success=True,
            message="Payroll run completed.",
            data={
                "results": payload,
                "count": len(payload),
                "skipped": skipped,
                "processed": len(payload) - skipped,
            },
        )


class PayrollViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = PayrollSerializer

    def get_queryset(self):
        qs = Payroll.objects.select_related("employee")
        params = self.request.query_params
        for param in ("year", "month", "status", "employee"):
            value = params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        department = params.get("department")
        if department:
            qs = qs.filter(employee__department=department)
        return qs.order_by("-year", "-month", "employee__name")

    @action(detail=True, methods=["get"])
    def balance(self, request, pk=None):
        payroll = self.get_object()
        return api_response(
            message="Balance retrieved.",
            data=balance_payload(get_payroll_balance(payroll)),
        )

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        payroll = mark_payroll_paid(self.get_object())
        return api_response(message="Payroll marked as paid.", data=PayrollSerializer(payroll).data)

    @action(detail=True, methods=["post"])
    def lock(self, request, pk=None):
        payroll = lock_payroll(self.get_object())
        return api_response(message="Payroll locked.", data=PayrollSerializer(payroll).data)

    @action(detail=False, methods=["post"], url_path="bulk-mark-paid")
    def mark_all_paid(self, request):
        serializer = PayrollPeriodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        marked = bulk_mark_paid(data["year"], data["month"], settled_only=data["settled_only"])
        return api_response(
            message="Payrolls marked as paid.",
            data={"marked_count": len(marked), "payroll_ids": [str(p.id) for p in marked]},
        )

    @action(detail=True, methods=["post", "delete"])
    def recovery(self, request, pk=None):
        payroll = self.get_object()
        if request.method == "DELETE":
            deleted = cancel_overpayment_recovery(payroll)
            return api_response(message="Overpayment recovery cancelled.", data={"deleted": deleted})

        advance = schedule_overpayment_recovery(payroll)
        if advance is None:
            return api_response(message="Payroll is not overpaid; nothing to recover.", data={})
        return api_response(
            message="Overpayment recovery scheduled.",
            data=AdvanceSerializer(advance).data,
            status=status.HTTP_201_CREATED,
        )


class AdvanceViewSet(mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.CreateModelMixin,
                     mixins.DestroyModelMixin,
                     viewsets.GenericViewSet):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AdvanceSerializer

    def get_queryset(self):
        qs = Advance.objects.select_related("employee")
        params = self.request.query_params
        employee = params.get("employee")
        if employee:
            qs = qs.filter(employee=employee)
        year = params.get("year")
        if year:
            qs = qs.filter(advance_date__year=year)
        month = params.get("month")
        if month:
            qs = qs.filter(advance_date__month=month)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = AdvanceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        advance = record_advance(
            data["employee"],
            data["amount"],
            advance_date=data.get("advance_date"),
            notes=data.get("notes"),
        )
        return api_response(
            message="Advance recorded.",
            data=AdvanceSerializer(advance).data,
            status=status.HTTP_201_CREATED,
        )

    def perform_destroy(self, instance):
        delete_advance(instance)


class PaymentViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        qs = Payment.objects.select_related("payroll", "employee")
        payroll = self.request.query_params.get("payroll")
        if payroll:
            qs = qs.filter(payroll=payroll)
        employee = self.request.query_params.get("employee")
        if employee:
            qs = qs.filter(employee=employee)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = record_payment(
            data["payroll"],
            data["amount"],
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
        )
        return api_response(
            message="Payment recorded.",
            data=PaymentSerializer(payment).data,
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        payment = self.get_object()
        serializer = PaymentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = update_payment(
            payment,
            amount=data.get("amount"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
        )
        return api_response(message="Payment updated.", data=PaymentSerializer(payment).data)

    def perform_destroy(self, instance):
        delete_payment(instance)
