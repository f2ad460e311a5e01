from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AdvanceViewSet, DepartmentRuleViewSet, PaymentViewSet, PayrollRunView, PayrollViewSet

router = DefaultRouter()
router.register(r"rules", DepartmentRuleViewSet, basename="payroll-rules")
router.register(r"payrolls", PayrollViewSet, basename="payroll-payrolls")
router.register(r"advances", AdvanceViewSet, basename="payroll-advances")
router.register(r"payments", PaymentViewSet, basename="payroll-payments")

urlpatterns = [
    path("", include(router.urls)),
    path("generate/", PayrollRunView.as_view()),
]
