"""
Error taxonomy shared by the attendance and payroll services.

All errors are DRF exceptions so views surface them as structured JSON
without extra handling.
"""
from decimal import Decimal
from typing import Optional

from rest_framework import status
from rest_framework.exceptions import APIException, AuthenticationFailed, ValidationError


class InvalidInputError(ValidationError):
    """Negative money, malformed dates/times or values outside a fixed enum."""

    def __init__(self, message, field: str = "detail"):
        self.message = str(message)
        super().__init__({field: self.message})


class FutureDateError(InvalidInputError):
    """A write was targeted at a date or month that has not happened yet."""


class AdvanceLimitError(InvalidInputError):
    def __init__(self, message, max_allowed: Decimal):
        self.max_allowed = max_allowed
        super().__init__(message, field="amount")


class OverpaymentError(ValidationError):
    """A payment would push the total paid beyond the payroll's final salary."""

    def __init__(self, max_allowed: Decimal, message: Optional[str] = None):
        self.max_allowed = max_allowed
        self.message = message or f"Payment would exceed remaining salary. Max remaining: {max_allowed}"
        super().__init__({"amount": self.message, "max_allowed": str(max_allowed)})


class DataIntegrityError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Stored data is inconsistent."
    default_code = "data_integrity_error"


class AuthenticationError(AuthenticationFailed):
    default_detail = "Biometric authentication failed."
