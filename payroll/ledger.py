"""
Payment reconciliation against a payroll's final salary.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Iterable, Optional

from core.dates import next_month
from core.exceptions import InvalidInputError, OverpaymentError

ZERO = Decimal("0")
WHOLE = Decimal("1")
CENTS = Decimal("0.01")

STATUS_SETTLED = "Settled"
STATUS_OVERPAID = "Overpaid"
STATUS_PENDING = "Pending"


def _to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise InvalidInputError(f"Invalid amount: {value!r}", field="amount")


def _amount_of(payment) -> Decimal:
    if isinstance(payment, dict):
        return _to_decimal(payment.get("amount"))
    if hasattr(payment, "amount"):
        return _to_decimal(payment.amount)
    return _to_decimal(payment)


def floor_whole(value: Decimal) -> Decimal:
    """Floor the magnitude to whole currency units, keeping the sign."""
    value = _to_decimal(value)
    if value < 0:
        return -(-value).quantize(WHOLE, rounding=ROUND_FLOOR)
    return value.quantize(WHOLE, rounding=ROUND_FLOOR)


@dataclass(frozen=True)
class LedgerBalance:
    total_paid: Decimal
    balance: Decimal
    display_balance: Decimal
    status: str

    @property
    def is_overpaid(self) -> bool:
        return self.status == STATUS_OVERPAID


def reconcile(final_salary, payments: Iterable) -> LedgerBalance:
    """
    Sum payments at full precision and compare with the final salary.
    A negative balance means the employee has been overpaid.
    """
    total_paid = sum((_amount_of(payment) for payment in payments), ZERO)
    balance = _to_decimal(final_salary) - total_paid
    display_balance = floor_whole(balance)

    if display_balance == 0:
        status = STATUS_SETTLED
    elif balance < 0:
        status = STATUS_OVERPAID
    else:
        status = STATUS_PENDING
    return LedgerBalance(
        total_paid=total_paid,
        balance=balance,
        display_balance=display_balance,
        status=status,
    )


def payment_headroom(final_salary, total_paid_excluding) -> Decimal:
    remaining = _to_decimal(final_salary) - _to_decimal(total_paid_excluding)
    return max(remaining, ZERO).quantize(WHOLE, rounding=ROUND_FLOOR)


def validate_payment_amount(final_salary, total_paid_excluding, amount) -> Decimal:
    """
    Round a proposed payment to cents and check it against the remaining
    salary. Only the headroom is floored to whole units.
    """
    amount = _to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidInputError("Payment amount must be greater than zero.", field="amount")
    headroom = payment_headroom(final_salary, total_paid_excluding)
    if amount > headroom:
        raise OverpaymentError(max_allowed=headroom)
    return amount


def recovery_note(month: int, year: int) -> str:
    return f"Recovery of overpayment for {month}/{year}"


@dataclass(frozen=True)
class RecoveryPlan:
    advance_date: date
    amount: Decimal
    note: str


def recovery_schedule(payroll_month: int, payroll_year: int, balance) -> Optional[RecoveryPlan]:
    """Compensating advance for an overpaid month, dated the 1st of the next month."""
    balance = _to_decimal(balance)
    if balance >= 0:
        return None
    amount = floor_whole(-balance)
    if amount <= 0:
        return None
    year, month = next_month(payroll_year, payroll_month)
    return RecoveryPlan(
        advance_date=date(year, month, 1),
        amount=amount,
        note=recovery_note(payroll_month, payroll_year),
    )
