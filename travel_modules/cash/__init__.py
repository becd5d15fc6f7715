"""
Cash Management Module.

Bank accounts, cash registers and supplier payments.
"""

from travel_modules.cash.models import (
    BankAccountInfo,
    CashRegisterInfo,
    PaymentInfo,
    PaymentMethod,
    PaymentPatch,
    PaymentRequest,
    PaymentStatus,
)

__all__ = [
    "BankAccountInfo",
    "CashRegisterInfo",
    "PaymentInfo",
    "PaymentMethod",
    "PaymentPatch",
    "PaymentRequest",
    "PaymentStatus",
]
