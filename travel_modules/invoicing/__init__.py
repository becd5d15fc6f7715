"""
Invoicing module: invoices raised from bookings and customer receipts.

Receipt writes go through ``travel_services.ledger_propagation`` so that
invoice and booking status stay consistent with the money received.
"""

from travel_modules.invoicing.models import (
    InvoiceInfo,
    InvoiceStatus,
    MatchingStatus,
    ReceiptInfo,
    ReceiptPatch,
    ReceiptRequest,
    ReceiptStatus,
    derive_invoice_status,
)
from travel_modules.invoicing.service import InvoiceService

__all__ = [
    "InvoiceInfo",
    "InvoiceService",
    "InvoiceStatus",
    "MatchingStatus",
    "ReceiptInfo",
    "ReceiptPatch",
    "ReceiptRequest",
    "ReceiptStatus",
    "derive_invoice_status",
]
