"""
Accounting module: default chart of accounts and automatic postings.

Translates booking, invoice, receipt and payment events into journal
entries through ``travel_kernel.services.journal_ledger``.
"""

from travel_modules.accounting.chart import chart_seeds
from travel_modules.accounting.postings import BOOKING_TRANSACTION_TYPES, LedgerPostings

__all__ = ["BOOKING_TRANSACTION_TYPES", "LedgerPostings", "chart_seeds"]
