"""Kernel ORM models."""

from travel_kernel.models.account import Account, AccountType
from travel_kernel.models.currency import CurrencyRate
from travel_kernel.models.journal import JournalEntry, JournalEntryStatus, TransactionType
from travel_kernel.models.party import Party, PartyType
from travel_kernel.models.user import User, UserRole

__all__ = [
    "Account",
    "AccountType",
    "CurrencyRate",
    "JournalEntry",
    "JournalEntryStatus",
    "TransactionType",
    "Party",
    "PartyType",
    "User",
    "UserRole",
]
