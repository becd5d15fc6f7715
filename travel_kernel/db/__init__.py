"""Database layer - context, base classes and immutability listeners."""

from travel_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from travel_kernel.db.engine import DatabaseContext

__all__ = [
    "DatabaseContext",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
