"""
Module ORM Registry (``travel_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before tables are created.
``DatabaseContext.create_tables()`` calls ``import_all_orm_models()``
first; scripts and ``tests/conftest.py`` rely on that.

Architecture position
---------------------
**Modules layer** -- utility.  Imports kernel models, sibling
``travel_modules`` ORM modules and the services-layer assignment table.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ORM module.  Idempotent."""
    # Kernel tables first (accounts, journal, parties, users, rates, sequences)
    import travel_kernel.models  # noqa: F401
    import travel_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import travel_modules.booking.orm  # noqa: F401
    import travel_modules.cash.orm  # noqa: F401
    import travel_modules.invoicing.orm  # noqa: F401
    import travel_services.assignment_service  # noqa: F401
    # fmt: on
