"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before
``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``ledger_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables go first so module tables can reference them.
    Idempotent.
    """
    import ledger_kernel.models  # noqa: F401
    # fmt: off
    import ledger_modules.purchasing.orm  # noqa: F401
    import ledger_modules.sales.orm  # noqa: F401
    import ledger_modules.manufacturing.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Create kernel and module tables on the initialized engine."""
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
