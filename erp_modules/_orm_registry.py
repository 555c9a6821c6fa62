"""
Module ORM Registry (``erp_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``erp_kernel.db.engine.create_tables``; ``erp_kernel`` never imports
module packages at import time.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``erp_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import erp_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import erp_modules.inventory.orm  # noqa: F401
    import erp_modules.bom.orm  # noqa: F401
    import erp_modules.orders.orm  # noqa: F401
    import erp_modules.invoicing.orm  # noqa: F401
    # fmt: on


def create_all_tables(install_listeners: bool = True) -> None:
    """Create every table, then optionally register immutability listeners.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from erp_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(install_listeners=install_listeners)
