"""
Fixtures for multi-connection concurrency tests (PostgreSQL only).

Sessions created here commit for real; every table is truncated at
teardown.
"""

import threading

import pytest
from sqlalchemy import text

from erp_kernel.db.engine import get_session_factory

_TABLES = (
    "credit_note_items", "credit_notes", "invoice_items", "invoices",
    "order_items", "orders", "bom_lines", "bills_of_material",
    "stock_movements", "inventory_items", "sequence_counters",
)


@pytest.fixture(scope="function")
def pg_session_factory(db_engine, db_tables):
    """Tracked session factory; each thread creates its own session."""
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()

    def tracked_factory():
        with lock:
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    for s in created_sessions:
        s.rollback()
        s.close()

    with db_engine.begin() as conn:
        conn.execute(text(f"TRUNCATE {', '.join(_TABLES)} CASCADE"))
