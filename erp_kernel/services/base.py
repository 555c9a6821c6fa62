"""
BaseService -- abstract base for flush-only services.

Responsibility:
    Provides the common constructor and session-handling contract for
    services that run inside a caller-owned transaction (the inventory
    ledger, BOM explosion).  Such services use ``session.flush()`` and
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (an order
    transition, invoice creation, or a test) owns commit/rollback, which is
    what makes "consume all components or none" possible.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from erp_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
