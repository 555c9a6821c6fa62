"""Kernel services - flush-only building blocks used by the module services."""

from erp_kernel.services.base import BaseService
from erp_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "BaseService",
    "SequenceCounter",
    "SequenceService",
]
