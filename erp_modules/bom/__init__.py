"""
BOM module: bill-of-material maintenance, explosion and cost roll-up.
"""

from erp_modules.bom.explosion import BomExplosionService
from erp_modules.bom.models import BillOfMaterial, BomLine, BomLineInput
from erp_modules.bom.service import BomService

__all__ = [
    "BillOfMaterial",
    "BomExplosionService",
    "BomLine",
    "BomLineInput",
    "BomService",
]
