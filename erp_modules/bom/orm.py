"""
Bill-of-Material ORM Models (``erp_modules.bom.orm``).

Responsibility
--------------
SQLAlchemy persistence for BOM headers and their ordered component lines.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``erp_kernel.db.base``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase


class BillOfMaterialModel(TrackedBase):
    """
    ORM model for BOM headers.

    Guarantees:
        - At most one BOM per manufactured item (uq_boms_item_id).
        - name is unique (uq_boms_name).
        - total_calculated_cost is the rolled-up unit cost at save time.
    """

    __tablename__ = "bills_of_material"

    __table_args__ = (
        UniqueConstraint("item_id", name="uq_boms_item_id"),
        UniqueConstraint("name", name="uq_boms_name"),
        CheckConstraint("manual_labor_cost >= 0", name="ck_boms_labor_non_negative"),
    )

    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    manual_labor_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_calculated_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lines: Mapped[list["BomLineModel"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BomLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.bom.models import BillOfMaterial

        return BillOfMaterial(
            id=self.id,
            item_id=self.item_id,
            name=self.name,
            manual_labor_cost=self.manual_labor_cost,
            total_calculated_cost=self.total_calculated_cost,
            is_active=self.is_active,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<BillOfMaterialModel {self.name} item={self.item_id}>"


class BomLineModel(TrackedBase):
    """
    ORM model for BOM component lines.

    Guarantees:
        - quantity_per_unit > 0 (ck_bom_lines_quantity_positive).
        - A component appears at most once per BOM (uq_bom_lines_component).
    """

    __tablename__ = "bom_lines"

    __table_args__ = (
        UniqueConstraint("bom_id", "component_item_id", name="uq_bom_lines_component"),
        CheckConstraint("quantity_per_unit > 0", name="ck_bom_lines_quantity_positive"),
        Index("idx_bom_lines_bom_id", "bom_id"),
        Index("idx_bom_lines_component_item_id", "component_item_id"),
    )

    bom_id: Mapped[UUID] = mapped_column(
        ForeignKey("bills_of_material.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    component_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    quantity_per_unit: Mapped[Decimal] = mapped_column(nullable=False)

    bom: Mapped["BillOfMaterialModel"] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.bom.models import BomLine

        return BomLine(
            id=self.id,
            bom_id=self.bom_id,
            line_number=self.line_number,
            component_item_id=self.component_item_id,
            quantity_per_unit=self.quantity_per_unit,
        )

    def __repr__(self) -> str:
        return (
            f"<BomLineModel line={self.line_number} "
            f"component={self.component_item_id} qty={self.quantity_per_unit}>"
        )
