"""
Sales Order Module Service (``erp_modules.orders.service``).

Responsibility
--------------
Creates and edits draft orders and drives the order lifecycle defined in
``erp_modules.orders.workflows``, executing each transition's stock side
effects through the flush-only ``InventoryLedger``.

Architecture position
---------------------
**Modules layer** -- orchestrator.  Uses ``BomExplosionService`` for raw
material requirements and ``InventoryLedger`` for stock, both inside the
order's own transaction.

Invariants
----------
- Each public mutating method owns its transaction boundary: commit on
  success, rollback and re-raise on failure.
- The order row is locked (``SELECT ... FOR UPDATE``) before its current
  state is checked; side effects run only after that check.
- Production consumption is one locked batch over all raw requirements.
  A shortage anywhere aborts the transition with no movement written.
- Cancelling an order in production restores exactly the net quantity
  its movements consumed.
- Requesting the state the order is already in is a no-op.
- Only work orders go into production.  A quotation becomes a confirmed
  work order through ``convert_to_work_order``; the quotation itself is
  left unchanged.
- ``invoiced`` is reached only through ``mark_invoiced``, called by the
  invoicing service inside its own transaction.

Failure Modes
-------------
- ``InvalidTransitionError`` -- action not allowed from the current state.
- ``OrderNotEditableError`` -- line edits or deletion on a non-draft order.
- ``QuotationConversionError`` -- converting a non-quotation, a quotation
  past confirmed, or one without lines.
- ``InsufficientStockError`` -- production would drive stock negative.
- ``CyclicBOMError`` / ``IncompleteBOMError`` -- broken BOM under a line.
- ``ConcurrencyConflictError`` -- lock contention on the order or stock.
- ``EntityNotFoundError`` -- unknown order, order line or item.

Usage::

    service = OrderService(session)
    order = service.create_order(customer_id, [OrderItemInput(table_id, Decimal("3"))])
    service.confirm_order(order.id)
    service.start_production(order.id)
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_config import get_engine_config
from erp_config.schema import EngineConfig
from erp_engines.invoicing import (
    InvoiceLineInput,
    compute_totals,
    price_line,
    validate_discount,
)
from erp_engines.margin import MarginLine, MarginResult, calculate_margin
from erp_kernel.db.locking import lock_row, translate_concurrency_errors
from erp_kernel.db.types import HUNDRED, ZERO, to_decimal
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    EntityNotFoundError,
    InvalidTransitionError,
    OrderNotEditableError,
    QuotationConversionError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.services.sequence_service import SequenceService
from erp_modules.bom.explosion import BomExplosionService
from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import ItemType, MovementReason, StockAdjustment
from erp_modules.inventory.orm import InventoryItemModel
from erp_modules.orders.models import (
    Order,
    OrderItemInput,
    OrderStatus,
    OrderTotals,
    OrderType,
    StockShortage,
)
from erp_modules.orders.orm import OrderItemModel, OrderModel
from erp_modules.orders.workflows import (
    ACTION_TARGETS,
    HAS_ITEMS,
    IS_WORK_ORDER,
    Guard,
    SideEffect,
    resolve_transition,
)

logger = get_logger("modules.orders.service")

ORDER_REFERENCE_TYPE = "order"


class OrderService:
    """
    Orchestrates sales order editing and lifecycle transitions.

    Contract:
        Mutating methods return the order as a frozen ``Order`` DTO.
        ``mark_invoiced`` is the exception: it only flushes and is meant
        to run inside another service's transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_engine_config()
        self._ledger = InventoryLedger(session)
        self._explosion = BomExplosionService(session)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Draft editing
    # =========================================================================

    def create_order(
        self,
        customer_id: UUID,
        items: Sequence[OrderItemInput] = (),
        notes: str | None = None,
        actor_id: UUID | None = None,
        order_type: OrderType = OrderType.WORK_ORDER,
    ) -> Order:
        """Create a draft order (or quotation) with an ``ORD-YY-NNNNN`` number."""
        if customer_id is None:
            raise ValueError("customer_id is required")
        order_type = OrderType(order_type)

        try:
            numbering = self._config.numbering
            order = OrderModel(
                order_number=self._sequences.next_document_number(
                    numbering.order_prefix,
                    self._clock.today(),
                    numbering.sequence_width,
                ),
                customer_id=customer_id,
                status=OrderStatus.DRAFT.value,
                order_date=self._clock.today(),
                notes=notes,
                order_type=order_type.value,
                created_by_id=actor_id,
            )
            order.items = [
                self._build_item(item, line_number, actor_id)
                for line_number, item in enumerate(items, start=1)
            ]
            self._session.add(order)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "customer_id": str(customer_id),
                "order_type": order_type.value,
                "item_count": len(order.items),
            },
        )
        return order.to_dto()

    def add_item(
        self,
        order_id: UUID,
        item: OrderItemInput,
        actor_id: UUID | None = None,
    ) -> Order:
        """Append a line to a draft order."""
        try:
            order = self._editable_order(order_id)
            next_number = max((line.line_number for line in order.items), default=0) + 1
            order.items.append(self._build_item(item, next_number, actor_id))
            self._touch(order, actor_id)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return order.to_dto()

    def update_item(
        self,
        order_id: UUID,
        order_item_id: UUID,
        *,
        quantity: Decimal | None = None,
        unit_price: Decimal | None = None,
        vat_rate_percent: Decimal | None = None,
        discount_percent: Decimal | None = None,
        discount_amount: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> Order:
        """
        Change quantity, price, VAT rate or discount of a line on a draft
        order.  Switching discount kind means zeroing the other one.
        """
        try:
            order = self._editable_order(order_id)
            line = self._line_of(order, order_item_id)
            if quantity is not None:
                line.quantity = self._positive_quantity(quantity)
            if unit_price is not None:
                line.unit_price = self._non_negative_price(unit_price)
            if vat_rate_percent is not None:
                line.vat_rate_percent = self._vat_rate(vat_rate_percent)
            if discount_percent is not None or discount_amount is not None:
                percent = line.discount_percent if discount_percent is None else discount_percent
                amount = line.discount_amount if discount_amount is None else discount_amount
                line.discount_percent, line.discount_amount = self._discount(percent, amount)
            if actor_id is not None:
                line.updated_by_id = actor_id
            self._touch(order, actor_id)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return order.to_dto()

    def remove_item(
        self,
        order_id: UUID,
        order_item_id: UUID,
        actor_id: UUID | None = None,
    ) -> Order:
        """Remove a line from a draft order."""
        try:
            order = self._editable_order(order_id)
            order.items.remove(self._line_of(order, order_item_id))
            self._touch(order, actor_id)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return order.to_dto()

    def delete_order(self, order_id: UUID, actor_id: UUID | None = None) -> None:
        """Physically delete a draft order and its lines."""
        try:
            order = self._editable_order(order_id)
            order_number = order.order_number
            self._session.delete(order)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "order_deleted",
            extra={
                "order_id": str(order_id),
                "order_number": order_number,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

    # =========================================================================
    # Quotations
    # =========================================================================

    def convert_to_work_order(
        self,
        quotation_id: UUID,
        actor_id: UUID | None = None,
    ) -> Order:
        """
        Create a confirmed work order from a draft or confirmed quotation.

        The work order copies the quotation's customer, notes and lines
        (prices, VAT rates and discounts included) and is numbered after
        it: ``<quotation number>-WO`` for the first conversion, then
        ``-WO2``, ``-WO3`` and so on.  The quotation keeps its state and can
        be converted again.
        """
        with LogContext.bind(order_id=quotation_id, actor_id=actor_id):
            try:
                with translate_concurrency_errors("convert_to_work_order"):
                    quotation = lock_row(self._session, OrderModel, quotation_id)
                    if quotation is None:
                        raise EntityNotFoundError("Order", str(quotation_id))
                    self._check_convertible(quotation)

                    work_order = OrderModel(
                        order_number=self._work_order_number(quotation),
                        customer_id=quotation.customer_id,
                        status=OrderStatus.CONFIRMED.value,
                        order_date=self._clock.today(),
                        notes=quotation.notes,
                        order_type=OrderType.WORK_ORDER.value,
                        original_quotation_id=quotation.id,
                        created_by_id=actor_id,
                    )
                    work_order.items = [
                        OrderItemModel(
                            line_number=line.line_number,
                            item_id=line.item_id,
                            item=line.item,
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            vat_rate_percent=line.vat_rate_percent,
                            discount_percent=line.discount_percent,
                            discount_amount=line.discount_amount,
                            created_by_id=actor_id,
                        )
                        for line in quotation.items
                    ]
                    self._session.add(work_order)
                    self._session.flush()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "quotation_converted",
                extra={
                    "quotation_number": quotation.order_number,
                    "work_order_id": str(work_order.id),
                    "work_order_number": work_order.order_number,
                    "item_count": len(work_order.items),
                },
            )
        return work_order.to_dto()

    def _check_convertible(self, quotation: OrderModel) -> None:
        if quotation.order_type != OrderType.QUOTATION.value:
            raise QuotationConversionError(
                str(quotation.id), "only quotations can be converted to work orders"
            )
        if quotation.status not in (OrderStatus.DRAFT.value, OrderStatus.CONFIRMED.value):
            raise QuotationConversionError(
                str(quotation.id),
                f"quotation is {quotation.status}; it must be draft or confirmed",
            )
        if not quotation.items:
            raise QuotationConversionError(str(quotation.id), "quotation has no lines")

    def _work_order_number(self, quotation: OrderModel) -> str:
        existing = self._session.execute(
            select(func.count())
            .select_from(OrderModel)
            .where(OrderModel.original_quotation_id == quotation.id)
        ).scalar_one()
        if existing == 0:
            return f"{quotation.order_number}-WO"
        return f"{quotation.order_number}-WO{existing + 1}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def confirm_order(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        return self._run_transition(order_id, "confirm", actor_id)

    def start_production(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        """Consume raw materials for every line and move to in_production."""
        return self._run_transition(order_id, "start_production", actor_id)

    def ship_order(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        return self._run_transition(order_id, "ship", actor_id)

    def deliver_order(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        return self._run_transition(order_id, "deliver", actor_id)

    def cancel_order(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        """Cancel from draft, confirmed or in_production (restoring stock)."""
        return self._run_transition(order_id, "cancel", actor_id)

    def mark_invoiced(self, order_id: UUID, actor_id: UUID | None = None) -> Order:
        """
        Move a delivered order to invoiced.  Flush only.

        Called by the invoicing service in the transaction that creates the
        invoice; the caller commits or rolls back.
        """
        with LogContext.bind(order_id=order_id), translate_concurrency_errors("invoice"):
            order = self._apply_transition(order_id, "invoice", actor_id, system=True)
        return order.to_dto()

    def _run_transition(
        self,
        order_id: UUID,
        action: str,
        actor_id: UUID | None,
    ) -> Order:
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with translate_concurrency_errors(action):
                    order = self._apply_transition(order_id, action, actor_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
        return order.to_dto()

    def _apply_transition(
        self,
        order_id: UUID,
        action: str,
        actor_id: UUID | None,
        system: bool = False,
    ) -> OrderModel:
        order = lock_row(self._session, OrderModel, order_id)
        if order is None:
            raise EntityNotFoundError("Order", str(order_id))

        current = order.status
        target = ACTION_TARGETS[action]
        if current == target:
            logger.info(
                "order_transition_noop",
                extra={"order_id": str(order.id), "status": current, "action": action},
            )
            return order

        transition = resolve_transition(current, action)
        if transition is None or (not transition.user_initiated and not system):
            self._reject(order, target, action)
        if transition.guard is not None and not self._guard_passes(transition.guard, order):
            self._reject(order, target, action, guard=transition.guard)

        for effect in transition.side_effects:
            self._run_side_effect(effect, order, actor_id)

        order.status = transition.to_state
        self._touch(order, actor_id)
        self._session.flush()

        logger.info(
            "order_transition_applied",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "action": action,
                "from_state": current,
                "to_state": transition.to_state,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return order

    def _reject(
        self,
        order: OrderModel,
        target: str,
        action: str,
        guard: Guard | None = None,
    ) -> None:
        logger.warning(
            "order_transition_rejected",
            extra={
                "order_id": str(order.id),
                "action": action,
                "from_state": order.status,
                "to_state": target,
                "guard": guard.name if guard else None,
            },
        )
        raise InvalidTransitionError("Order", str(order.id), order.status, target)

    def _guard_passes(self, guard: Guard, order: OrderModel) -> bool:
        if guard is HAS_ITEMS:
            return bool(order.items)
        if guard is IS_WORK_ORDER:
            return order.order_type == OrderType.WORK_ORDER.value
        # Remaining guards are satisfied by the calling context.
        return True

    def _run_side_effect(
        self,
        effect: SideEffect,
        order: OrderModel,
        actor_id: UUID | None,
    ) -> None:
        if effect is SideEffect.CONSUME_COMPONENTS:
            self._consume_components(order, actor_id)
        elif effect is SideEffect.RESTORE_COMPONENTS:
            self._restore_components(order, actor_id)

    def _consume_components(self, order: OrderModel, actor_id: UUID | None) -> None:
        requirements = self._production_requirements(order)
        self._ledger.adjust_many(
            (
                StockAdjustment(item_id, -quantity, MovementReason.PRODUCTION_CONSUMPTION)
                for item_id, quantity in requirements.items()
            ),
            reference_type=ORDER_REFERENCE_TYPE,
            reference_id=order.id,
            actor_id=actor_id,
        )
        logger.info(
            "order_components_consumed",
            extra={"order_id": str(order.id), "component_count": len(requirements)},
        )

    def _restore_components(self, order: OrderModel, actor_id: UUID | None) -> None:
        net: dict[UUID, Decimal] = {}
        for movement in self._ledger.movements_for(
            reference_type=ORDER_REFERENCE_TYPE, reference_id=order.id
        ):
            net[movement.item_id] = net.get(movement.item_id, ZERO) + movement.delta

        restorations = [
            StockAdjustment(item_id, -delta, MovementReason.PRODUCTION_REVERSAL)
            for item_id, delta in net.items()
            if delta < 0
        ]
        self._ledger.adjust_many(
            restorations,
            reference_type=ORDER_REFERENCE_TYPE,
            reference_id=order.id,
            actor_id=actor_id,
        )
        logger.info(
            "order_components_restored",
            extra={"order_id": str(order.id), "component_count": len(restorations)},
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: UUID) -> Order:
        return self._order_model(order_id).to_dto()

    def order_total(self, order_id: UUID) -> OrderTotals:
        """Net, VAT and gross of an order, rounded once after summing lines."""
        order = self._order_model(order_id)
        money = self._config.money
        totals = compute_totals(
            [
                price_line(
                    InvoiceLineInput(
                        description=line.item.name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        vat_rate_percent=line.vat_rate_percent,
                        discount_percent=line.discount_percent,
                        discount_amount=line.discount_amount,
                    )
                )
                for line in order.items
            ],
            money.decimal_places,
            money.rounding,
        )
        return OrderTotals(
            net_amount=totals.total_amount,
            vat_amount=totals.total_vat,
            gross_amount=totals.total_gross,
        )

    def check_stock_availability(self, order_id: UUID) -> list[StockShortage]:
        """
        Raw materials whose on-hand quantity does not cover what producing
        the order would consume.  Read-only; takes no locks.
        """
        order = self._order_model(order_id)
        requirements = self._production_requirements(order)
        shortages: list[StockShortage] = []
        for item_id, required in requirements.items():
            item = self._ledger.get_item_model(item_id)
            if item.quantity_on_hand < required:
                shortages.append(
                    StockShortage(
                        item_id=item.id,
                        sku=item.sku,
                        name=item.name,
                        required=required,
                        available=item.quantity_on_hand,
                    )
                )
        return shortages

    def calculate_margin(self, order_id: UUID) -> MarginResult:
        """Revenue minus cost, costing manufactured lines by BOM roll-up."""
        order = self._order_model(order_id)
        manufactured_ids = [
            line.item_id for line in order.items
            if line.item.item_type == ItemType.MANUFACTURED.value
        ]
        graph = self._explosion.build_graph(manufactured_ids) if manufactured_ids else None

        lines = []
        for line in order.items:
            if graph is not None and line.item_id in manufactured_ids:
                unit_cost = graph.roll_up_cost(line.item_id)
            else:
                unit_cost = line.item.unit_cost
            lines.append(
                MarginLine(
                    line.quantity,
                    line.unit_price,
                    unit_cost,
                    discount_percent=line.discount_percent,
                    discount_amount=line.discount_amount,
                )
            )
        return calculate_margin(lines)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _production_requirements(self, order: OrderModel) -> dict[UUID, Decimal]:
        """Raw material quantities consumed by producing every line."""
        requirements: dict[UUID, Decimal] = {}
        manufactured = [
            line for line in order.items
            if line.item.item_type == ItemType.MANUFACTURED.value
        ]
        if manufactured:
            graph = self._explosion.build_graph([line.item_id for line in manufactured])
            for line in manufactured:
                for component_id, quantity in graph.explode(line.item_id, line.quantity).items():
                    requirements[component_id] = requirements.get(component_id, ZERO) + quantity

        for line in order.items:
            if line.item.item_type != ItemType.MANUFACTURED.value:
                requirements[line.item_id] = requirements.get(line.item_id, ZERO) + line.quantity
        return requirements

    def _order_model(self, order_id: UUID) -> OrderModel:
        order = self._session.get(OrderModel, order_id)
        if order is None:
            raise EntityNotFoundError("Order", str(order_id))
        return order

    def _editable_order(self, order_id: UUID) -> OrderModel:
        order = lock_row(self._session, OrderModel, order_id)
        if order is None:
            raise EntityNotFoundError("Order", str(order_id))
        if order.status != OrderStatus.DRAFT.value:
            raise OrderNotEditableError(str(order_id), order.status)
        return order

    def _line_of(self, order: OrderModel, order_item_id: UUID) -> OrderItemModel:
        for line in order.items:
            if line.id == order_item_id:
                return line
        raise EntityNotFoundError("OrderItem", str(order_item_id))

    def _build_item(
        self,
        item: OrderItemInput,
        line_number: int,
        actor_id: UUID | None,
    ) -> OrderItemModel:
        stock_item = self._session.get(InventoryItemModel, item.item_id)
        if stock_item is None:
            raise EntityNotFoundError("InventoryItem", str(item.item_id))
        if not stock_item.is_active:
            raise ValueError(f"Item {stock_item.sku} is inactive and cannot be ordered")

        unit_price = stock_item.sales_price if item.unit_price is None else item.unit_price
        vat_rate = (
            self._config.invoicing.default_vat_rate_percent
            if item.vat_rate_percent is None
            else item.vat_rate_percent
        )
        discount_percent, discount_amount = self._discount(
            item.discount_percent, item.discount_amount
        )
        return OrderItemModel(
            line_number=line_number,
            item_id=stock_item.id,
            item=stock_item,
            quantity=self._positive_quantity(item.quantity),
            unit_price=self._non_negative_price(unit_price),
            vat_rate_percent=self._vat_rate(vat_rate),
            discount_percent=discount_percent,
            discount_amount=discount_amount,
            created_by_id=actor_id,
        )

    @staticmethod
    def _positive_quantity(value: Decimal) -> Decimal:
        value = to_decimal(value)
        if value <= 0:
            raise ValueError(f"quantity must be positive, got {value}")
        return value

    @staticmethod
    def _non_negative_price(value: Decimal) -> Decimal:
        value = to_decimal(value)
        if value < 0:
            raise ValueError(f"unit_price cannot be negative, got {value}")
        return value

    @staticmethod
    def _vat_rate(value: Decimal) -> Decimal:
        value = to_decimal(value)
        if not ZERO <= value <= HUNDRED:
            raise ValueError(f"vat_rate_percent must be between 0 and 100, got {value}")
        return value

    @staticmethod
    def _discount(percent: Decimal, amount: Decimal) -> tuple[Decimal, Decimal]:
        percent, amount = to_decimal(percent), to_decimal(amount)
        validate_discount(percent, amount)
        return percent, amount

    @staticmethod
    def _touch(order: OrderModel, actor_id: UUID | None) -> None:
        if actor_id is not None:
            order.updated_by_id = actor_id
