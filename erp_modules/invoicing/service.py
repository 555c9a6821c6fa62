"""
Invoicing Module Service (``erp_modules.invoicing.service``).

Responsibility
--------------
Issues invoices (from delivered orders or as manual line sets), issues
credit notes against them, and moves invoices through their status
workflow.  All amounts come from ``erp_engines.invoicing``.

Architecture position
---------------------
**Modules layer** -- orchestrator.  Drives ``OrderService.mark_invoiced``
inside the invoice transaction and calls the configured
``InvoiceNotifier`` only after commit.

Invariants
----------
- Each public mutating method owns its transaction boundary: commit on
  success, rollback and re-raise on failure.
- An order is invoiced exactly once: the order row is locked, must be
  ``delivered``, and moves to ``invoiced`` in the same transaction as the
  invoice insert.
- Invoice and credit note lines are immutable after insert.
- For every invoice line, cumulative credited net and VAT never exceed
  the line's original values.  The check runs under the invoice row lock
  against all prior credit notes.
- A notifier failure never rolls back a committed document.

Failure Modes
-------------
- ``InvalidTransitionError`` -- order not delivered, credit note against a
  cancelled invoice, or a disallowed invoice status change.
- ``OverCreditError`` -- a credit line exceeds what remains creditable.
- ``ValueError`` -- empty line sets, negative amounts, due date before
  invoice date.
- ``EntityNotFoundError`` -- unknown order, invoice or credit note.
- ``ConcurrencyConflictError`` -- lock contention.

Usage::

    service = InvoicingService(session)
    invoice = service.create_invoice_from_order(order.id)
    service.create_credit_note(invoice.id, [
        CreditLineInput(invoice.items[0].id, Decimal("200"), Decimal("48")),
    ])
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_config import get_engine_config
from erp_config.schema import EngineConfig
from erp_engines.invoicing import (
    CreditableLine,
    CreditRequest,
    InvoiceLineInput,
    apply_credit,
    compute_totals,
    is_fully_credited,
    price_line,
    validate_credit_request,
)
from erp_engines.reference_number import reference_from_document_number
from erp_kernel.db.locking import lock_row, translate_concurrency_errors
from erp_kernel.db.types import ZERO, round_money, to_decimal
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    EntityNotFoundError,
    InvalidTransitionError,
    OverCreditError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.services.sequence_service import SequenceService
from erp_modules.invoicing.models import (
    CreditLineInput,
    CreditLineSummary,
    CreditNote,
    CreditSummary,
    Invoice,
    InvoiceItemInput,
    InvoiceStatus,
)
from erp_modules.invoicing.notifications import (
    InvoiceNotifier,
    LoggingInvoiceNotifier,
    notify_safely,
)
from erp_modules.invoicing.orm import (
    CreditNoteItemModel,
    CreditNoteModel,
    InvoiceItemModel,
    InvoiceModel,
)
from erp_modules.invoicing.workflows import (
    ACTION_TARGETS,
    PAST_DUE,
    resolve_transition,
)
from erp_modules.orders.models import OrderStatus
from erp_modules.orders.orm import OrderModel
from erp_modules.orders.service import OrderService

logger = get_logger("modules.invoicing.service")


class InvoicingService:
    """
    Orchestrates invoice and credit note issuance.

    Contract:
        Mutating methods return frozen DTOs.  The notifier is called with
        the committed DTO after the transaction ends.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
        notifier: InvoiceNotifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_engine_config()
        self._notifier = notifier or LoggingInvoiceNotifier()
        self._sequences = SequenceService(session)
        self._orders = OrderService(session, clock=self._clock, config=self._config)

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice_from_order(
        self,
        order_id: UUID,
        invoice_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> Invoice:
        """
        Invoice a delivered order and mark it invoiced, atomically.

        Raises:
            InvalidTransitionError: the order is not ``delivered``.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with translate_concurrency_errors("create_invoice_from_order"):
                    order = lock_row(self._session, OrderModel, order_id)
                    if order is None:
                        raise EntityNotFoundError("Order", str(order_id))
                    if order.status != OrderStatus.DELIVERED.value:
                        logger.warning(
                            "invoice_rejected_order_not_delivered",
                            extra={"order_id": str(order_id), "status": order.status},
                        )
                        raise InvalidTransitionError(
                            "Order", str(order_id), order.status, OrderStatus.INVOICED.value,
                        )

                    invoice = self._issue_invoice(
                        customer_id=order.customer_id,
                        lines=[
                            (
                                InvoiceLineInput(
                                    description=line.item.name,
                                    quantity=line.quantity,
                                    unit_price=line.unit_price,
                                    vat_rate_percent=line.vat_rate_percent,
                                    discount_percent=line.discount_percent,
                                    discount_amount=line.discount_amount,
                                ),
                                line.item_id,
                            )
                            for line in order.items
                        ],
                        order_id=order.id,
                        invoice_date=invoice_date,
                        due_date=due_date,
                        notes=notes,
                        actor_id=actor_id,
                    )
                    with LogContext.bind(invoice_id=invoice.id):
                        self._orders.mark_invoiced(order.id, actor_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            return self._announce_invoice(invoice)

    def create_manual_invoice(
        self,
        customer_id: UUID,
        items: Sequence[InvoiceItemInput],
        invoice_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> Invoice:
        """Invoice an arbitrary line set with no order linkage."""
        if customer_id is None:
            raise ValueError("customer_id is required")
        default_vat = self._config.invoicing.default_vat_rate_percent
        lines = []
        for item in items:
            if not item.description or not item.description.strip():
                raise ValueError("invoice line description cannot be empty")
            lines.append((
                InvoiceLineInput(
                    description=item.description.strip(),
                    quantity=to_decimal(item.quantity),
                    unit_price=to_decimal(item.unit_price),
                    vat_rate_percent=(
                        default_vat if item.vat_rate_percent is None
                        else to_decimal(item.vat_rate_percent)
                    ),
                    discount_percent=to_decimal(item.discount_percent),
                    discount_amount=to_decimal(item.discount_amount),
                ),
                item.item_id,
            ))

        with LogContext.bind(actor_id=actor_id):
            try:
                invoice = self._issue_invoice(
                    customer_id=customer_id,
                    lines=lines,
                    order_id=None,
                    invoice_date=invoice_date,
                    due_date=due_date,
                    notes=notes,
                    actor_id=actor_id,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            return self._announce_invoice(invoice)

    def _issue_invoice(
        self,
        customer_id: UUID,
        lines: list[tuple[InvoiceLineInput, UUID | None]],
        order_id: UUID | None,
        invoice_date: date | None,
        due_date: date | None,
        notes: str | None,
        actor_id: UUID | None,
    ) -> InvoiceModel:
        if not lines:
            raise ValueError("An invoice needs at least one line")

        invoice_date = invoice_date or self._clock.today()
        if due_date is None:
            due_date = invoice_date + timedelta(days=self._config.invoicing.payment_terms_days)
        if due_date < invoice_date:
            raise ValueError(f"due_date {due_date} is before invoice_date {invoice_date}")

        money = self._config.money
        priced = [price_line(line) for line, _ in lines]
        totals = compute_totals(priced, money.decimal_places, money.rounding)

        numbering = self._config.numbering
        invoice_number = self._sequences.next_document_number(
            numbering.invoice_prefix, invoice_date, numbering.sequence_width,
        )
        invoice = InvoiceModel(
            invoice_number=invoice_number,
            reference_number=reference_from_document_number(invoice_number),
            customer_id=customer_id,
            order_id=order_id,
            status=InvoiceStatus.DRAFT.value,
            invoice_date=invoice_date,
            due_date=due_date,
            total_amount=totals.total_amount,
            total_vat=totals.total_vat,
            notes=notes,
            created_by_id=actor_id,
        )
        invoice.items = [
            InvoiceItemModel(
                line_number=line_number,
                item_id=item_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                vat_rate_percent=line.vat_rate_percent,
                discount_percent=line.discount_percent,
                discount_amount=line.discount_amount,
                line_total=line.line_total,
                line_vat=line.line_vat,
                created_by_id=actor_id,
            )
            for line_number, (line, (_, item_id)) in enumerate(zip(priced, lines), start=1)
        ]
        self._session.add(invoice)
        self._session.flush()
        return invoice

    def _announce_invoice(self, invoice: InvoiceModel) -> Invoice:
        dto = invoice.to_dto()
        with LogContext.bind(invoice_id=dto.id):
            logger.info(
                "invoice_created",
                extra={
                    "invoice_number": dto.invoice_number,
                    "order_id": str(dto.order_id) if dto.order_id else None,
                    "total_amount": dto.total_amount,
                    "total_vat": dto.total_vat,
                    "line_count": len(dto.items),
                },
            )
            notify_safely(self._notifier, "invoice_created", dto)
        return dto

    # =========================================================================
    # Credit notes
    # =========================================================================

    def create_credit_note(
        self,
        invoice_id: UUID,
        lines: Sequence[CreditLineInput],
        notes: str | None = None,
        credit_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> CreditNote:
        """
        Credit (part of) an invoice.

        The invoice becomes ``credited`` once every line's net and VAT are
        fully covered by credit notes; otherwise its status is unchanged.

        Raises:
            ValueError: negative amounts, or no line with a positive amount.
            OverCreditError: a line would be credited beyond its original
                values.  Nothing is written.
            InvalidTransitionError: the invoice is cancelled.
        """
        requests = [
            CreditRequest(
                line_id=line.invoice_item_id,
                credit_amount=to_decimal(line.credit_amount),
                credit_vat_amount=to_decimal(line.credit_vat_amount),
            )
            for line in lines
        ]

        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            return self._credit_invoice(invoice_id, lines, requests, notes, credit_date, actor_id)

    def _credit_invoice(
        self,
        invoice_id: UUID,
        lines: Sequence[CreditLineInput],
        requests: list[CreditRequest],
        notes: str | None,
        credit_date: date | None,
        actor_id: UUID | None,
    ) -> CreditNote:
        try:
            with translate_concurrency_errors("create_credit_note"):
                invoice = lock_row(self._session, InvoiceModel, invoice_id)
                if invoice is None:
                    raise EntityNotFoundError("Invoice", str(invoice_id))
                if invoice.status == InvoiceStatus.CANCELLED.value:
                    raise InvalidTransitionError(
                        "Invoice", str(invoice_id), invoice.status,
                        InvoiceStatus.CREDITED.value,
                    )

                originals = self._creditable_lines(invoice)
                try:
                    validate_credit_request(invoice.id, originals, requests)
                except OverCreditError as exc:
                    logger.warning(
                        "credit_note_rejected",
                        extra={
                            "invoice_id": str(invoice.id),
                            "invoice_item_id": exc.invoice_item_id,
                            "component": exc.component,
                        },
                    )
                    raise

                credit_note = self._insert_credit_note(
                    invoice, lines, requests, notes, credit_date, actor_id,
                )

                credited = apply_credit(originals, requests)
                tolerance = self._config.invoicing.credit_rounding_tolerance
                if is_fully_credited(credited.values(), tolerance):
                    self._apply_status(invoice, "credit", actor_id, system=True)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        dto = credit_note.to_dto()
        invoice_dto = invoice.to_dto()
        logger.info(
            "credit_note_created",
            extra={
                "credit_note_id": str(dto.id),
                "credit_note_number": dto.credit_note_number,
                "invoice_id": str(invoice_dto.id),
                "total_amount": dto.total_amount,
                "total_vat": dto.total_vat,
                "invoice_status": invoice_dto.status.value,
            },
        )
        notify_safely(self._notifier, "credit_note_created", dto, invoice_dto)
        return dto

    def _insert_credit_note(
        self,
        invoice: InvoiceModel,
        lines: Sequence[CreditLineInput],
        requests: Sequence[CreditRequest],
        notes: str | None,
        credit_date: date | None,
        actor_id: UUID | None,
    ) -> CreditNoteModel:
        money = self._config.money
        descriptions = {item.id: item.description for item in invoice.items}
        credit_date = credit_date or self._clock.today()

        credit_note = CreditNoteModel(
            credit_note_number=self._sequences.next_document_number(
                self._config.numbering.credit_note_prefix,
                credit_date,
                self._config.numbering.sequence_width,
            ),
            invoice_id=invoice.id,
            credit_date=credit_date,
            total_amount=round_money(
                sum((r.credit_amount for r in requests), ZERO),
                money.decimal_places, money.rounding,
            ),
            total_vat=round_money(
                sum((r.credit_vat_amount for r in requests), ZERO),
                money.decimal_places, money.rounding,
            ),
            notes=notes,
            created_by_id=actor_id,
        )
        credit_note.items = [
            CreditNoteItemModel(
                invoice_item_id=request.line_id,
                description=line.description or descriptions[request.line_id],
                credit_amount=request.credit_amount,
                credit_vat_amount=request.credit_vat_amount,
                created_by_id=actor_id,
            )
            for line, request in zip(lines, requests)
            if not request.is_empty
        ]
        self._session.add(credit_note)
        self._session.flush()
        return credit_note

    def _creditable_lines(self, invoice: InvoiceModel) -> dict[UUID, CreditableLine]:
        """Original line values with the sums of all prior credits."""
        credited_amount: dict[UUID, Decimal] = {}
        credited_vat: dict[UUID, Decimal] = {}
        prior = self._session.scalars(
            select(CreditNoteItemModel)
            .join(CreditNoteModel, CreditNoteItemModel.credit_note_id == CreditNoteModel.id)
            .where(CreditNoteModel.invoice_id == invoice.id)
        )
        for item in prior:
            key = item.invoice_item_id
            credited_amount[key] = credited_amount.get(key, ZERO) + item.credit_amount
            credited_vat[key] = credited_vat.get(key, ZERO) + item.credit_vat_amount

        return {
            item.id: CreditableLine(
                line_id=item.id,
                line_total=item.line_total,
                line_vat=item.line_vat,
                credited_amount=credited_amount.get(item.id, ZERO),
                credited_vat=credited_vat.get(item.id, ZERO),
            )
            for item in invoice.items
        }

    def credit_summary(self, invoice_id: UUID) -> CreditSummary:
        """Per-line credited and remaining amounts of an invoice."""
        invoice = self._invoice_model(invoice_id)
        originals = self._creditable_lines(invoice)
        money = self._config.money
        return CreditSummary(
            invoice_id=invoice.id,
            status=InvoiceStatus(invoice.status),
            lines=tuple(
                CreditLineSummary(
                    invoice_item_id=line.line_id,
                    line_total=line.line_total,
                    line_vat=line.line_vat,
                    credited_amount=line.credited_amount,
                    credited_vat=line.credited_vat,
                    remaining_amount=line.remaining_amount,
                    remaining_vat=line.remaining_vat,
                )
                for line in originals.values()
            ),
            total_credited_amount=round_money(
                sum((line.credited_amount for line in originals.values()), ZERO),
                money.decimal_places, money.rounding,
            ),
            total_credited_vat=round_money(
                sum((line.credited_vat for line in originals.values()), ZERO),
                money.decimal_places, money.rounding,
            ),
            is_fully_credited=is_fully_credited(
                originals.values(), self._config.invoicing.credit_rounding_tolerance,
            ),
        )

    # =========================================================================
    # Status workflow
    # =========================================================================

    def send_invoice(self, invoice_id: UUID, actor_id: UUID | None = None) -> Invoice:
        return self._run_status(invoice_id, "send", actor_id)

    def record_payment(
        self,
        invoice_id: UUID,
        paid_at: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> Invoice:
        """Mark a sent or overdue invoice paid."""
        return self._run_status(invoice_id, "pay", actor_id, paid_at=paid_at)

    def mark_overdue(self, invoice_id: UUID, actor_id: UUID | None = None) -> Invoice:
        """Mark a sent invoice overdue; its due date must have passed."""
        return self._run_status(invoice_id, "mark_overdue", actor_id)

    def cancel_invoice(self, invoice_id: UUID, actor_id: UUID | None = None) -> Invoice:
        """Cancel a draft invoice.  The invoiced order is not reopened."""
        return self._run_status(invoice_id, "cancel", actor_id)

    def _run_status(
        self,
        invoice_id: UUID,
        action: str,
        actor_id: UUID | None,
        paid_at: datetime | None = None,
    ) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            try:
                with translate_concurrency_errors(action):
                    invoice = lock_row(self._session, InvoiceModel, invoice_id)
                    if invoice is None:
                        raise EntityNotFoundError("Invoice", str(invoice_id))
                    self._apply_status(invoice, action, actor_id, paid_at=paid_at)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
        return invoice.to_dto()

    def _apply_status(
        self,
        invoice: InvoiceModel,
        action: str,
        actor_id: UUID | None,
        system: bool = False,
        paid_at: datetime | None = None,
    ) -> None:
        current = invoice.status
        target = ACTION_TARGETS[action]
        if current == target:
            logger.info(
                "invoice_status_noop",
                extra={"invoice_id": str(invoice.id), "status": current, "action": action},
            )
            return

        transition = resolve_transition(current, action)
        allowed = transition is not None and (transition.user_initiated or system)
        if allowed and transition.guard is PAST_DUE:
            allowed = invoice.due_date < self._clock.today()
        if not allowed:
            logger.warning(
                "invoice_transition_rejected",
                extra={
                    "invoice_id": str(invoice.id),
                    "action": action,
                    "from_state": current,
                    "to_state": target,
                },
            )
            raise InvalidTransitionError("Invoice", str(invoice.id), current, target)

        invoice.status = transition.to_state
        if action == "pay":
            invoice.paid_at = paid_at or self._clock.now()
        if actor_id is not None:
            invoice.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "action": action,
                "from_state": current,
                "to_state": transition.to_state,
            },
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._invoice_model(invoice_id).to_dto()

    def get_credit_note(self, credit_note_id: UUID) -> CreditNote:
        credit_note = self._session.get(CreditNoteModel, credit_note_id)
        if credit_note is None:
            raise EntityNotFoundError("CreditNote", str(credit_note_id))
        return credit_note.to_dto()

    def list_credit_notes(self, invoice_id: UUID) -> list[CreditNote]:
        rows = self._session.scalars(
            select(CreditNoteModel)
            .where(CreditNoteModel.invoice_id == invoice_id)
            .order_by(CreditNoteModel.credit_note_number)
        )
        return [row.to_dto() for row in rows]

    def _invoice_model(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self._session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise EntityNotFoundError("Invoice", str(invoice_id))
        return invoice
