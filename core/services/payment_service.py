"""
Payment ledger.

Payments are append-only. Recording one writes the payment, re-projects the
invoice from the sum of all its payments and appends the audit entry, all in
one transaction.
"""

import logging
from datetime import datetime
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from core.audit import AuditLogger, AuditAction, EntityType
from core.config import LedgerConfig
from core.exceptions import BusinessRuleViolation
from core.models import Payment, PaymentCreate, PaymentMethod
from core.money import format_money, validate_payment_amount
from core.services.invoice_service import InvoiceService
from utils.actor_context import resolve_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

PAYMENTS = "payments"


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        invoices: InvoiceService,
        config: LedgerConfig | None = None
    ):
        self.store = store
        self.audit = audit
        self.invoices = invoices
        self.config = config or LedgerConfig()

    def record_payment(self, data: PaymentCreate, actor_id: UUID | None = None) -> Payment:
        """
        Record a payment against an invoice.

        Checks run in order: invoice cancelled, invoice already paid, amount
        within (0, balance], reference present for online payments.

        Args:
            data: Payment data
            actor_id: Acting user (defaults to actor context)

        Returns:
            The recorded payment. Read the invoice back for its new status.

        Raises:
            NotFoundError: If invoice not found
            BusinessRuleViolation: If any check fails (nothing is written)
        """
        actor_id = resolve_actor_id(actor_id)
        symbol = self.config.currency_symbol

        with self.store.transaction():
            invoice = self.invoices.require(data.invoice_id)

            if invoice.is_cancelled:
                raise BusinessRuleViolation(
                    f"Cannot record payment on cancelled invoice {invoice.invoice_no}"
                )
            if invoice.is_paid:
                raise BusinessRuleViolation(f"Invoice {invoice.invoice_no} is already fully paid")

            error = validate_payment_amount(data.amount_cents, invoice.balance_cents, symbol)
            if error is not None:
                raise BusinessRuleViolation(error)

            if data.method == PaymentMethod.ONLINE and not (data.reference or "").strip():
                raise BusinessRuleViolation("Reference number is required for online payments")

            payment = Payment(
                id=uuid4(),
                invoice_id=invoice.id,
                method=data.method,
                amount_cents=data.amount_cents,
                reference=data.reference,
                provider=data.provider,
                received_at=now_utc(),
                received_by_user_id=actor_id,
                note=data.note,
            )
            self.store.put(PAYMENTS, payment.id, payment.model_dump(mode="json"))

            updated = self.invoices.apply_payment_total(
                invoice, self.total_for_invoice(invoice.id)
            )

            self.audit.record(
                action=AuditAction.PAYMENT_RECORDED,
                entity_type=EntityType.PAYMENT,
                entity_id=payment.id,
                summary=f"Payment of {format_money(data.amount_cents, symbol)} received "
                        f"for invoice {invoice.invoice_no}",
                metadata={
                    "invoice_id": str(invoice.id),
                    "invoice_no": invoice.invoice_no,
                    "method": data.method.value,
                    "amount_cents": data.amount_cents,
                    "invoice_status": updated.status.value,
                },
                actor_id=actor_id,
            )

        return payment

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Get payment by ID."""
        row = self.store.get(PAYMENTS, payment_id)
        if row is None:
            return None
        return Payment.model_validate(row)

    def list_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        """Payments on an invoice, in the order they were received."""
        return [
            Payment.model_validate(row)
            for row in self.store.find(PAYMENTS, invoice_id=invoice_id)
        ]

    def total_for_invoice(self, invoice_id: UUID) -> int:
        """Sum of every payment on an invoice, in cents."""
        return sum(payment.amount_cents for payment in self.list_for_invoice(invoice_id))

    def list_recent(self, limit: int | None = None) -> list[Payment]:
        """Most recently received payments, newest first."""
        limit = limit or self.config.recent_limit
        payments = [Payment.model_validate(row) for row in reversed(self.store.all(PAYMENTS))]
        payments.sort(key=lambda payment: payment.received_at, reverse=True)
        return payments[:limit]

    def list_by_date_range(self, start: datetime, end: datetime) -> list[Payment]:
        """
        Payments received in [start, end).

        Args:
            start: Inclusive lower bound (timezone-aware)
            end: Exclusive upper bound (timezone-aware)

        Returns:
            Payments in the range, oldest first
        """
        return [
            payment
            for payment in (Payment.model_validate(row) for row in self.store.all(PAYMENTS))
            if start <= payment.received_at < end
        ]

    def total_received(self, start: datetime, end: datetime) -> int:
        """Cash and online takings in [start, end), in cents."""
        return sum(payment.amount_cents for payment in self.list_by_date_range(start, end))
