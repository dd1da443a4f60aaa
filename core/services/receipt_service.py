"""
Receipt issuance.

One receipt per fully paid invoice. Generation is idempotent: asking again
returns the receipt already issued. The check-then-create runs under a
per-invoice lock so two callers can never issue two receipts.
"""

import logging
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from core.audit import AuditLogger, AuditAction, EntityType
from core.exceptions import BusinessRuleViolation, NotFoundError
from core.models import Receipt, ReceiptDetails
from core.money import format_money
from core.numbering import DocumentNumberAllocator, DocumentType
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from utils.actor_context import resolve_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

RECEIPTS = "receipts"


class ReceiptService:
    """Service for receipt operations."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        numbering: DocumentNumberAllocator,
        invoices: InvoiceService,
        payments: PaymentService
    ):
        self.store = store
        self.audit = audit
        self.numbering = numbering
        self.invoices = invoices
        self.payments = payments

    def generate(self, invoice_id: UUID, actor_id: UUID | None = None) -> Receipt:
        """
        Issue the receipt for a paid invoice, or return the one already issued.

        Args:
            invoice_id: Invoice UUID
            actor_id: Acting user (defaults to actor context)

        Returns:
            The invoice's receipt, snapshotting every payment on it

        Raises:
            NotFoundError: If invoice not found
            BusinessRuleViolation: If the invoice is not fully paid
        """
        actor_id = resolve_actor_id(actor_id)

        with self.store.transaction(), self.store.lock(f"receipt:{invoice_id}"):
            invoice = self.invoices.require(invoice_id)
            if not invoice.is_paid:
                raise BusinessRuleViolation(
                    f"Receipts can only be issued for fully paid invoices; "
                    f"{invoice.invoice_no} is {invoice.status.value}"
                )

            existing = self.get_by_invoice(invoice_id)
            if existing is not None:
                return existing

            payments = self.payments.list_for_invoice(invoice_id)
            receipt_no = self.numbering.allocate(DocumentType.RECEIPT)
            now = now_utc()
            receipt = Receipt(
                id=uuid4(),
                receipt_no=receipt_no,
                invoice_id=invoice_id,
                paid_at=now,
                payment_ids=[payment.id for payment in payments],
                total_paid_cents=sum(payment.amount_cents for payment in payments),
                created_by_user_id=actor_id,
                created_at=now,
            )
            self.store.put(RECEIPTS, receipt.id, receipt.model_dump(mode="json"))

            self.audit.record(
                action=AuditAction.RECEIPT_GENERATED,
                entity_type=EntityType.RECEIPT,
                entity_id=receipt.id,
                summary=f"Receipt {receipt_no} issued for invoice {invoice.invoice_no} "
                        f"({format_money(receipt.total_paid_cents, self.invoices.config.currency_symbol)})",
                metadata={
                    "receipt_no": receipt_no,
                    "invoice_id": str(invoice_id),
                    "invoice_no": invoice.invoice_no,
                    "total_paid_cents": receipt.total_paid_cents,
                },
                actor_id=actor_id,
            )

        return receipt

    def get_by_id(self, receipt_id: UUID) -> Receipt | None:
        """Get receipt by ID."""
        row = self.store.get(RECEIPTS, receipt_id)
        if row is None:
            return None
        return Receipt.model_validate(row)

    def get_by_invoice(self, invoice_id: UUID) -> Receipt | None:
        """The receipt issued for an invoice, if any."""
        row = self.store.find_one(RECEIPTS, invoice_id=invoice_id)
        if row is None:
            return None
        return Receipt.model_validate(row)

    def get_by_number(self, receipt_no: str) -> Receipt | None:
        """Get receipt by its RC-YYYY-NNNNNN number."""
        row = self.store.find_one(RECEIPTS, receipt_no=receipt_no)
        if row is None:
            return None
        return Receipt.model_validate(row)

    def list_all(self, limit: int | None = None) -> list[Receipt]:
        """All receipts, newest first."""
        receipts = [Receipt.model_validate(row) for row in reversed(self.store.all(RECEIPTS))]
        return receipts if limit is None else receipts[:limit]

    def get_with_details(self, receipt_id: UUID) -> ReceiptDetails:
        """
        Receipt plus the invoice and payments it confirms, for printing.

        Raises:
            NotFoundError: If the receipt or its invoice is missing
        """
        receipt = self.get_by_id(receipt_id)
        if receipt is None:
            raise NotFoundError("Receipt", receipt_id)

        return ReceiptDetails(
            receipt=receipt,
            invoice=self.invoices.require(receipt.invoice_id),
            payments=self.payments.list_for_invoice(receipt.invoice_id),
        )
