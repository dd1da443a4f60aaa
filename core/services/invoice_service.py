"""
Invoice service for billing.

Invoices are created standalone or from an accepted quotation, whose lines
and totals are copied verbatim. Payment status is never set by hand: it is
recomputed from the payment ledger every time a payment is recorded. The only
commanded status change is cancellation.
"""

import logging
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from core.audit import AuditLogger, AuditAction, EntityType
from core.config import LedgerConfig
from core.exceptions import BusinessRuleViolation, NotFoundError, ValidationError
from core.models import (
    Invoice, InvoiceCreate, InvoiceStatus, QuotationStatus,
    build_line_items, derive_payment_status,
)
from core.money import document_totals, format_money
from core.numbering import DocumentNumberAllocator, DocumentType
from core.services.quotation_service import QuotationService
from utils.actor_context import resolve_actor_id
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

INVOICES = "invoices"


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        numbering: DocumentNumberAllocator,
        quotations: QuotationService,
        config: LedgerConfig | None = None
    ):
        self.store = store
        self.audit = audit
        self.numbering = numbering
        self.quotations = quotations
        self.config = config or LedgerConfig()

    def _save(self, invoice: Invoice) -> None:
        self.store.put(INVOICES, invoice.id, invoice.model_dump(mode="json"))

    def _money(self, cents: int) -> str:
        return format_money(cents, self.config.currency_symbol)

    def require(self, invoice_id: UUID) -> Invoice:
        """
        Get invoice by ID or fail.

        Raises:
            NotFoundError: If invoice not found or deleted
        """
        invoice = self.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def create(self, data: InvoiceCreate, actor_id: UUID | None = None) -> Invoice:
        """
        Create a standalone invoice.

        Args:
            data: Invoice creation data
            actor_id: Acting user (defaults to actor context)

        Returns:
            Created invoice in UNPAID status with nothing paid
        """
        actor_id = resolve_actor_id(actor_id)
        line_items = build_line_items(data.line_items)
        totals = document_totals(line_items, data.discount_cents, data.tax_cents)
        now = now_utc()

        with self.store.transaction():
            invoice_no = self.numbering.allocate(DocumentType.INVOICE)
            invoice = Invoice(
                id=uuid4(),
                invoice_no=invoice_no,
                job_id=data.job_id,
                customer_id=data.customer_id,
                device_id=data.device_id,
                status=InvoiceStatus.UNPAID,
                due_date=data.due_date,
                line_items=line_items,
                subtotal_cents=totals.subtotal_cents,
                discount_cents=totals.discount_cents,
                tax_cents=totals.tax_cents,
                total_cents=totals.total_cents,
                amount_paid_cents=0,
                balance_cents=totals.total_cents,
                created_by_user_id=actor_id,
                created_at=now,
                updated_at=now,
            )
            self._save(invoice)

            self.audit.record(
                action=AuditAction.INVOICE_CREATED,
                entity_type=EntityType.INVOICE,
                entity_id=invoice.id,
                summary=f"New invoice {invoice_no} ({self._money(totals.total_cents)})",
                metadata={
                    "invoice_no": invoice_no,
                    "customer_id": str(data.customer_id),
                    "total_cents": totals.total_cents,
                },
                actor_id=actor_id,
            )

        return invoice

    def create_from_quotation(self, quotation_id: UUID, actor_id: UUID | None = None) -> Invoice:
        """
        Convert an accepted quotation into an invoice.

        Lines and totals are copied as they are, not recomputed.

        Raises:
            NotFoundError: If quotation not found
            BusinessRuleViolation: If the quotation is not accepted or
                already has an invoice
        """
        actor_id = resolve_actor_id(actor_id)

        with self.store.transaction():
            quotation = self.quotations.get_by_id(quotation_id)
            if quotation is None:
                raise NotFoundError("Quotation", quotation_id)

            if quotation.status != QuotationStatus.ACCEPTED:
                raise BusinessRuleViolation(
                    f"Only accepted quotations can be invoiced; "
                    f"{quotation.quotation_no} is {quotation.status.value}"
                )

            # Any invoice ever raised from the quotation counts, cancelled or not.
            existing = self.store.find_one(INVOICES, quotation_id=quotation_id)
            if existing is not None:
                raise BusinessRuleViolation(
                    f"Quotation {quotation.quotation_no} already has invoice {existing['invoice_no']}"
                )

            now = now_utc()
            invoice_no = self.numbering.allocate(DocumentType.INVOICE)
            invoice = Invoice(
                id=uuid4(),
                invoice_no=invoice_no,
                quotation_id=quotation.id,
                job_id=quotation.job_id,
                customer_id=quotation.customer_id,
                device_id=quotation.device_id,
                status=InvoiceStatus.UNPAID,
                line_items=quotation.line_items,
                subtotal_cents=quotation.subtotal_cents,
                discount_cents=quotation.discount_cents,
                tax_cents=quotation.tax_cents,
                total_cents=quotation.total_cents,
                amount_paid_cents=0,
                balance_cents=quotation.total_cents,
                created_by_user_id=actor_id,
                created_at=now,
                updated_at=now,
            )
            self._save(invoice)

            self.audit.record(
                action=AuditAction.INVOICE_CREATED,
                entity_type=EntityType.INVOICE,
                entity_id=invoice.id,
                summary=f"New invoice {invoice_no} from quotation {quotation.quotation_no}",
                metadata={
                    "invoice_no": invoice_no,
                    "quotation_id": str(quotation.id),
                    "quotation_no": quotation.quotation_no,
                    "total_cents": quotation.total_cents,
                },
                actor_id=actor_id,
            )

        return invoice

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Args:
            invoice_id: Invoice UUID

        Returns:
            Invoice if found and not deleted, None otherwise.
        """
        row = self.store.get(INVOICES, invoice_id)
        if row is None or row.get("deleted_at") is not None:
            return None
        return Invoice.model_validate(row)

    def get_by_number(self, invoice_no: str) -> Invoice | None:
        """Get invoice by its INV-YYYY-NNNNNN number."""
        row = self.store.find_one(INVOICES, invoice_no=invoice_no, deleted_at=None)
        if row is None:
            return None
        return Invoice.model_validate(row)

    def apply_payment_total(self, invoice: Invoice, amount_paid_cents: int) -> Invoice:
        """
        Project the payment ledger total onto the invoice and persist it.

        Must run inside the caller's transaction, next to the payment write.
        """
        updated = invoice.model_copy(update={
            "amount_paid_cents": amount_paid_cents,
            "balance_cents": max(0, invoice.total_cents - amount_paid_cents),
            "status": derive_payment_status(invoice.total_cents, amount_paid_cents),
            "updated_at": now_utc(),
        })
        self._save(updated)
        return updated

    def cancel(self, invoice_id: UUID, reason: str, actor_id: UUID | None = None) -> Invoice:
        """
        Cancel an invoice.

        Recorded payments are left untouched.

        Args:
            invoice_id: Invoice UUID
            reason: Why the invoice is cancelled, kept on the invoice
            actor_id: Acting user (defaults to actor context)

        Returns:
            Cancelled invoice

        Raises:
            NotFoundError: If invoice not found
            BusinessRuleViolation: If invoice is paid or already cancelled
            ValidationError: If the reason is blank
        """
        actor_id = resolve_actor_id(actor_id)
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        reason = reason.strip()

        with self.store.transaction():
            current = self.require(invoice_id)

            if current.is_paid:
                raise BusinessRuleViolation(
                    f"Invoice {current.invoice_no} is paid and cannot be cancelled"
                )
            if current.is_cancelled:
                raise BusinessRuleViolation(f"Invoice {current.invoice_no} is already cancelled")

            now = now_utc()
            updated = current.model_copy(update={
                "status": InvoiceStatus.CANCELLED,
                "cancelled_at": now,
                "cancel_reason": reason,
                "updated_at": now,
            })
            self._save(updated)

            self.audit.record(
                action=AuditAction.INVOICE_CANCELLED,
                entity_type=EntityType.INVOICE,
                entity_id=invoice_id,
                summary=f"Invoice {current.invoice_no} cancelled",
                metadata={"from": current.status.value, "reason": reason},
                actor_id=actor_id,
            )

        return updated

    def _live(self, rows: list[dict]) -> list[Invoice]:
        return [
            Invoice.model_validate(row)
            for row in reversed(rows)
            if row.get("deleted_at") is None
        ]

    def list_all(self, limit: int | None = None) -> list[Invoice]:
        """All invoices, newest first."""
        invoices = self._live(self.store.all(INVOICES))
        return invoices if limit is None else invoices[:limit]

    def list_by_status(self, status: InvoiceStatus) -> list[Invoice]:
        """Invoices in one status, newest first."""
        return self._live(self.store.find(INVOICES, status=InvoiceStatus(status)))

    def list_outstanding(self) -> list[Invoice]:
        """
        Unpaid and partially paid invoices.

        Returns:
            List of invoices still expecting money, newest first
        """
        return [invoice for invoice in self.list_all() if invoice.is_outstanding]

    def list_for_quotation(self, quotation_id: UUID) -> list[Invoice]:
        """Invoices raised from a quotation, newest first."""
        return self._live(self.store.find(INVOICES, quotation_id=quotation_id))
