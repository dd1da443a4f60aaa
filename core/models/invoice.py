"""Invoice domain models.

All amounts are stored in cents (integer). Status and balance are derived
from the payment ledger; only cancellation is a commanded status.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.line_item import LineItem, LineItemInput


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


OUTSTANDING_STATUSES = frozenset({InvoiceStatus.UNPAID, InvoiceStatus.PARTIALLY_PAID})


def derive_payment_status(total_cents: int, amount_paid_cents: int) -> InvoiceStatus:
    """
    Project payment progress onto a status.

    Recomputed from scratch on every ledger change so status can never drift
    from the amounts.
    """
    if max(0, total_cents - amount_paid_cents) == 0:
        return InvoiceStatus.PAID
    if amount_paid_cents == 0:
        return InvoiceStatus.UNPAID
    return InvoiceStatus.PARTIALLY_PAID


class InvoiceCreate(BaseModel):
    """
    Data required to create a standalone invoice.

    Invoices are linked to a quotation only through conversion, so
    quotation_id is not accepted here.
    """

    job_id: UUID | None = None
    customer_id: UUID
    device_id: UUID | None = None
    due_date: date | None = None
    line_items: list[LineItemInput] = Field(..., min_length=1)
    discount_cents: int = Field(0, ge=0)
    tax_cents: int = Field(0, ge=0)

    model_config = {"extra": "forbid"}


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    invoice_no: str
    quotation_id: UUID | None = None
    job_id: UUID | None = None
    customer_id: UUID
    device_id: UUID | None = None
    status: InvoiceStatus
    due_date: date | None = None
    line_items: list[LineItem]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    amount_paid_cents: int
    balance_cents: int
    created_by_user_id: UUID
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        """Whether invoice is fully paid."""
        return self.status == InvoiceStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        """Whether invoice was cancelled."""
        return self.status == InvoiceStatus.CANCELLED

    @property
    def is_outstanding(self) -> bool:
        """Whether money is still expected on this invoice."""
        return self.status in OUTSTANDING_STATUSES
