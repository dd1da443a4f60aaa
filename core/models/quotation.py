"""Quotation domain models.

All amounts are stored in cents (integer). Totals are never set directly;
they are always recomputed from the line items, discount and tax.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.line_item import LineItem, LineItemInput


class QuotationStatus(str, Enum):
    """Quotation lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


QUOTATION_TRANSITIONS: dict[QuotationStatus, frozenset[QuotationStatus]] = {
    QuotationStatus.DRAFT: frozenset({
        QuotationStatus.SENT, QuotationStatus.ACCEPTED, QuotationStatus.REJECTED
    }),
    QuotationStatus.SENT: frozenset({
        QuotationStatus.ACCEPTED, QuotationStatus.REJECTED, QuotationStatus.EXPIRED
    }),
    QuotationStatus.ACCEPTED: frozenset(),
    QuotationStatus.REJECTED: frozenset(),
    QuotationStatus.EXPIRED: frozenset(),
}


class QuotationCreate(BaseModel):
    """Data required to create a quotation."""

    job_id: UUID | None = None
    customer_id: UUID
    device_id: UUID | None = None
    valid_until: date | None = None
    line_items: list[LineItemInput] = Field(..., min_length=1)
    discount_cents: int = Field(0, ge=0)
    tax_cents: int = Field(0, ge=0)


class QuotationUpdate(BaseModel):
    """Changes to a draft quotation. Omitted fields are kept."""

    job_id: UUID | None = None
    customer_id: UUID | None = None
    device_id: UUID | None = None
    valid_until: date | None = None
    line_items: list[LineItemInput] | None = Field(None, min_length=1)
    discount_cents: int | None = Field(None, ge=0)
    tax_cents: int | None = Field(None, ge=0)


class Quotation(BaseModel):
    """Full quotation entity as stored."""

    id: UUID
    quotation_no: str
    job_id: UUID | None = None
    customer_id: UUID
    device_id: UUID | None = None
    status: QuotationStatus
    valid_until: date | None = None
    line_items: list[LineItem]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    created_by_user_id: UUID
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_draft(self) -> bool:
        """Only drafts may have their lines replaced."""
        return self.status == QuotationStatus.DRAFT

    @property
    def is_terminal(self) -> bool:
        """Whether no further status change is possible."""
        return not QUOTATION_TRANSITIONS[self.status]

    def is_expired_on(self, today: date) -> bool:
        """Whether the validity date has passed as of today."""
        return self.valid_until is not None and self.valid_until < today
