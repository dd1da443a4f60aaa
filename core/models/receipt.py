"""Receipt domain models."""

from datetime import datetime
from typing import NamedTuple
from uuid import UUID

from pydantic import BaseModel

from core.models.invoice import Invoice
from core.models.payment import Payment


class Receipt(BaseModel):
    """Payment confirmation issued once per fully paid invoice."""

    id: UUID
    receipt_no: str
    invoice_id: UUID
    paid_at: datetime
    payment_ids: list[UUID]
    total_paid_cents: int
    created_by_user_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class ReceiptDetails(NamedTuple):
    """A receipt with the invoice and payments it confirms."""

    receipt: Receipt
    invoice: Invoice
    payments: list[Payment]
