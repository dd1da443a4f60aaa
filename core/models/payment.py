"""Payment domain models. Payments are immutable ledger entries."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "cash"
    ONLINE = "online"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    invoice_id: UUID
    method: PaymentMethod
    amount_cents: int  # checked against the balance by the payment ledger
    reference: str | None = Field(None, max_length=100)
    provider: str | None = Field(None, max_length=100)
    note: str | None = Field(None, max_length=500)


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    invoice_id: UUID
    method: PaymentMethod
    amount_cents: int
    reference: str | None = None
    provider: str | None = None
    received_at: datetime
    received_by_user_id: UUID
    note: str | None = None

    model_config = {"from_attributes": True, "frozen": True}
