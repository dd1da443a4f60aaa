"""Line item domain models, shared by quotations and invoices.

Prices are integer cents; quantity is a Decimal so fractional quantities
(1.5 hours) price exactly.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from core.money import line_total


class LineItemType(str, Enum):
    """What a line bills for."""

    SERVICE = "service"
    PRODUCT = "product"


class LineItemInput(BaseModel):
    """Data required to add a line to a quotation or invoice."""

    type: LineItemType = LineItemType.SERVICE
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(Decimal(1), gt=0)
    unit_price_cents: int = Field(..., ge=0)
    product_id: UUID | None = None  # catalog reference, never validated here


class LineItem(BaseModel):
    """A priced line as stored on a document."""

    id: UUID
    type: LineItemType
    description: str
    quantity: Decimal
    unit_price_cents: int
    line_total_cents: int
    product_id: UUID | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_input(cls, data: LineItemInput) -> "LineItem":
        """Price an input line with a fresh id."""
        return cls(
            id=uuid4(),
            type=data.type,
            description=data.description,
            quantity=data.quantity,
            unit_price_cents=data.unit_price_cents,
            line_total_cents=line_total(data.quantity, data.unit_price_cents),
            product_id=data.product_id,
        )


def build_line_items(inputs: list[LineItemInput]) -> list[LineItem]:
    """Price every input line, preserving order."""
    return [LineItem.from_input(data) for data in inputs]
