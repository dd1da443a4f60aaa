"""Core domain models."""

from core.models.line_item import LineItem, LineItemInput, LineItemType, build_line_items
from core.models.job import (
    Job, JobCreate, JobNotesUpdate, JobCostsUpdate, JobStatus, JobStatusEvent,
    JobTask, JobTaskInput, JOB_TRANSITIONS, JOB_STATUS_ORDER,
)
from core.models.quotation import (
    Quotation, QuotationCreate, QuotationUpdate, QuotationStatus, QUOTATION_TRANSITIONS,
)
from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceStatus, OUTSTANDING_STATUSES, derive_payment_status,
)
from core.models.payment import Payment, PaymentCreate, PaymentMethod
from core.models.receipt import Receipt, ReceiptDetails

__all__ = [
    # LineItem
    "LineItem", "LineItemInput", "LineItemType", "build_line_items",
    # Job
    "Job", "JobCreate", "JobNotesUpdate", "JobCostsUpdate", "JobStatus", "JobStatusEvent",
    "JobTask", "JobTaskInput", "JOB_TRANSITIONS", "JOB_STATUS_ORDER",
    # Quotation
    "Quotation", "QuotationCreate", "QuotationUpdate", "QuotationStatus", "QUOTATION_TRANSITIONS",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceStatus", "OUTSTANDING_STATUSES", "derive_payment_status",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod",
    # Receipt
    "Receipt", "ReceiptDetails",
]
