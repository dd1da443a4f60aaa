"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ActorMiddleware, RequestIDMiddleware
from clients.document_store import DocumentStore, MemoryDocumentStore
from core.audit import AuditLogger
from core.config import LedgerConfig
from core.numbering import DocumentNumberAllocator
from core.services.invoice_service import InvoiceService
from core.services.job_service import JobService
from core.services.payment_service import PaymentService
from core.services.quotation_service import QuotationService
from core.services.receipt_service import ReceiptService
from core.services.report_service import ReportService

logger = logging.getLogger(__name__)


def build_services(store: DocumentStore, config: LedgerConfig) -> dict:
    """Wire every ledger service onto one store."""
    audit = AuditLogger(store)
    numbering = DocumentNumberAllocator(store, timezone=config.timezone)

    jobs = JobService(store, audit, numbering, config)
    quotations = QuotationService(store, audit, numbering, config)
    invoices = InvoiceService(store, audit, numbering, quotations, config)
    payments = PaymentService(store, audit, invoices, config)
    receipts = ReceiptService(store, audit, numbering, invoices, payments)

    return {
        "audit": audit,
        "numbering": numbering,
        "job": jobs,
        "quotation": quotations,
        "invoice": invoices,
        "payment": payments,
        "receipt": receipts,
        "report": ReportService(jobs, invoices, payments, config),
    }


def create_app(store: DocumentStore | None = None, config: LedgerConfig | None = None) -> FastAPI:
    """
    Build the HTTP app.

    Args:
        store: Document store (defaults to an in-memory store)
        config: Ledger configuration (defaults to LedgerConfig.from_env())
    """
    config = config or LedgerConfig.from_env()
    if store is None:
        logger.info("No document store given, using in-memory store")
        store = MemoryDocumentStore()

    services = build_services(store, config)

    app = FastAPI(title="Repair Desk Ledger")
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    app.state.services = services
    return app
