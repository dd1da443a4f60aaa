"""Shared test fixtures for ledger test suite."""

import pytest
from uuid import UUID, uuid4
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

from clients.document_store import MemoryDocumentStore
from core.audit import AuditLogger
from core.config import LedgerConfig
from core.numbering import DocumentNumberAllocator
from utils.actor_context import actor_context, clear_current_actor_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - front desk
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test user - technician
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")


# =============================================================================
# ACTOR CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor_id()
    yield
    clear_current_actor_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Act as the primary test user."""
    with actor_context(test_user_id):
        yield test_user_id


@pytest.fixture
def as_test_user_b(test_user_b_id):
    """Act as the secondary test user."""
    with actor_context(test_user_b_id):
        yield test_user_b_id


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient. Skips when DATABASE_URL is not set."""
    import os
    from clients.postgres_client import PostgresClient

    url = os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")

    client = PostgresClient(url)
    yield client
    client.close()


@pytest.fixture
def pg_store(db):
    """PostgresDocumentStore with the schema in place."""
    from clients.postgres_store import PostgresDocumentStore

    document_store = PostgresDocumentStore(db)
    document_store.ensure_schema()
    return document_store


@pytest.fixture
def collection(db):
    """Throwaway collection name, removed after the test."""
    name = f"test_{uuid4().hex}"
    yield name
    db.execute("DELETE FROM documents WHERE collection = %s", (name,))


# =============================================================================
# STORE & LEDGER FIXTURES
# =============================================================================


@pytest.fixture
def store():
    """Fresh in-memory document store per test."""
    return MemoryDocumentStore()


@pytest.fixture
def config():
    return LedgerConfig()


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def numbering(store, config):
    return DocumentNumberAllocator(store, timezone=config.timezone)


@pytest.fixture
def job_service(store, audit, numbering, config):
    from core.services.job_service import JobService
    return JobService(store, audit, numbering, config)


@pytest.fixture
def quotation_service(store, audit, numbering, config):
    from core.services.quotation_service import QuotationService
    return QuotationService(store, audit, numbering, config)


@pytest.fixture
def invoice_service(store, audit, numbering, quotation_service, config):
    from core.services.invoice_service import InvoiceService
    return InvoiceService(store, audit, numbering, quotation_service, config)


@pytest.fixture
def payment_service(store, audit, invoice_service, config):
    from core.services.payment_service import PaymentService
    return PaymentService(store, audit, invoice_service, config)


@pytest.fixture
def receipt_service(store, audit, numbering, invoice_service, payment_service):
    from core.services.receipt_service import ReceiptService
    return ReceiptService(store, audit, numbering, invoice_service, payment_service)


@pytest.fixture
def report_service(job_service, invoice_service, payment_service, config):
    from core.services.report_service import ReportService
    return ReportService(job_service, invoice_service, payment_service, config)


# =============================================================================
# ENTITY FIXTURES
# =============================================================================


@pytest.fixture
def customer_id() -> UUID:
    return uuid4()


@pytest.fixture
def device_id() -> UUID:
    return uuid4()


@pytest.fixture
def test_job(as_test_user, job_service, customer_id, device_id):
    """A freshly received job with two checklist tasks."""
    from core.models import JobCreate, JobTaskInput

    return job_service.create(JobCreate(
        customer_id=customer_id,
        device_id=device_id,
        tasks=[JobTaskInput(title="Check battery"), JobTaskInput(title="Replace screen")],
    ))


@pytest.fixture
def draft_quotation(as_test_user, quotation_service, test_job):
    """Draft quotation for test_job totalling 10000 cents."""
    from core.models import QuotationCreate, LineItemInput

    return quotation_service.create(QuotationCreate(
        job_id=test_job.id,
        customer_id=test_job.customer_id,
        device_id=test_job.device_id,
        line_items=[
            LineItemInput(description="Screen replacement", unit_price_cents=8000),
            LineItemInput(description="Labour", quantity=2, unit_price_cents=1000),
        ],
    ))


@pytest.fixture
def accepted_quotation(as_test_user, quotation_service, draft_quotation):
    from core.models import QuotationStatus

    quotation_service.transition(draft_quotation.id, QuotationStatus.SENT)
    return quotation_service.transition(draft_quotation.id, QuotationStatus.ACCEPTED)


@pytest.fixture
def test_invoice(as_test_user, invoice_service, customer_id):
    """Standalone unpaid invoice totalling 10000 cents."""
    from core.models import InvoiceCreate, LineItemInput

    return invoice_service.create(InvoiceCreate(
        customer_id=customer_id,
        line_items=[LineItemInput(description="Diagnostics", unit_price_cents=10000)],
    ))


@pytest.fixture
def paid_invoice(as_test_user, invoice_service, payment_service, test_invoice):
    """test_invoice settled by two cash payments (6000 + 4000)."""
    from core.models import PaymentCreate, PaymentMethod

    payment_service.record_payment(PaymentCreate(
        invoice_id=test_invoice.id, method=PaymentMethod.CASH, amount_cents=6000
    ))
    payment_service.record_payment(PaymentCreate(
        invoice_id=test_invoice.id, method=PaymentMethod.CASH, amount_cents=4000
    ))
    return invoice_service.get_by_id(test_invoice.id)
