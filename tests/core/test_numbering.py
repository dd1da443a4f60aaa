"""Tests for core/numbering.py - document number allocation."""

import threading
from datetime import datetime, timezone

import pytest

from clients.document_store import MemoryDocumentStore
from core.numbering import (
    NUMBERING_COLLECTION,
    DocumentNumber,
    DocumentNumberAllocator,
    DocumentType,
    format_document_number,
    parse_document_number,
)


class MutableClock:
    """Clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FailingPutStore(MemoryDocumentStore):
    """Store whose writes to one collection fail on demand."""

    def __init__(self, collection: str):
        super().__init__()
        self.collection = collection
        self.fail = False

    def put(self, collection, doc_id, document):
        if self.fail and collection == self.collection:
            raise RuntimeError("disk full")
        super().put(collection, doc_id, document)


@pytest.fixture
def clock():
    return MutableClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def allocator(store, clock):
    return DocumentNumberAllocator(store, clock=clock)


class TestFormatting:
    """Tests for format_document_number() and parse_document_number()."""

    @pytest.mark.parametrize("doc_type,expected", [
        (DocumentType.JOB, "JS-2025-000001"),
        (DocumentType.QUOTATION, "QT-2025-000001"),
        (DocumentType.INVOICE, "INV-2025-000001"),
        (DocumentType.RECEIPT, "RC-2025-000001"),
    ])
    def test_prefixes(self, doc_type, expected):
        assert format_document_number(doc_type, 2025, 1) == expected

    def test_parse(self):
        assert parse_document_number("INV-2025-000042") == DocumentNumber("INV", 2025, 42)

    @pytest.mark.parametrize("text", ["", "INV-25-000001", "inv-2025-000001", "INV-2025"])
    def test_parse_rejects_garbage(self, text):
        assert parse_document_number(text) is None


class TestAllocate:
    """Tests for DocumentNumberAllocator.allocate()."""

    def test_first_number(self, allocator):
        assert allocator.allocate(DocumentType.JOB) == "JS-2025-000001"

    def test_sequential(self, allocator):
        numbers = [allocator.allocate(DocumentType.INVOICE) for _ in range(3)]
        assert numbers == ["INV-2025-000001", "INV-2025-000002", "INV-2025-000003"]

    def test_counters_are_per_type(self, allocator):
        allocator.allocate(DocumentType.JOB)
        allocator.allocate(DocumentType.JOB)
        assert allocator.allocate(DocumentType.RECEIPT) == "RC-2025-000001"
        assert allocator.current_counter(DocumentType.JOB) == 2

    def test_accepts_string_type(self, allocator):
        assert allocator.allocate("quotation") == "QT-2025-000001"

    def test_year_rollover_resets_all_counters(self, allocator, clock):
        """New year restarts every sequence at 1."""
        allocator.allocate(DocumentType.JOB)
        allocator.allocate(DocumentType.INVOICE)

        clock.now = datetime(2026, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

        assert allocator.allocate(DocumentType.JOB) == "JS-2026-000001"
        assert allocator.allocate(DocumentType.INVOICE) == "INV-2026-000001"

    def test_epoch_uses_business_timezone(self, store):
        """31 Dec 20:00 UTC is already 1 Jan in Kuala Lumpur (UTC+8)."""
        clock = MutableClock(datetime(2025, 12, 31, 20, 0, tzinfo=timezone.utc))
        allocator = DocumentNumberAllocator(store, timezone="Asia/Kuala_Lumpur", clock=clock)
        assert allocator.allocate(DocumentType.JOB) == "JS-2026-000001"

    def test_concurrent_allocations_never_collide(self, allocator):
        """Eight threads allocating 25 numbers each get 200 distinct numbers."""
        results = []
        results_lock = threading.Lock()

        def worker():
            mine = [allocator.allocate(DocumentType.JOB) for _ in range(25)]
            with results_lock:
                results.extend(mine)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 200
        assert len(set(results)) == 200
        assert allocator.current_counter(DocumentType.JOB) == 200

    def test_failed_write_advances_nothing(self, clock):
        """If the counter record cannot be written, the next call reuses the number."""
        store = FailingPutStore(NUMBERING_COLLECTION)
        allocator = DocumentNumberAllocator(store, clock=clock)
        allocator.allocate(DocumentType.JOB)

        store.fail = True
        with pytest.raises(RuntimeError, match="disk full"):
            allocator.allocate(DocumentType.JOB)

        store.fail = False
        assert allocator.allocate(DocumentType.JOB) == "JS-2025-000002"

    def test_rollback_of_enclosing_transaction_releases_number(self, store, allocator):
        """A number allocated inside a failed operation is not consumed."""
        with pytest.raises(RuntimeError):
            with store.transaction():
                allocator.allocate(DocumentType.INVOICE)
                raise RuntimeError("operation failed")

        assert allocator.allocate(DocumentType.INVOICE) == "INV-2025-000001"


class TestCurrentCounter:
    """Tests for DocumentNumberAllocator.current_counter()."""

    def test_zero_before_any_allocation(self, allocator):
        assert allocator.current_counter(DocumentType.RECEIPT) == 0

    def test_stale_epoch_reads_zero_without_writing(self, store, allocator, clock):
        allocator.allocate(DocumentType.JOB)
        clock.now = datetime(2026, 3, 1, tzinfo=timezone.utc)

        assert allocator.current_counter(DocumentType.JOB) == 0
        record = store.all(NUMBERING_COLLECTION)[0]
        assert record["epoch"] == 2025
