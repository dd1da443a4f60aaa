"""
Document numbering.

Issues human-readable, sortable numbers of the form PREFIX-YYYY-NNNNNN
(JS-2025-000001, QT-..., INV-..., RC-...). Sequences are per document type
and restart every calendar year (the numbering epoch).

The counters live in one stored record. Allocation is the single critical
section of the ledger: read, roll the epoch over if the year changed,
increment, write. It runs inside a store transaction holding the
"numbering" lock, so concurrent callers never see the same sequence and a
failed write leaves every counter where it was.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Callable, NamedTuple
from uuid import UUID

from pydantic import BaseModel, Field

from clients.document_store import DocumentStore
from utils.timezone import now_utc, to_local

logger = logging.getLogger(__name__)

NUMBERING_COLLECTION = "numbering"
NUMBERING_LOCK = "numbering"
# Fixed id of the singleton counter record.
NUMBERING_RECORD_ID = UUID("00000000-0000-0000-0000-00000000a110")

SEQUENCE_WIDTH = 6

_NUMBER_PATTERN = re.compile(r"^([A-Z]+)-(\d{4})-(\d+)$")


class DocumentType(str, Enum):
    """Numbered document kinds."""

    JOB = "job"
    QUOTATION = "quotation"
    INVOICE = "invoice"
    RECEIPT = "receipt"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES = {
    DocumentType.JOB: "JS",
    DocumentType.QUOTATION: "QT",
    DocumentType.INVOICE: "INV",
    DocumentType.RECEIPT: "RC",
}


def _zero_counters() -> dict[DocumentType, int]:
    return {doc_type: 0 for doc_type in DocumentType}


class NumberingState(BaseModel):
    """Per-epoch counters for every document type."""

    epoch: int
    counters: dict[DocumentType, int] = Field(default_factory=_zero_counters)
    updated_at: datetime

    def rolled_over(self, epoch: int, now: datetime) -> "NumberingState":
        """Fresh zeroed counters for a new epoch."""
        return NumberingState(epoch=epoch, counters=_zero_counters(), updated_at=now)


class DocumentNumber(NamedTuple):
    """A parsed document number."""

    prefix: str
    year: int
    sequence: int


def format_document_number(document_type: DocumentType, year: int, sequence: int) -> str:
    """PREFIX-YYYY-NNNNNN."""
    return f"{document_type.prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_document_number(document_no: str) -> DocumentNumber | None:
    """
    Split a document number into prefix, year and sequence.

    Returns None when the text is not a document number.
    """
    match = _NUMBER_PATTERN.match(document_no)
    if match is None:
        return None
    return DocumentNumber(
        prefix=match.group(1),
        year=int(match.group(2)),
        sequence=int(match.group(3)),
    )


class DocumentNumberAllocator:
    """
    Allocates document numbers from the stored counter record.

    Args:
        store: Document store holding the counter record
        timezone: IANA zone deciding which calendar year "now" falls in
        clock: Returns the current UTC time (injectable for tests)
    """

    def __init__(
        self,
        store: DocumentStore,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = now_utc
    ):
        self.store = store
        self.timezone = timezone
        self.clock = clock

    def current_epoch(self) -> int:
        """Calendar year of the clock in the business timezone."""
        return to_local(self.clock(), self.timezone).year

    def _load_state(self) -> NumberingState | None:
        row = self.store.get(NUMBERING_COLLECTION, NUMBERING_RECORD_ID)
        if row is None:
            return None
        return NumberingState.model_validate(row)

    def allocate(self, document_type: DocumentType) -> str:
        """
        Issue the next number for a document type.

        Rolls the epoch over first when the stored year is not the current
        year. Persistence errors propagate and nothing is advanced.
        """
        document_type = DocumentType(document_type)

        with self.store.transaction(), self.store.lock(NUMBERING_LOCK):
            now = self.clock()
            epoch = to_local(now, self.timezone).year
            state = self._load_state()

            if state is None:
                state = NumberingState(epoch=epoch, updated_at=now)
            elif state.epoch != epoch:
                logger.info(f"Numbering epoch rolled over from {state.epoch} to {epoch}")
                state = state.rolled_over(epoch, now)

            sequence = state.counters.get(document_type, 0) + 1
            counters = {**state.counters, document_type: sequence}
            updated = NumberingState(epoch=epoch, counters=counters, updated_at=now)

            self.store.put(
                NUMBERING_COLLECTION,
                NUMBERING_RECORD_ID,
                updated.model_dump(mode="json")
            )

        return format_document_number(document_type, epoch, sequence)

    def current_counter(self, document_type: DocumentType) -> int:
        """
        Last sequence issued for a type in the current epoch.

        Read-only: a stale epoch reads as zero without being rewritten.
        """
        state = self._load_state()
        if state is None or state.epoch != self.current_epoch():
            return 0
        return state.counters.get(DocumentType(document_type), 0)
