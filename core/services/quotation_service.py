"""
Quotation service.

Quotations are priced offers for a job or a walk-in customer. Lines and
totals can only change while a quotation is a draft; once sent, only status
moves. Sent quotations past their validity date are expired by a sweep.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from core.audit import AuditLogger, AuditAction, EntityType, compute_changes
from core.config import LedgerConfig
from core.exceptions import BusinessRuleViolation, InvalidTransitionError, NotFoundError
from core.models import (
    Quotation, QuotationCreate, QuotationUpdate, QuotationStatus, QUOTATION_TRANSITIONS,
    build_line_items,
)
from core.money import document_totals, format_money
from core.numbering import DocumentNumberAllocator, DocumentType
from utils.actor_context import SYSTEM_ACTOR_ID, resolve_actor_id
from utils.timezone import business_date, now_utc

logger = logging.getLogger(__name__)

QUOTATIONS = "quotations"

# Updates that reprice the quotation.
_PRICING_FIELDS = {"line_items", "discount_cents", "tax_cents"}


class QuotationService:
    """Service for quotation operations."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogger,
        numbering: DocumentNumberAllocator,
        config: LedgerConfig | None = None
    ):
        self.store = store
        self.audit = audit
        self.numbering = numbering
        self.config = config or LedgerConfig()

    def _save(self, quotation: Quotation) -> None:
        self.store.put(QUOTATIONS, quotation.id, quotation.model_dump(mode="json"))

    def _require(self, quotation_id: UUID) -> Quotation:
        quotation = self.get_by_id(quotation_id)
        if quotation is None:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    def _today(self):
        return business_date(now_utc(), self.config.timezone)

    def create(self, data: QuotationCreate, actor_id: UUID | None = None) -> Quotation:
        """
        Create a draft quotation.

        Args:
            data: Quotation creation data
            actor_id: Acting user (defaults to actor context)

        Returns:
            Created quotation in DRAFT status with computed totals
        """
        actor_id = resolve_actor_id(actor_id)
        line_items = build_line_items(data.line_items)
        totals = document_totals(line_items, data.discount_cents, data.tax_cents)
        valid_until = data.valid_until or (
            self._today() + timedelta(days=self.config.quotation_validity_days)
        )
        now = now_utc()

        with self.store.transaction():
            quotation_no = self.numbering.allocate(DocumentType.QUOTATION)
            quotation = Quotation(
                id=uuid4(),
                quotation_no=quotation_no,
                job_id=data.job_id,
                customer_id=data.customer_id,
                device_id=data.device_id,
                status=QuotationStatus.DRAFT,
                valid_until=valid_until,
                line_items=line_items,
                subtotal_cents=totals.subtotal_cents,
                discount_cents=totals.discount_cents,
                tax_cents=totals.tax_cents,
                total_cents=totals.total_cents,
                created_by_user_id=actor_id,
                created_at=now,
                updated_at=now,
            )
            self._save(quotation)

            self.audit.record(
                action=AuditAction.QUOTATION_CREATED,
                entity_type=EntityType.QUOTATION,
                entity_id=quotation.id,
                summary=f"New quotation {quotation_no} "
                        f"({format_money(totals.total_cents, self.config.currency_symbol)})",
                metadata={
                    "quotation_no": quotation_no,
                    "job_id": str(data.job_id) if data.job_id else None,
                    "total_cents": totals.total_cents,
                },
                actor_id=actor_id,
            )

        return quotation

    def get_by_id(self, quotation_id: UUID) -> Quotation | None:
        """
        Get quotation by ID.

        Returns:
            Quotation if found and not deleted, None otherwise.
        """
        row = self.store.get(QUOTATIONS, quotation_id)
        if row is None or row.get("deleted_at") is not None:
            return None
        return Quotation.model_validate(row)

    def get_by_number(self, quotation_no: str) -> Quotation | None:
        """Get quotation by its QT-YYYY-NNNNNN number."""
        row = self.store.find_one(QUOTATIONS, quotation_no=quotation_no, deleted_at=None)
        if row is None:
            return None
        return Quotation.model_validate(row)

    def _apply_transition(
        self,
        current: Quotation,
        new_status: QuotationStatus,
        actor_id: UUID
    ) -> Quotation:
        if new_status not in QUOTATION_TRANSITIONS[current.status]:
            raise InvalidTransitionError("quotation", current.status.value, new_status.value)

        updated = current.model_copy(update={"status": new_status, "updated_at": now_utc()})
        self._save(updated)

        self.audit.record(
            action=AuditAction.QUOTATION_STATUS_CHANGED,
            entity_type=EntityType.QUOTATION,
            entity_id=current.id,
            summary=f"Quotation {current.quotation_no} status: "
                    f"{current.status.value} -> {new_status.value}",
            metadata={"from": current.status.value, "to": new_status.value},
            actor_id=actor_id,
        )
        return updated

    def transition(
        self,
        quotation_id: UUID,
        new_status: QuotationStatus,
        actor_id: UUID | None = None
    ) -> Quotation:
        """
        Move a quotation to a new status.

        Raises:
            NotFoundError: If quotation not found
            InvalidTransitionError: If the move is not in QUOTATION_TRANSITIONS
        """
        actor_id = resolve_actor_id(actor_id)
        new_status = QuotationStatus(new_status)

        with self.store.transaction():
            return self._apply_transition(self._require(quotation_id), new_status, actor_id)

    def edit(
        self,
        quotation_id: UUID,
        data: QuotationUpdate,
        actor_id: UUID | None = None
    ) -> Quotation:
        """
        Change a draft quotation.

        Replacing lines, discount or tax recomputes every total.

        Args:
            quotation_id: Quotation UUID
            data: Fields to change (omitted fields are kept)
            actor_id: Acting user (defaults to actor context)

        Returns:
            Updated quotation (unchanged if nothing differs)

        Raises:
            NotFoundError: If quotation not found
            BusinessRuleViolation: If the quotation is no longer a draft
        """
        actor_id = resolve_actor_id(actor_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)

        with self.store.transaction():
            current = self._require(quotation_id)
            if not current.is_draft:
                raise BusinessRuleViolation(
                    f"Quotation {current.quotation_no} is {current.status.value}; "
                    f"only drafts can be edited"
                )
            if not updates:
                return current

            field_updates = {k: v for k, v in updates.items() if k not in _PRICING_FIELDS}
            if data.line_items is not None:
                line_items = build_line_items(data.line_items)
            else:
                line_items = current.line_items
            totals = document_totals(
                line_items,
                updates.get("discount_cents", current.discount_cents),
                updates.get("tax_cents", current.tax_cents),
            )

            updated = current.model_copy(update={
                **field_updates,
                "line_items": line_items,
                "subtotal_cents": totals.subtotal_cents,
                "discount_cents": totals.discount_cents,
                "tax_cents": totals.tax_cents,
                "total_cents": totals.total_cents,
                "updated_at": now_utc(),
            })

            # Line ids are regenerated on replacement, so compare lines by content.
            tracked = set(field_updates) | {"subtotal_cents", "discount_cents", "tax_cents", "total_cents"}
            changes = compute_changes(
                current.model_dump(mode="json", include=tracked),
                updated.model_dump(mode="json", include=tracked),
            )
            if data.line_items is not None:
                changes["line_items"] = {
                    "old": len(current.line_items),
                    "new": len(line_items),
                }
            if not changes:
                return current

            self._save(updated)
            self.audit.record(
                action=AuditAction.QUOTATION_UPDATED,
                entity_type=EntityType.QUOTATION,
                entity_id=quotation_id,
                summary=f"Quotation {current.quotation_no} updated",
                metadata=changes,
                actor_id=actor_id,
            )

        return updated

    def sweep_expirations(self, actor_id: UUID | None = None) -> list[Quotation]:
        """
        Expire every sent quotation whose validity date has passed.

        Each expiry is audited separately. Running the sweep twice in the
        same day expires nothing the second time.

        Args:
            actor_id: Actor to attribute expiries to (defaults to the system actor)

        Returns:
            Quotations expired by this run
        """
        actor_id = actor_id or SYSTEM_ACTOR_ID
        today = self._today()
        expired = []

        with self.store.transaction():
            for row in self.store.find(QUOTATIONS, status=QuotationStatus.SENT, deleted_at=None):
                quotation = Quotation.model_validate(row)
                if quotation.is_expired_on(today):
                    expired.append(
                        self._apply_transition(quotation, QuotationStatus.EXPIRED, actor_id)
                    )

        if expired:
            logger.info(f"Expired {len(expired)} quotations past validity")
        return expired

    def _live(self, rows: list[dict]) -> list[Quotation]:
        return [
            Quotation.model_validate(row)
            for row in reversed(rows)
            if row.get("deleted_at") is None
        ]

    def list_all(self, limit: int | None = None) -> list[Quotation]:
        """All quotations, newest first."""
        quotations = self._live(self.store.all(QUOTATIONS))
        return quotations if limit is None else quotations[:limit]

    def list_by_status(self, status: QuotationStatus) -> list[Quotation]:
        """Quotations in one status, newest first."""
        return self._live(self.store.find(QUOTATIONS, status=QuotationStatus(status)))

    def list_for_job(self, job_id: UUID) -> list[Quotation]:
        """Quotations raised against a job, newest first."""
        return self._live(self.store.find(QUOTATIONS, job_id=job_id))
