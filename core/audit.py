"""
Audit trail for every state-changing ledger operation.

The audit log is:
- Append-only (entries never modified or deleted)
- Actor-attributed (who made the change)
- Write-only from the services' point of view: nothing in the ledger reads it
  back to make a decision

Services record exactly one event per logical change, after the entity write
and inside the same store transaction. If the audit write fails the whole
operation fails and is rolled back; an unaudited change is never committed.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel

from clients.document_store import DocumentStore
from utils.actor_context import resolve_actor_id
from utils.timezone import now_utc

AUDIT_COLLECTION = "audit_events"


class AuditAction(str, Enum):
    """What happened."""

    JOB_CREATED = "job_created"
    JOB_UPDATED = "job_updated"
    JOB_STATUS_CHANGED = "job_status_changed"
    JOB_ASSIGNED = "job_assigned"
    JOB_TASKS_UPDATED = "job_tasks_updated"
    JOB_TASK_TOGGLED = "job_task_toggled"
    JOB_DELETED = "job_deleted"
    QUOTATION_CREATED = "quotation_created"
    QUOTATION_UPDATED = "quotation_updated"
    QUOTATION_STATUS_CHANGED = "quotation_status_changed"
    INVOICE_CREATED = "invoice_created"
    INVOICE_CANCELLED = "invoice_cancelled"
    PAYMENT_RECORDED = "payment_recorded"
    RECEIPT_GENERATED = "receipt_generated"


class EntityType(str, Enum):
    """What it happened to."""

    JOB = "job"
    QUOTATION = "quotation"
    INVOICE = "invoice"
    PAYMENT = "payment"
    RECEIPT = "receipt"


class AuditEvent(BaseModel):
    """One audit entry as stored."""

    id: UUID
    actor_user_id: UUID
    action: AuditAction
    entity_type: EntityType
    entity_id: UUID
    summary: str
    metadata: dict[str, Any] | None = None
    created_at: datetime

    model_config = {"frozen": True}


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in sorted(set(old.keys()) | set(new.keys())):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Append-only audit trail.

    Metadata must be JSON-compatible; pass model_dump(mode="json") output or
    plain strings and numbers.

    Usage:
        audit = AuditLogger(store)

        audit.record(
            action=AuditAction.JOB_STATUS_CHANGED,
            entity_type=EntityType.JOB,
            entity_id=job.id,
            summary=f"Job {job.job_no} status: received -> diagnose",
            metadata={"from": "received", "to": "diagnose"},
            actor_id=technician_id,
        )

        history = audit.get_entity_history(EntityType.JOB, job.id)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def record(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: UUID,
        summary: str,
        metadata: dict[str, Any] | None = None,
        actor_id: UUID | None = None
    ) -> AuditEvent:
        """
        Append an audit event.

        Args:
            action: The action performed
            entity_type: Type of entity changed
            entity_id: ID of the entity
            summary: One-line human description
            metadata: Optional structured context
            actor_id: Acting user (defaults to current actor context)

        Returns:
            The stored event. Storage errors propagate to the caller.
        """
        event = AuditEvent(
            id=uuid4(),
            actor_user_id=resolve_actor_id(actor_id),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            summary=summary,
            metadata=metadata,
            created_at=now_utc(),
        )
        self.store.put(AUDIT_COLLECTION, event.id, event.model_dump(mode="json"))
        return event

    def _newest_first(self, rows: list[dict[str, Any]], limit: int | None = None) -> list[AuditEvent]:
        events = [AuditEvent.model_validate(row) for row in reversed(rows)]
        return events if limit is None else events[:limit]

    def list_recent(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events across the whole ledger, newest first."""
        return self._newest_first(self.store.all(AUDIT_COLLECTION), limit)

    def list_all(self) -> list[AuditEvent]:
        """Every event in creation order."""
        return [AuditEvent.model_validate(row) for row in self.store.all(AUDIT_COLLECTION)]

    def get_entity_history(self, entity_type: EntityType, entity_id: UUID) -> list[AuditEvent]:
        """
        Full audit history for an entity.

        Returns:
            List of audit events, newest first.
        """
        rows = self.store.find(AUDIT_COLLECTION, entity_type=entity_type, entity_id=entity_id)
        return self._newest_first(rows)

    def get_user_activity(self, user_id: UUID | None = None, limit: int = 100) -> list[AuditEvent]:
        """
        Recent activity by one actor.

        Args:
            user_id: Actor to get activity for (defaults to current actor context)
            limit: Maximum entries to return

        Returns:
            List of audit events, newest first.
        """
        rows = self.store.find(AUDIT_COLLECTION, actor_user_id=resolve_actor_id(user_id))
        return self._newest_first(rows, limit)

    def list_by_action(self, action: AuditAction, limit: int = 100) -> list[AuditEvent]:
        """Recent events of one kind, newest first."""
        rows = self.store.find(AUDIT_COLLECTION, action=action)
        return self._newest_first(rows, limit)
