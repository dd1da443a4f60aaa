"""
Job service for the device repair lifecycle.

Jobs move received -> diagnose -> quoted -> in_progress -> ready -> closed
along the JOB_TRANSITIONS table. Every move appends to the job's own status
history and to the audit trail. Closed jobs are immutable apart from
assignment; jobs are never hard-deleted.
"""

import logging
from uuid import UUID, uuid4

from clients.document_store import DocumentStore
from core.audit import AuditLogger, AuditAction, EntityType, compute_changes
from core.config import LedgerConfig
from core.exceptions import BusinessRuleViolation, InvalidTransitionError, NotFoundError, ValidationError
from core.models import (
    Job, JobCreate, JobCostsUpdate, JobNotesUpdate, JobStatus, JobStatusEvent,
    JobTask, JobTaskInput, JOB_STATUS_ORDER, JOB_TRANSITIONS,
)
from core.numbering import DocumentNumberAllocator, DocumentType
from utils.actor_context import resolve_actor_id
from utils.timezone import business_date, day_bounds, now_utc

logger = logging.getLogger(__name__)

JOBS = "jobs"

_UPDATABLE_FIELDS = {
    "internal_note", "customer_note",
    "labor_cents", "parts_cents", "discount_cents", "tax_cents",
}


class JobService:
    """Service for job operations."""

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

    def _save(self, job: Job) -> None:
        self.store.put(JOBS, job.id, job.model_dump(mode="json"))

    def _require(self, job_id: UUID) -> Job:
        job = self.get_by_id(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    def _require_open(self, job_id: UUID) -> Job:
        job = self._require(job_id)
        if job.is_closed:
            raise BusinessRuleViolation(f"Job {job.job_no} is closed and immutable")
        return job

    def create(self, data: JobCreate, actor_id: UUID | None = None) -> Job:
        """
        Open a new job.

        Args:
            data: Job creation data
            actor_id: Acting user (defaults to actor context)

        Returns:
            Created job in RECEIVED status with one history entry
        """
        actor_id = resolve_actor_id(actor_id)
        now = now_utc()

        with self.store.transaction():
            job_no = self.numbering.allocate(DocumentType.JOB)
            job = Job(
                id=uuid4(),
                job_no=job_no,
                customer_id=data.customer_id,
                device_id=data.device_id,
                status=JobStatus.RECEIVED,
                assigned_user_id=data.assigned_user_id,
                tasks=[
                    JobTask(
                        id=uuid4(),
                        title=task.title,
                        is_done=False,
                        order=index,
                        created_at=now,
                        updated_at=now,
                    )
                    for index, task in enumerate(data.tasks)
                ],
                internal_note=data.internal_note,
                customer_note=data.customer_note,
                status_history=[
                    JobStatusEvent(
                        to_status=JobStatus.RECEIVED,
                        changed_at=now,
                        changed_by_user_id=actor_id,
                    )
                ],
                created_at=now,
                updated_at=now,
            )
            self._save(job)

            self.audit.record(
                action=AuditAction.JOB_CREATED,
                entity_type=EntityType.JOB,
                entity_id=job.id,
                summary=f"New job {job_no}",
                metadata={
                    "job_no": job_no,
                    "customer_id": str(data.customer_id),
                    "device_id": str(data.device_id),
                },
                actor_id=actor_id,
            )

        return job

    def available_transitions(self, status: JobStatus) -> list[JobStatus]:
        """Statuses reachable from status, in stepper order."""
        allowed = JOB_TRANSITIONS[JobStatus(status)]
        return [candidate for candidate in JOB_STATUS_ORDER if candidate in allowed]

    def get_by_id(self, job_id: UUID) -> Job | None:
        """
        Get job by ID.

        Returns:
            Job if found and not deleted, None otherwise.
        """
        row = self.store.get(JOBS, job_id)
        if row is None or row.get("deleted_at") is not None:
            return None
        return Job.model_validate(row)

    def get_by_number(self, job_no: str) -> Job | None:
        """Get job by its JS-YYYY-NNNNNN number."""
        row = self.store.find_one(JOBS, job_no=job_no, deleted_at=None)
        if row is None:
            return None
        return Job.model_validate(row)

    def transition(self, job_id: UUID, new_status: JobStatus, actor_id: UUID | None = None) -> Job:
        """
        Move a job to a new status.

        Args:
            job_id: Job UUID
            new_status: Requested status
            actor_id: Acting user (defaults to actor context)

        Returns:
            Updated job; closed_at is set when entering CLOSED

        Raises:
            NotFoundError: If job not found
            InvalidTransitionError: If the move is not in JOB_TRANSITIONS
        """
        actor_id = resolve_actor_id(actor_id)
        new_status = JobStatus(new_status)

        with self.store.transaction():
            current = self._require(job_id)
            if new_status not in JOB_TRANSITIONS[current.status]:
                raise InvalidTransitionError("job", current.status.value, new_status.value)

            now = now_utc()
            event = JobStatusEvent(
                from_status=current.status,
                to_status=new_status,
                changed_at=now,
                changed_by_user_id=actor_id,
            )
            updated = current.model_copy(update={
                "status": new_status,
                "status_history": [*current.status_history, event],
                "updated_at": now,
                "closed_at": now if new_status == JobStatus.CLOSED else current.closed_at,
            })
            self._save(updated)

            self.audit.record(
                action=AuditAction.JOB_STATUS_CHANGED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=f"Job {current.job_no} status: {current.status.value} -> {new_status.value}",
                metadata={"from": current.status.value, "to": new_status.value},
                actor_id=actor_id,
            )

        return updated

    def assign(self, job_id: UUID, user_id: UUID | None, actor_id: UUID | None = None) -> Job:
        """
        Assign (or with None, unassign) a technician.

        Always permitted, whatever the status.
        """
        actor_id = resolve_actor_id(actor_id)

        with self.store.transaction():
            current = self._require(job_id)
            updated = current.model_copy(update={
                "assigned_user_id": user_id,
                "updated_at": now_utc(),
            })
            self._save(updated)

            if user_id is not None:
                summary = f"Job {current.job_no} assigned"
            else:
                summary = f"Job {current.job_no} unassigned"
            self.audit.record(
                action=AuditAction.JOB_ASSIGNED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=summary,
                metadata={
                    "from": str(current.assigned_user_id) if current.assigned_user_id else None,
                    "to": str(user_id) if user_id else None,
                },
                actor_id=actor_id,
            )

        return updated

    def update_tasks(
        self,
        job_id: UUID,
        tasks: list[JobTaskInput],
        actor_id: UUID | None = None
    ) -> Job:
        """
        Replace the task checklist wholesale.

        A task whose id matches an existing task keeps its created_at and,
        unless is_done is given, its done flag. Anything else is a new task,
        not done. Order is the position in the submitted list.

        Raises:
            ValidationError: If two submitted tasks share an id
        """
        actor_id = resolve_actor_id(actor_id)

        submitted_ids = [task.id for task in tasks if task.id is not None]
        if len(submitted_ids) != len(set(submitted_ids)):
            raise ValidationError("Task ids must be unique within a checklist")

        with self.store.transaction():
            current = self._require_open(job_id)
            existing = {task.id: task for task in current.tasks}
            now = now_utc()

            new_tasks = []
            for index, task in enumerate(tasks):
                previous = existing.get(task.id) if task.id is not None else None
                if task.is_done is not None:
                    is_done = task.is_done
                elif previous is not None:
                    is_done = previous.is_done
                else:
                    is_done = False
                new_tasks.append(JobTask(
                    id=task.id or uuid4(),
                    title=task.title,
                    is_done=is_done,
                    order=index,
                    created_at=previous.created_at if previous else now,
                    updated_at=now,
                ))

            updated = current.model_copy(update={"tasks": new_tasks, "updated_at": now})
            self._save(updated)

            self.audit.record(
                action=AuditAction.JOB_TASKS_UPDATED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=f"Job {current.job_no} checklist updated ({len(new_tasks)} tasks)",
                metadata={"task_count": len(new_tasks)},
                actor_id=actor_id,
            )

        return updated

    def toggle_task(self, job_id: UUID, task_id: UUID, actor_id: UUID | None = None) -> Job:
        """
        Flip the done flag of one task.

        Raises:
            NotFoundError: If the job or the task does not exist
        """
        actor_id = resolve_actor_id(actor_id)

        with self.store.transaction():
            current = self._require_open(job_id)
            target = next((task for task in current.tasks if task.id == task_id), None)
            if target is None:
                raise NotFoundError("Task", task_id)

            now = now_utc()
            toggled = target.model_copy(update={"is_done": not target.is_done, "updated_at": now})
            updated = current.model_copy(update={
                "tasks": [toggled if task.id == task_id else task for task in current.tasks],
                "updated_at": now,
            })
            self._save(updated)

            self.audit.record(
                action=AuditAction.JOB_TASK_TOGGLED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=f"Job {current.job_no} task '{target.title}' "
                        f"{'done' if toggled.is_done else 'reopened'}",
                metadata={"task_id": str(task_id), "is_done": toggled.is_done},
                actor_id=actor_id,
            )

        return updated

    def _update_fields(self, job_id: UUID, updates: dict, label: str, actor_id: UUID) -> Job:
        with self.store.transaction():
            current = self._require_open(job_id)
            for field in updates:
                if field not in _UPDATABLE_FIELDS:
                    logger.warning(f"Attempted to update unknown field '{field}' on job {job_id}")

            updates = {k: v for k, v in updates.items() if k in _UPDATABLE_FIELDS}
            if not updates:
                return current

            updated = current.model_copy(update={**updates, "updated_at": now_utc()})
            changes = compute_changes(
                current.model_dump(mode="json", include=set(updates)),
                updated.model_dump(mode="json", include=set(updates)),
            )
            if not changes:
                return current

            self._save(updated)
            self.audit.record(
                action=AuditAction.JOB_UPDATED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=f"Job {current.job_no} {label} updated",
                metadata=changes,
                actor_id=actor_id,
            )

        return updated

    def update_notes(self, job_id: UUID, data: JobNotesUpdate, actor_id: UUID | None = None) -> Job:
        """Update internal/customer notes. Omitted notes are kept."""
        actor_id = resolve_actor_id(actor_id)
        return self._update_fields(job_id, data.model_dump(exclude_none=True), "notes", actor_id)

    def update_costs(self, job_id: UUID, data: JobCostsUpdate, actor_id: UUID | None = None) -> Job:
        """Update labour/parts/discount/tax estimates. Omitted fields are kept."""
        actor_id = resolve_actor_id(actor_id)
        return self._update_fields(job_id, data.model_dump(exclude_none=True), "costs", actor_id)

    def delete(self, job_id: UUID, actor_id: UUID | None = None) -> bool:
        """
        Soft delete a job.

        Returns:
            True if deleted, False if not found
        """
        actor_id = resolve_actor_id(actor_id)

        with self.store.transaction():
            current = self.get_by_id(job_id)
            if current is None:
                return False

            now = now_utc()
            self._save(current.model_copy(update={"deleted_at": now, "updated_at": now}))

            self.audit.record(
                action=AuditAction.JOB_DELETED,
                entity_type=EntityType.JOB,
                entity_id=job_id,
                summary=f"Job {current.job_no} deleted",
                actor_id=actor_id,
            )

        return True

    def _live(self, rows: list[dict]) -> list[Job]:
        """Newest first, soft-deleted excluded."""
        return [
            Job.model_validate(row)
            for row in reversed(rows)
            if row.get("deleted_at") is None
        ]

    def list_all(self, limit: int | None = None) -> list[Job]:
        """All live jobs, newest first."""
        jobs = self._live(self.store.all(JOBS))
        return jobs if limit is None else jobs[:limit]

    def list_by_status(self, status: JobStatus) -> list[Job]:
        """Live jobs in one status, newest first."""
        return self._live(self.store.find(JOBS, status=JobStatus(status)))

    def list_active(self) -> list[Job]:
        """Live jobs that are not closed, newest first."""
        return [job for job in self.list_all() if not job.is_closed]

    def list_today(self) -> list[Job]:
        """Jobs opened today in the business timezone."""
        start, end = day_bounds(business_date(now_utc(), self.config.timezone), self.config.timezone)
        return [job for job in self.list_all() if start <= job.created_at < end]
