"""Job (device service job) domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Job lifecycle status."""

    RECEIVED = "received"
    DIAGNOSE = "diagnose"
    QUOTED = "quoted"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    CLOSED = "closed"


# ready -> in_progress is the rework case.
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.RECEIVED: frozenset({JobStatus.DIAGNOSE, JobStatus.CLOSED}),
    JobStatus.DIAGNOSE: frozenset({JobStatus.QUOTED, JobStatus.IN_PROGRESS, JobStatus.CLOSED}),
    JobStatus.QUOTED: frozenset({JobStatus.IN_PROGRESS, JobStatus.CLOSED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.READY, JobStatus.CLOSED}),
    JobStatus.READY: frozenset({JobStatus.CLOSED, JobStatus.IN_PROGRESS}),
    JobStatus.CLOSED: frozenset(),
}

# Display order for status steppers.
JOB_STATUS_ORDER: tuple[JobStatus, ...] = (
    JobStatus.RECEIVED,
    JobStatus.DIAGNOSE,
    JobStatus.QUOTED,
    JobStatus.IN_PROGRESS,
    JobStatus.READY,
    JobStatus.CLOSED,
)


class JobTaskInput(BaseModel):
    """A checklist entry as submitted. Reusing an id keeps that task's state."""

    id: UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    is_done: bool | None = None


class JobTask(BaseModel):
    """Checklist entry on a job."""

    id: UUID
    title: str
    is_done: bool
    order: int = Field(..., ge=0)
    created_at: datetime
    updated_at: datetime


class JobStatusEvent(BaseModel):
    """One entry of a job's append-only status history."""

    from_status: JobStatus | None = None
    to_status: JobStatus
    changed_at: datetime
    changed_by_user_id: UUID

    model_config = {"frozen": True}


class JobCreate(BaseModel):
    """Data required to open a job."""

    customer_id: UUID
    device_id: UUID
    assigned_user_id: UUID | None = None
    tasks: list[JobTaskInput] = Field(default_factory=list)
    internal_note: str | None = Field(None, max_length=2000)
    customer_note: str | None = Field(None, max_length=2000)


class JobNotesUpdate(BaseModel):
    """Notes that can be updated on a job. Omitted fields are kept."""

    internal_note: str | None = Field(None, max_length=2000)
    customer_note: str | None = Field(None, max_length=2000)


class JobCostsUpdate(BaseModel):
    """Cost fields that can be updated on a job. Omitted fields are kept."""

    labor_cents: int | None = Field(None, ge=0)
    parts_cents: int | None = Field(None, ge=0)
    discount_cents: int | None = Field(None, ge=0)
    tax_cents: int | None = Field(None, ge=0)


class Job(BaseModel):
    """Full job entity as stored."""

    id: UUID
    job_no: str
    customer_id: UUID
    device_id: UUID
    status: JobStatus
    assigned_user_id: UUID | None = None
    tasks: list[JobTask] = Field(default_factory=list)
    internal_note: str | None = None
    customer_note: str | None = None
    labor_cents: int = 0
    parts_cents: int = 0
    discount_cents: int = 0
    tax_cents: int = 0
    status_history: list[JobStatusEvent]
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_closed(self) -> bool:
        """Whether job has reached its terminal status."""
        return self.status == JobStatus.CLOSED

    @property
    def estimated_total_cents(self) -> int:
        """Labour plus parts, less discount, plus tax. Never negative."""
        return max(0, self.labor_cents + self.parts_cents - self.discount_cents + self.tax_cents)

    @property
    def available_transitions(self) -> frozenset[JobStatus]:
        """Statuses this job may move to next."""
        return JOB_TRANSITIONS[self.status]
