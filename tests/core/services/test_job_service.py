"""Tests for JobService."""

import pytest
from datetime import datetime, timezone
from uuid import uuid4

from core.audit import AuditAction, EntityType
from core.exceptions import BusinessRuleViolation, InvalidTransitionError, NotFoundError, ValidationError
from core.models import (
    JobCostsUpdate, JobCreate, JobNotesUpdate, JobStatus, JobTaskInput, JOB_TRANSITIONS,
)


def _walk(job_service, job_id, *statuses):
    job = None
    for status in statuses:
        job = job_service.transition(job_id, status)
    return job


class TestJobCreate:
    """Tests for JobService.create."""

    def test_creates_received_job(self, test_job, test_user_id):
        """New jobs start RECEIVED with one history entry."""
        assert test_job.status == JobStatus.RECEIVED
        assert test_job.job_no.startswith("JS-")
        assert len(test_job.status_history) == 1
        first = test_job.status_history[0]
        assert first.from_status is None
        assert first.to_status == JobStatus.RECEIVED
        assert first.changed_by_user_id == test_user_id

    def test_tasks_start_not_done_in_order(self, test_job):
        assert [t.title for t in test_job.tasks] == ["Check battery", "Replace screen"]
        assert [t.order for t in test_job.tasks] == [0, 1]
        assert not any(t.is_done for t in test_job.tasks)

    def test_numbers_are_sequential(self, as_test_user, job_service, customer_id, device_id):
        first = job_service.create(JobCreate(customer_id=customer_id, device_id=device_id))
        second = job_service.create(JobCreate(customer_id=customer_id, device_id=device_id))
        assert int(second.job_no[-6:]) == int(first.job_no[-6:]) + 1

    def test_audits_creation(self, audit, test_job):
        history = audit.get_entity_history(EntityType.JOB, test_job.id)
        assert [e.action for e in history] == [AuditAction.JOB_CREATED]
        assert history[0].metadata["job_no"] == test_job.job_no

    def test_explicit_actor_without_context(self, job_service, customer_id, device_id, test_user_b_id):
        """An explicit actor works with no actor context set."""
        job = job_service.create(
            JobCreate(customer_id=customer_id, device_id=device_id), actor_id=test_user_b_id
        )
        assert job.status_history[0].changed_by_user_id == test_user_b_id

    def test_requires_actor(self, job_service, customer_id, device_id):
        with pytest.raises(RuntimeError, match="No actor context"):
            job_service.create(JobCreate(customer_id=customer_id, device_id=device_id))


class TestJobTransition:
    """Tests for JobService.transition."""

    def test_valid_path(self, as_test_user, job_service, test_job):
        job = _walk(
            job_service, test_job.id,
            JobStatus.DIAGNOSE, JobStatus.QUOTED, JobStatus.IN_PROGRESS,
            JobStatus.READY, JobStatus.CLOSED,
        )
        assert job.status == JobStatus.CLOSED
        assert job.closed_at is not None
        assert len(job.status_history) == 6
        assert job.status_history[-1].to_status == job.status

    def test_history_records_from_and_to(self, as_test_user, job_service, test_job):
        job = job_service.transition(test_job.id, JobStatus.DIAGNOSE)
        event = job.status_history[-1]
        assert event.from_status == JobStatus.RECEIVED
        assert event.to_status == JobStatus.DIAGNOSE

    def test_rework_from_ready(self, as_test_user, job_service, test_job):
        """READY -> IN_PROGRESS is allowed."""
        _walk(job_service, test_job.id, JobStatus.DIAGNOSE, JobStatus.IN_PROGRESS, JobStatus.READY)
        job = job_service.transition(test_job.id, JobStatus.IN_PROGRESS)
        assert job.status == JobStatus.IN_PROGRESS

    def test_rejects_skipping_states(self, as_test_user, job_service, test_job):
        """RECEIVED -> READY is not allowed and leaves the job unchanged."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            job_service.transition(test_job.id, JobStatus.READY)

        assert exc_info.value.current == "received"
        assert exc_info.value.requested == "ready"
        unchanged = job_service.get_by_id(test_job.id)
        assert unchanged.status == JobStatus.RECEIVED
        assert len(unchanged.status_history) == 1

    def test_closed_is_terminal(self, as_test_user, job_service, test_job):
        job_service.transition(test_job.id, JobStatus.CLOSED)
        for status in JobStatus:
            with pytest.raises(InvalidTransitionError):
                job_service.transition(test_job.id, status)

    def test_accepts_string_status(self, as_test_user, job_service, test_job):
        job = job_service.transition(test_job.id, "diagnose")
        assert job.status == JobStatus.DIAGNOSE

    def test_audits_with_from_to(self, as_test_user, audit, job_service, test_job):
        job_service.transition(test_job.id, JobStatus.DIAGNOSE)
        event = audit.get_entity_history(EntityType.JOB, test_job.id)[0]
        assert event.action == AuditAction.JOB_STATUS_CHANGED
        assert event.metadata == {"from": "received", "to": "diagnose"}

    def test_not_found(self, as_test_user, job_service):
        with pytest.raises(NotFoundError):
            job_service.transition(uuid4(), JobStatus.DIAGNOSE)

    @pytest.mark.parametrize("status", list(JobStatus))
    def test_available_transitions_match_table(self, job_service, status):
        assert set(job_service.available_transitions(status)) == JOB_TRANSITIONS[status]


class TestJobAssign:
    """Tests for JobService.assign."""

    def test_assign_and_unassign(self, as_test_user, job_service, test_job, test_user_b_id):
        assigned = job_service.assign(test_job.id, test_user_b_id)
        assert assigned.assigned_user_id == test_user_b_id

        unassigned = job_service.assign(test_job.id, None)
        assert unassigned.assigned_user_id is None

    def test_assign_allowed_on_closed_job(self, as_test_user, job_service, test_job, test_user_b_id):
        job_service.transition(test_job.id, JobStatus.CLOSED)
        job = job_service.assign(test_job.id, test_user_b_id)
        assert job.assigned_user_id == test_user_b_id

    def test_audits(self, as_test_user, audit, job_service, test_job, test_user_b_id):
        job_service.assign(test_job.id, test_user_b_id)
        event = audit.list_by_action(AuditAction.JOB_ASSIGNED)[0]
        assert event.metadata["to"] == str(test_user_b_id)


class TestJobTasks:
    """Tests for JobService.update_tasks and toggle_task."""

    def test_toggle_flips_one_task(self, as_test_user, job_service, test_job):
        target = test_job.tasks[0]

        job = job_service.toggle_task(test_job.id, target.id)

        assert job.tasks[0].is_done is True
        assert job.tasks[1].is_done is False

        job = job_service.toggle_task(test_job.id, target.id)
        assert job.tasks[0].is_done is False

    def test_toggle_unknown_task(self, as_test_user, job_service, test_job):
        with pytest.raises(NotFoundError, match="Task"):
            job_service.toggle_task(test_job.id, uuid4())

    def test_update_preserves_existing_state(self, as_test_user, job_service, test_job):
        """Kept tasks keep is_done and created_at; new ones start not done."""
        battery, screen = test_job.tasks
        job_service.toggle_task(test_job.id, battery.id)

        job = job_service.update_tasks(test_job.id, [
            JobTaskInput(title="Replace screen (OEM)", id=screen.id),
            JobTaskInput(title="Check battery", id=battery.id),
            JobTaskInput(title="Clean ports"),
        ])

        assert [t.title for t in job.tasks] == ["Replace screen (OEM)", "Check battery", "Clean ports"]
        assert [t.order for t in job.tasks] == [0, 1, 2]
        assert job.tasks[0].created_at == screen.created_at
        assert job.tasks[1].is_done is True
        assert job.tasks[2].is_done is False

    def test_update_explicit_done_wins(self, as_test_user, job_service, test_job):
        job = job_service.update_tasks(test_job.id, [
            JobTaskInput(title="Check battery", id=test_job.tasks[0].id, is_done=True),
        ])
        assert len(job.tasks) == 1
        assert job.tasks[0].is_done is True

    def test_unknown_id_becomes_new_task(self, as_test_user, job_service, test_job):
        stray = uuid4()
        job = job_service.update_tasks(test_job.id, [JobTaskInput(title="New", id=stray)])
        assert job.tasks[0].id == stray
        assert job.tasks[0].is_done is False

    def test_duplicate_ids_rejected(self, as_test_user, job_service, test_job):
        """A repeated id would make one toggle flip several tasks."""
        shared = test_job.tasks[0].id

        with pytest.raises(ValidationError, match="unique"):
            job_service.update_tasks(test_job.id, [
                JobTaskInput(title="a", id=shared),
                JobTaskInput(title="b", id=shared),
            ])

        job = job_service.toggle_task(test_job.id, shared)
        assert [t.title for t in job.tasks] == [t.title for t in test_job.tasks]
        assert [t.is_done for t in job.tasks] == [True, False]

    def test_closed_job_rejects_task_changes(self, as_test_user, job_service, test_job):
        job_service.transition(test_job.id, JobStatus.CLOSED)

        with pytest.raises(BusinessRuleViolation, match="closed"):
            job_service.toggle_task(test_job.id, test_job.tasks[0].id)
        with pytest.raises(BusinessRuleViolation):
            job_service.update_tasks(test_job.id, [])


class TestJobUpdates:
    """Tests for JobService.update_notes and update_costs."""

    def test_update_notes(self, as_test_user, audit, job_service, test_job):
        job = job_service.update_notes(test_job.id, JobNotesUpdate(internal_note="Water damage"))

        assert job.internal_note == "Water damage"
        event = audit.list_by_action(AuditAction.JOB_UPDATED)[0]
        assert event.metadata == {"internal_note": {"old": None, "new": "Water damage"}}

    def test_update_costs(self, as_test_user, job_service, test_job):
        job = job_service.update_costs(
            test_job.id, JobCostsUpdate(labor_cents=5000, parts_cents=3000, discount_cents=500)
        )
        assert job.estimated_total_cents == 7500

    def test_noop_update_not_audited(self, as_test_user, audit, job_service, test_job):
        job_service.update_notes(test_job.id, JobNotesUpdate())
        assert audit.list_by_action(AuditAction.JOB_UPDATED) == []

    def test_closed_job_rejects_updates(self, as_test_user, job_service, test_job):
        job_service.transition(test_job.id, JobStatus.CLOSED)
        with pytest.raises(BusinessRuleViolation):
            job_service.update_costs(test_job.id, JobCostsUpdate(labor_cents=1))


class TestJobDelete:
    """Tests for JobService.delete."""

    def test_soft_delete(self, as_test_user, store, job_service, test_job):
        assert job_service.delete(test_job.id) is True

        assert job_service.get_by_id(test_job.id) is None
        assert job_service.get_by_number(test_job.job_no) is None
        assert store.get("jobs", test_job.id)["deleted_at"] is not None

    def test_delete_missing(self, as_test_user, job_service):
        assert job_service.delete(uuid4()) is False

    def test_deleted_job_rejects_mutation(self, as_test_user, job_service, test_job):
        job_service.delete(test_job.id)
        with pytest.raises(NotFoundError):
            job_service.transition(test_job.id, JobStatus.DIAGNOSE)


class TestJobQueries:
    """Tests for JobService read methods."""

    def test_get_by_number(self, job_service, test_job):
        assert job_service.get_by_number(test_job.job_no).id == test_job.id

    def test_list_all_newest_first(self, as_test_user, job_service, test_job, customer_id, device_id):
        newer = job_service.create(JobCreate(customer_id=customer_id, device_id=device_id))
        assert [j.id for j in job_service.list_all()] == [newer.id, test_job.id]

    def test_list_by_status(self, as_test_user, job_service, test_job):
        assert [j.id for j in job_service.list_by_status(JobStatus.RECEIVED)] == [test_job.id]
        assert job_service.list_by_status(JobStatus.READY) == []

    def test_list_active_excludes_closed(self, as_test_user, job_service, test_job, customer_id, device_id):
        other = job_service.create(JobCreate(customer_id=customer_id, device_id=device_id))
        job_service.transition(other.id, JobStatus.CLOSED)
        assert [j.id for j in job_service.list_active()] == [test_job.id]

    def test_list_today(self, job_service, test_job):
        assert [j.id for j in job_service.list_today()] == [test_job.id]

    def test_list_today_excludes_older_jobs(self, store, job_service, test_job):
        row = store.get("jobs", test_job.id)
        row["created_at"] = datetime(2020, 1, 1, tzinfo=timezone.utc).isoformat()
        store.put("jobs", test_job.id, row)
        assert job_service.list_today() == []
