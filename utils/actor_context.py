"""Propagate the acting user's identity through the call stack using contextvars.

The ledger never authenticates anyone. An upstream gateway vouches for the
actor and the HTTP layer copies that id into this context; services fall back
to it when no explicit actor id is passed.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_actor_id: ContextVar[UUID | None] = ContextVar("current_actor_id", default=None)

# Attributed to unattended jobs such as the quotation expiry sweep.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


def get_current_actor_id() -> UUID:
    """
    Get the acting user's ID from context.

    Raises RuntimeError if no actor context is set. Every mutation must be
    attributable, so a missing actor is a bug in the caller.
    """
    actor_id = _current_actor_id.get()
    if actor_id is None:
        raise RuntimeError(
            "No actor context set. Pass actor_id explicitly or wrap the call "
            "in actor_context()."
        )
    return actor_id


def resolve_actor_id(actor_id: UUID | None) -> UUID:
    """Explicit actor wins; otherwise the context actor."""
    if actor_id is not None:
        return actor_id
    return get_current_actor_id()


def set_current_actor_id(actor_id: UUID) -> None:
    """Set the actor for the current context."""
    _current_actor_id.set(actor_id)


def clear_current_actor_id() -> None:
    """
    Clear actor context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_actor_id.set(None)


@contextmanager
def actor_context(actor_id: UUID):
    """
    Temporarily act as actor_id.

    Example:
        with actor_context(technician_id):
            job_service.transition(job.id, JobStatus.DIAGNOSE)
    """
    previous = _current_actor_id.get()
    set_current_actor_id(actor_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor_id()
        else:
            set_current_actor_id(previous)
