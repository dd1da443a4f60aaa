"""Typed exceptions for ledger failures.

Every failure is local, synchronous and non-retryable: the caller must correct
the input and resubmit. The HTTP layer maps ``code`` to a response.
"""


class LedgerError(Exception):
    """Base class for all domain failures."""

    code = "LEDGER_ERROR"


class NotFoundError(LedgerError):
    """Entity id (or number) does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidTransitionError(LedgerError):
    """State machine rejected the requested move. State is unchanged."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity_type: str, current: str, requested: str):
        self.entity_type = entity_type
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move {entity_type} from '{current}' to '{requested}'"
        )


class BusinessRuleViolation(LedgerError):
    """
    Domain rule breach.

    Over-payment, converting a quotation twice, editing a non-draft quotation,
    cancelling a paid invoice, online payment without a reference.
    """

    code = "BUSINESS_RULE"


class ValidationError(LedgerError):
    """Malformed input that passed model parsing but not a domain check."""

    code = "VALIDATION_ERROR"
