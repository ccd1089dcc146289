"""
Typed errors for the budget lifecycle and catalog replication core.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so routes never have to parse messages:

    RewardsError
    +-- ValidationError          VALIDATION_ERROR      400
    |   +-- BudgetNotEditableError BUDGET_NOT_EDITABLE 400
    +-- NotFoundError            NOT_FOUND             404
    +-- InvalidTransitionError   INVALID_TRANSITION    400
    +-- BudgetNotReleasedError   BUDGET_NOT_RELEASED   400
    +-- NoItemsError             NO_ITEMS              400

Partial replication failures are not exceptions; they are reported through
``BudgetReplicationOutcome.errors`` and the replication log.
"""

from typing import Optional


class RewardsError(Exception):
    """Base class for all domain errors raised by the services."""

    code: str = "REWARDS_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(RewardsError):
    """Malformed input: missing required field or out-of-bounds value."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class BudgetNotEditableError(ValidationError):
    code = "BUDGET_NOT_EDITABLE"

    def __init__(self, budget_id: str, status: str):
        self.budget_id = budget_id
        self.status = status
        super().__init__(
            f"Budget {budget_id} items can only change while in draft (current: {status})"
        )


class NotFoundError(RewardsError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidTransitionError(RewardsError):
    """Requested budget status is not reachable from the current one."""

    code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid transition: {current_status} -> {requested_status}"
        )


class BudgetNotReleasedError(RewardsError):
    code = "BUDGET_NOT_RELEASED"
    status_code = 400

    def __init__(self, budget_id: str, status: str):
        self.budget_id = budget_id
        self.status = status
        super().__init__(
            f"Budget {budget_id} must be 'released' to replicate (current: {status})"
        )


class NoItemsError(RewardsError):
    code = "NO_ITEMS"
    status_code = 400

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} has no items")
