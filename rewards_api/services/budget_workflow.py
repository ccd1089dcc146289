"""
Budget workflow — status state machine and transition validation.

    draft → submitted → reviewed → approved → released → replicated
                                 ↘ rejected → draft

Every state may also "transition" to itself; that is how plain field edits
(title, description) are expressed. ``replicated`` is terminal.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

import structlog

from rewards_api.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from rewards_api.models.budget import Budget
from rewards_api.repositories.base import Repositories

logger = structlog.get_logger()


class BudgetStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    RELEASED = "released"
    REPLICATED = "replicated"


BUDGET_TRANSITIONS: dict[BudgetStatus, frozenset[BudgetStatus]] = {
    BudgetStatus.DRAFT: frozenset({BudgetStatus.DRAFT, BudgetStatus.SUBMITTED}),
    BudgetStatus.SUBMITTED: frozenset({BudgetStatus.SUBMITTED, BudgetStatus.REVIEWED}),
    BudgetStatus.REVIEWED: frozenset({
        BudgetStatus.REVIEWED,
        BudgetStatus.APPROVED,
        BudgetStatus.REJECTED,
    }),
    BudgetStatus.APPROVED: frozenset({BudgetStatus.APPROVED, BudgetStatus.RELEASED}),
    BudgetStatus.REJECTED: frozenset({BudgetStatus.REJECTED, BudgetStatus.DRAFT}),
    BudgetStatus.RELEASED: frozenset({BudgetStatus.RELEASED, BudgetStatus.REPLICATED}),
    BudgetStatus.REPLICATED: frozenset({BudgetStatus.REPLICATED}),
}

TERMINAL_BUDGET_STATUSES: frozenset[BudgetStatus] = frozenset({BudgetStatus.REPLICATED})

# Fields a status-change request may carry alongside the status
EDITABLE_BUDGET_FIELDS = frozenset({"title", "description"})


def parse_status(value: Union[str, BudgetStatus]) -> BudgetStatus:
    try:
        return BudgetStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown budget status: {value}", field="status")


def allowed_transitions(current: Union[str, BudgetStatus]) -> frozenset[BudgetStatus]:
    return BUDGET_TRANSITIONS[parse_status(current)]


def is_valid_transition(
    current: Union[str, BudgetStatus], requested: Union[str, BudgetStatus]
) -> bool:
    try:
        return parse_status(requested) in allowed_transitions(current)
    except ValidationError:
        return False


def validate_transition(
    current: Union[str, BudgetStatus], requested: Union[str, BudgetStatus]
) -> BudgetStatus:
    """Return the requested status, or raise InvalidTransitionError."""
    current_status = parse_status(current)
    requested_status = parse_status(requested)
    if requested_status not in BUDGET_TRANSITIONS[current_status]:
        raise InvalidTransitionError(current_status.value, requested_status.value)
    return requested_status


async def _load_budget(repos: Repositories, budget_id: str) -> Budget:
    budget = await repos.budgets.get_budget(budget_id)
    if budget is None:
        raise NotFoundError("Budget", budget_id)
    return budget


async def request_transition(
    repos: Repositories,
    budget_id: str,
    requested_status: Optional[Union[str, BudgetStatus]],
    actor_id: str,
    **fields,
) -> Budget:
    """
    Apply a status change (and any editable fields) to a budget.

    A missing ``requested_status`` means "keep the current status". The
    persisted status is left untouched when validation fails. This function
    never stamps ``replicated_at``; only ``mark_replicated`` does.
    """
    unknown = set(fields) - EDITABLE_BUDGET_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields not editable through a status request: {', '.join(sorted(unknown))}"
        )
    if not actor_id:
        raise ValidationError("updated_by is required", field="updated_by")

    budget = await _load_budget(repos, budget_id)
    current = parse_status(budget.status)
    target = current if requested_status is None else validate_transition(current, requested_status)

    patch = {k: v for k, v in fields.items() if v is not None}
    patch.update(status=target.value, updated_by=actor_id, updated_at=datetime.utcnow())
    updated = await repos.budgets.update_budget(budget_id, patch)

    if target != current:
        logger.info(
            "budget_status_changed",
            budget_id=budget_id,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor_id,
        )
    return updated


async def mark_replicated(repos: Repositories, budget_id: str, actor_id: str) -> Budget:
    """released → replicated, stamping replicated_at."""
    budget = await _load_budget(repos, budget_id)
    validate_transition(budget.status, BudgetStatus.REPLICATED)

    now = datetime.utcnow()
    updated = await repos.budgets.update_budget(
        budget_id,
        {
            "status": BudgetStatus.REPLICATED.value,
            "replicated_at": now,
            "updated_by": actor_id,
            "updated_at": now,
        },
    )
    logger.info("budget_marked_replicated", budget_id=budget_id, actor_id=actor_id)
    return updated
