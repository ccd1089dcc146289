"""
Unit tests for rewards_api/services/budget_workflow.py

Covers the full status x status transition table, request_transition
against the in-memory repositories, and mark_replicated.
"""

import pytest

from rewards_api.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from rewards_api.services.budget_workflow import (
    BUDGET_TRANSITIONS,
    TERMINAL_BUDGET_STATUSES,
    BudgetStatus,
    is_valid_transition,
    mark_replicated,
    request_transition,
    validate_transition,
)

ALLOWED = {
    "draft": {"draft", "submitted"},
    "submitted": {"submitted", "reviewed"},
    "reviewed": {"reviewed", "approved", "rejected"},
    "approved": {"approved", "released"},
    "rejected": {"rejected", "draft"},
    "released": {"released", "replicated"},
    "replicated": {"replicated"},
}
STATUSES = [s.value for s in BudgetStatus]


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("current", STATUSES)
@pytest.mark.parametrize("requested", STATUSES)
def test_transition_table(current, requested):
    assert is_valid_transition(current, requested) is (requested in ALLOWED[current])


def test_every_status_has_an_entry():
    assert set(BUDGET_TRANSITIONS) == set(BudgetStatus)


def test_replicated_is_terminal():
    assert TERMINAL_BUDGET_STATUSES == {BudgetStatus.REPLICATED}
    assert BUDGET_TRANSITIONS[BudgetStatus.REPLICATED] == {BudgetStatus.REPLICATED}


def test_unknown_requested_status_is_not_valid():
    assert is_valid_transition("draft", "archived") is False


def test_validate_transition_raises_with_both_statuses():
    with pytest.raises(InvalidTransitionError) as exc_info:
        validate_transition("draft", "approved")
    assert exc_info.value.current_status == "draft"
    assert exc_info.value.requested_status == "approved"
    assert exc_info.value.code == "INVALID_TRANSITION"


def test_validate_transition_rejects_unknown_status():
    with pytest.raises(ValidationError):
        validate_transition("draft", "archived")


def test_validate_transition_accepts_enum_members():
    assert validate_transition(BudgetStatus.REVIEWED, BudgetStatus.REJECTED) == BudgetStatus.REJECTED


# ---------------------------------------------------------------------------
# request_transition
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_draft_budget(repos, budget_factory):
    budget = await budget_factory()

    updated = await request_transition(repos, budget.id, "submitted", "reviewer-7")

    assert updated.status == "submitted"
    assert updated.updated_by == "reviewer-7"


@pytest.mark.asyncio
async def test_invalid_transition_leaves_status_unchanged(repos, budget_factory):
    budget = await budget_factory()

    with pytest.raises(InvalidTransitionError):
        await request_transition(repos, budget.id, "approved", "admin-1")

    stored = await repos.budgets.get_budget(budget.id)
    assert stored.status == "draft"


@pytest.mark.asyncio
async def test_same_state_request_edits_fields(repos, budget_factory):
    budget = await budget_factory(status=BudgetStatus.APPROVED)

    updated = await request_transition(
        repos, budget.id, "approved", "admin-2", title="Renamed", description="New notes"
    )

    assert updated.status == "approved"
    assert updated.title == "Renamed"
    assert updated.description == "New notes"


@pytest.mark.asyncio
async def test_missing_status_keeps_current(repos, budget_factory):
    budget = await budget_factory(status=BudgetStatus.SUBMITTED)

    updated = await request_transition(repos, budget.id, None, "admin-1", title="Only title")

    assert updated.status == "submitted"
    assert updated.title == "Only title"


@pytest.mark.asyncio
async def test_rejected_budget_returns_to_draft(repos, budget_factory):
    budget = await budget_factory(status=BudgetStatus.REJECTED)

    updated = await request_transition(repos, budget.id, "draft", "admin-1")

    assert updated.status == "draft"


@pytest.mark.asyncio
async def test_lifecycle_fields_cannot_be_edited(repos, budget_factory):
    budget = await budget_factory()

    with pytest.raises(ValidationError):
        await request_transition(repos, budget.id, None, "admin-1", company_id="other")


@pytest.mark.asyncio
async def test_actor_is_required(repos, budget_factory):
    budget = await budget_factory()

    with pytest.raises(ValidationError):
        await request_transition(repos, budget.id, "submitted", "")


@pytest.mark.asyncio
async def test_unknown_budget(repos):
    with pytest.raises(NotFoundError):
        await request_transition(repos, "missing", "submitted", "admin-1")


@pytest.mark.asyncio
async def test_request_transition_never_stamps_replicated_at(repos, budget_factory):
    budget = await budget_factory([("p1", 1, "1", "1")], status=BudgetStatus.RELEASED)

    updated = await request_transition(repos, budget.id, "replicated", "admin-1")

    assert updated.status == "replicated"
    assert updated.replicated_at is None


# ---------------------------------------------------------------------------
# mark_replicated
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mark_replicated_stamps_timestamp(repos, budget_factory):
    budget = await budget_factory([("p1", 1, "1", "1")], status=BudgetStatus.RELEASED)

    updated = await mark_replicated(repos, budget.id, "admin-1")

    assert updated.status == "replicated"
    assert updated.replicated_at is not None


@pytest.mark.asyncio
async def test_mark_replicated_requires_released(repos, budget_factory):
    budget = await budget_factory(status=BudgetStatus.APPROVED)

    with pytest.raises(InvalidTransitionError):
        await mark_replicated(repos, budget.id, "admin-1")
