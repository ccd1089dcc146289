"""
Unit tests for rewards_api/services/budget_service.py

Runs against the in-memory repositories — no database required.
"""

from decimal import Decimal

import pytest

from rewards_api.exceptions import BudgetNotEditableError, NotFoundError, ValidationError
from rewards_api.services.budget_service import (
    add_budget_item,
    calculate_budget_totals,
    create_budget,
    delete_budget_item,
    get_budget_with_items,
    list_budgets,
    update_budget_item,
    validate_item_values,
)
from rewards_api.services.budget_workflow import BudgetStatus


# ---------------------------------------------------------------------------
# calculate_budget_totals
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_totals_sum_qty_times_unit_values(repos, budget_factory):
    budget = await budget_factory([("p1", 2, "10", "100"), ("p2", 1, "5", "50")])

    totals = await calculate_budget_totals(repos, budget.id)

    assert totals.total_price == Decimal("25")
    assert totals.total_points == Decimal("250")
    assert totals.item_count == 2


@pytest.mark.asyncio
async def test_totals_are_persisted(repos, budget_factory):
    budget = await budget_factory([("p1", 3, "2.50", "20")])

    stored = await repos.budgets.get_budget(budget.id)

    assert stored.total_price == Decimal("7.50")
    assert stored.total_points == Decimal("60")
    assert stored.item_count == 1


@pytest.mark.asyncio
async def test_totals_for_empty_budget(repos, budget_factory):
    budget = await budget_factory()

    totals = await calculate_budget_totals(repos, budget.id)

    assert totals.total_price == 0
    assert totals.total_points == 0
    assert totals.item_count == 0


@pytest.mark.asyncio
async def test_totals_unknown_budget(repos):
    with pytest.raises(NotFoundError):
        await calculate_budget_totals(repos, "missing")


# ---------------------------------------------------------------------------
# validate_item_values
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "qty,price,points",
    [(0, "1", "1"), (-1, "1", "1"), (1, "-0.01", "1"), (1, "1", "-5"), (1.5, "1", "1"), (True, "1", "1")],
)
def test_item_values_out_of_bounds(qty, price, points):
    with pytest.raises(ValidationError):
        validate_item_values(qty, price, points)


def test_item_values_non_numeric_price():
    with pytest.raises(ValidationError) as exc_info:
        validate_item_values(1, "ten", "1")
    assert exc_info.value.field == "unit_price"


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "sNaN"])
def test_item_values_must_be_finite(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_item_values(1, value, "1")
    assert exc_info.value.field == "unit_price"


def test_item_values_normalised_to_decimal():
    assert validate_item_values(2, 10, 0) == (2, Decimal("10"), Decimal("0"))


def test_item_values_rounded_to_stored_scale():
    _, price, points = validate_item_values(1, "10.005", "99.994")

    assert str(price) == "10.01"
    assert str(points) == "99.99"


# ---------------------------------------------------------------------------
# create_budget
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_budget_starts_in_draft(repos, product_factory):
    await product_factory("p1")

    budget = await create_budget(
        repos,
        company_id="company-acme",
        title="Holiday gifts",
        created_by="admin-1",
        items=[{"base_product_id": "p1", "qty": 4, "unit_price": "12", "unit_points": "120"}],
    )

    assert budget.status == "draft"
    assert budget.total_price == Decimal("48")
    _, items = await get_budget_with_items(repos, budget.id)
    assert [i.position for i in items] == [0]


@pytest.mark.asyncio
async def test_create_budget_requires_title(repos):
    with pytest.raises(ValidationError):
        await create_budget(repos, company_id="company-acme", title="", created_by="admin-1")


@pytest.mark.asyncio
async def test_create_budget_unknown_product_writes_nothing(repos):
    with pytest.raises(NotFoundError):
        await create_budget(
            repos,
            company_id="company-acme",
            title="Broken",
            created_by="admin-1",
            items=[{"base_product_id": "ghost", "qty": 1, "unit_price": "1", "unit_points": "1"}],
        )
    assert await list_budgets(repos) == []


@pytest.mark.asyncio
async def test_list_budgets_filters(repos, budget_factory):
    await budget_factory(company_id="a")
    await budget_factory(company_id="b", status=BudgetStatus.SUBMITTED)

    assert len(await list_budgets(repos)) == 2
    assert [b.company_id for b in await list_budgets(repos, company_id="a")] == ["a"]
    assert [b.status for b in await list_budgets(repos, status="submitted")] == ["submitted"]


# ---------------------------------------------------------------------------
# Item mutations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_item_appends_and_recomputes(repos, budget_factory, product_factory):
    budget = await budget_factory([("p1", 1, "10", "100")])
    await product_factory("p2")

    item = await add_budget_item(repos, budget.id, "p2", qty=2, unit_price="3", unit_points="30")

    assert item.position == 1
    stored = await repos.budgets.get_budget(budget.id)
    assert stored.total_price == Decimal("16")
    assert stored.total_points == Decimal("160")
    assert stored.item_count == 2


@pytest.mark.asyncio
async def test_update_item_recomputes(repos, budget_factory):
    budget = await budget_factory([("p1", 1, "10", "100")])
    _, items = await get_budget_with_items(repos, budget.id)

    await update_budget_item(repos, budget.id, items[0].id, qty=5)

    stored = await repos.budgets.get_budget(budget.id)
    assert stored.total_price == Decimal("50")
    assert stored.total_points == Decimal("500")


@pytest.mark.asyncio
async def test_delete_item_recomputes(repos, budget_factory):
    budget = await budget_factory([("p1", 1, "10", "100"), ("p2", 2, "1", "1")])
    _, items = await get_budget_with_items(repos, budget.id)

    assert await delete_budget_item(repos, budget.id, items[0].id) is True

    stored = await repos.budgets.get_budget(budget.id)
    assert stored.total_price == Decimal("2")
    assert stored.item_count == 1


@pytest.mark.asyncio
async def test_item_from_other_budget_is_not_found(repos, budget_factory):
    first = await budget_factory([("p1", 1, "1", "1")])
    second = await budget_factory([("p2", 1, "1", "1")])
    _, items = await get_budget_with_items(repos, first.id)

    with pytest.raises(NotFoundError):
        await update_budget_item(repos, second.id, items[0].id, qty=2)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [BudgetStatus.SUBMITTED, BudgetStatus.APPROVED, BudgetStatus.RELEASED, BudgetStatus.REPLICATED],
)
async def test_items_frozen_outside_draft(repos, budget_factory, status):
    budget = await budget_factory([("p1", 1, "10", "100")], status=status)
    _, items = await get_budget_with_items(repos, budget.id)

    with pytest.raises(BudgetNotEditableError):
        await add_budget_item(repos, budget.id, "p1")
    with pytest.raises(BudgetNotEditableError):
        await update_budget_item(repos, budget.id, items[0].id, qty=3)
    with pytest.raises(BudgetNotEditableError):
        await delete_budget_item(repos, budget.id, items[0].id)
