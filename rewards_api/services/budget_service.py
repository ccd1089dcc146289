"""
Budget service — drafting, line items and totals.

Items may only change while their budget is in draft; every item mutation
recomputes the persisted totals.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Sequence

import structlog

from rewards_api.database import new_id
from rewards_api.exceptions import BudgetNotEditableError, NotFoundError, ValidationError
from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.repositories.base import Repositories
from rewards_api.services.budget_workflow import BudgetStatus

logger = structlog.get_logger()

# Stored money columns are Numeric(..., 2)
MONEY_QUANT = Decimal("0.01")


@dataclass
class BudgetTotals:
    total_price: Decimal
    total_points: Decimal
    item_count: int


def to_money(value: Any, field_name: str) -> Decimal:
    """Parse a price / points value at the scale it is stored with."""
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"{field_name} must be a finite number", field=field_name)
        return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number", field=field_name)


def validate_item_values(qty: Any, unit_price: Any, unit_points: Any) -> tuple[int, Decimal, Decimal]:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError("qty must be an integer", field="qty")
    price = to_money(unit_price, "unit_price")
    points = to_money(unit_points, "unit_points")
    if qty < 1 or price < 0 or points < 0:
        raise ValidationError("qty >= 1, unit_price >= 0, unit_points >= 0")
    return qty, price, points


async def _require_base_product(repos: Repositories, base_product_id: Optional[str]):
    if not base_product_id:
        raise ValidationError("base_product_id is required", field="base_product_id")
    product = await repos.base_products.get_base_product_by_id(base_product_id)
    if product is None:
        raise NotFoundError("Base product", base_product_id)
    return product


async def _get_budget(repos: Repositories, budget_id: str) -> Budget:
    budget = await repos.budgets.get_budget(budget_id)
    if budget is None:
        raise NotFoundError("Budget", budget_id)
    return budget


def _ensure_editable(budget: Budget):
    if budget.status != BudgetStatus.DRAFT.value:
        raise BudgetNotEditableError(budget.id, budget.status)


async def calculate_budget_totals(repos: Repositories, budget_id: str) -> BudgetTotals:
    """Sum qty x unit price/points over the budget's items and persist them."""
    await _get_budget(repos, budget_id)
    items = await repos.items.list_items_by_budget(budget_id)

    total_price = sum((Decimal(i.qty) * Decimal(i.unit_price) for i in items), Decimal("0"))
    total_points = sum((Decimal(i.qty) * Decimal(i.unit_points) for i in items), Decimal("0"))
    totals = BudgetTotals(total_price=total_price, total_points=total_points, item_count=len(items))

    await repos.budgets.update_budget(
        budget_id,
        {
            "total_price": totals.total_price,
            "total_points": totals.total_points,
            "item_count": totals.item_count,
        },
    )
    logger.debug(
        "budget_totals_calculated",
        budget_id=budget_id,
        total_price=str(total_price),
        total_points=str(total_points),
        item_count=totals.item_count,
    )
    return totals


async def create_budget(
    repos: Repositories,
    company_id: Optional[str],
    title: Optional[str],
    created_by: Optional[str],
    description: Optional[str] = None,
    items: Sequence[dict] = (),
) -> Budget:
    """
    Create a draft budget with its line items.

    Every item is validated before anything is written, so a bad item never
    leaves a half-created budget behind.
    """
    if not company_id or not title or not created_by:
        raise ValidationError("company_id, title and created_by are required")

    validated = []
    for data in items:
        await _require_base_product(repos, data.get("base_product_id"))
        qty, price, points = validate_item_values(
            data.get("qty"), data.get("unit_price"), data.get("unit_points")
        )
        validated.append((data["base_product_id"], qty, price, points))

    now = datetime.utcnow()
    budget = await repos.budgets.save_budget(
        Budget(
            id=new_id(),
            company_id=company_id,
            title=title,
            description=description,
            status=BudgetStatus.DRAFT.value,
            total_price=Decimal("0"),
            total_points=Decimal("0"),
            item_count=0,
            created_by=created_by,
            updated_by=created_by,
            created_at=now,
            updated_at=now,
        )
    )

    for position, (base_product_id, qty, price, points) in enumerate(validated):
        await repos.items.create_item(
            BudgetItem(
                id=new_id(),
                budget_id=budget.id,
                base_product_id=base_product_id,
                qty=qty,
                unit_price=price,
                unit_points=points,
                position=position,
                created_at=now,
                updated_at=now,
            )
        )

    await calculate_budget_totals(repos, budget.id)
    logger.info(
        "budget_created",
        budget_id=budget.id,
        company_id=company_id,
        item_count=len(validated),
        created_by=created_by,
    )
    return await _get_budget(repos, budget.id)


async def get_budget_with_items(repos: Repositories, budget_id: str) -> tuple[Budget, list[BudgetItem]]:
    budget = await _get_budget(repos, budget_id)
    items = await repos.items.list_items_by_budget(budget_id)
    return budget, items


async def list_budgets(
    repos: Repositories, company_id: Optional[str] = None, status: Optional[str] = None
) -> list[Budget]:
    return await repos.budgets.list_budgets(company_id=company_id, status=status)


async def add_budget_item(
    repos: Repositories,
    budget_id: str,
    base_product_id: Optional[str],
    qty: int = 1,
    unit_price: Any = 0,
    unit_points: Any = 0,
) -> BudgetItem:
    budget = await _get_budget(repos, budget_id)
    _ensure_editable(budget)
    await _require_base_product(repos, base_product_id)
    qty, price, points = validate_item_values(qty, unit_price, unit_points)

    existing = await repos.items.list_items_by_budget(budget_id)
    next_position = max((i.position or 0 for i in existing), default=-1) + 1
    now = datetime.utcnow()
    item = await repos.items.create_item(
        BudgetItem(
            id=new_id(),
            budget_id=budget_id,
            base_product_id=base_product_id,
            qty=qty,
            unit_price=price,
            unit_points=points,
            position=next_position,
            created_at=now,
            updated_at=now,
        )
    )
    await calculate_budget_totals(repos, budget_id)
    logger.info("budget_item_added", budget_id=budget_id, item_id=item.id)
    return item


async def update_budget_item(
    repos: Repositories,
    budget_id: str,
    item_id: str,
    qty: Optional[int] = None,
    unit_price: Any = None,
    unit_points: Any = None,
) -> BudgetItem:
    budget = await _get_budget(repos, budget_id)
    _ensure_editable(budget)
    item = await repos.items.get_item(item_id)
    if item is None or item.budget_id != budget_id:
        raise NotFoundError("Budget item", item_id)

    qty, price, points = validate_item_values(
        item.qty if qty is None else qty,
        item.unit_price if unit_price is None else unit_price,
        item.unit_points if unit_points is None else unit_points,
    )
    updated = await repos.items.update_item(
        item_id,
        {
            "qty": qty,
            "unit_price": price,
            "unit_points": points,
            "updated_at": datetime.utcnow(),
        },
    )
    await calculate_budget_totals(repos, budget_id)
    return updated


async def delete_budget_item(repos: Repositories, budget_id: str, item_id: str) -> bool:
    budget = await _get_budget(repos, budget_id)
    _ensure_editable(budget)
    item = await repos.items.get_item(item_id)
    if item is None or item.budget_id != budget_id:
        raise NotFoundError("Budget item", item_id)

    deleted = await repos.items.delete_item(item_id)
    await calculate_budget_totals(repos, budget_id)
    logger.info("budget_item_deleted", budget_id=budget_id, item_id=item_id)
    return deleted
