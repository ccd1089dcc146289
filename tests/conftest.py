import os

# Settings are read once at import time
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from decimal import Decimal
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from rewards_api.main import app
from rewards_api.middleware.repositories import get_repositories
from rewards_api.models.product import BaseProduct
from rewards_api.repositories.memory import InMemoryStore, build_memory_repositories
from rewards_api.services.budget_service import create_budget
from rewards_api.services.budget_workflow import BudgetStatus, mark_replicated, request_transition

COMPANY_ID = "company-acme"
ACTOR_ID = "admin-1"

# Shortest legal route from draft to each status
STATUS_PATHS = {
    BudgetStatus.DRAFT: [],
    BudgetStatus.SUBMITTED: [BudgetStatus.SUBMITTED],
    BudgetStatus.REVIEWED: [BudgetStatus.SUBMITTED, BudgetStatus.REVIEWED],
    BudgetStatus.APPROVED: [BudgetStatus.SUBMITTED, BudgetStatus.REVIEWED, BudgetStatus.APPROVED],
    BudgetStatus.REJECTED: [BudgetStatus.SUBMITTED, BudgetStatus.REVIEWED, BudgetStatus.REJECTED],
    BudgetStatus.RELEASED: [
        BudgetStatus.SUBMITTED,
        BudgetStatus.REVIEWED,
        BudgetStatus.APPROVED,
        BudgetStatus.RELEASED,
    ],
}


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def repos(store):
    return build_memory_repositories(store)


@pytest.fixture
def product_factory(repos):
    """Insert a base product; returns it."""

    async def _make(
        product_id: str,
        name: Optional[str] = None,
        price: str = "10",
        points_cost: str = "100",
        category: str = "merchandise",
        stock_quantity: int = 50,
    ) -> BaseProduct:
        return await repos.base_products.create_base_product(
            BaseProduct(
                id=product_id,
                name=name or f"Product {product_id}",
                description=f"Description of {product_id}",
                category=category,
                price=Decimal(price),
                points_cost=Decimal(points_cost),
                stock_quantity=stock_quantity,
                is_active=True,
            )
        )

    return _make


@pytest.fixture
def budget_factory(repos, product_factory):
    """Create a budget with items and walk it to ``status``.

    Items are (base_product_id, qty, unit_price, unit_points) tuples; missing
    base products are created on the fly.
    """

    async def _make(items=(), status: BudgetStatus = BudgetStatus.DRAFT, company_id: str = COMPANY_ID):
        for base_product_id, *_ in items:
            if await repos.base_products.get_base_product_by_id(base_product_id) is None:
                await product_factory(base_product_id)

        budget = await create_budget(
            repos,
            company_id=company_id,
            title="Quarterly rewards",
            created_by=ACTOR_ID,
            items=[
                {"base_product_id": pid, "qty": qty, "unit_price": price, "unit_points": points}
                for pid, qty, price, points in items
            ],
        )
        if status == BudgetStatus.REPLICATED:
            path = STATUS_PATHS[BudgetStatus.RELEASED]
        else:
            path = STATUS_PATHS[status]
        for step in path:
            budget = await request_transition(repos, budget.id, step, ACTOR_ID)
        if status == BudgetStatus.REPLICATED:
            budget = await mark_replicated(repos, budget.id, ACTOR_ID)
        return budget

    return _make


@pytest.fixture
async def client(repos):
    app.dependency_overrides[get_repositories] = lambda: repos
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
