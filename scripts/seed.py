"""
Seed script: creates the base product catalog and one released demo budget.
Run from the project root: python -m scripts.seed
"""
import asyncio
import sys
import os
from decimal import Decimal

# Ensure the project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rewards_api.database import AsyncSessionLocal, Base, engine
from rewards_api.logging_config import setup_logging
from rewards_api.models.product import BaseProduct
from rewards_api.repositories.sql import build_sql_repositories
from rewards_api.services.budget_service import create_budget
from rewards_api.services.budget_workflow import BudgetStatus, request_transition

# ---------- Fixed IDs ----------

PRODUCT_HEADPHONES_ID = "c0000000-0000-0000-0000-000000000001"
PRODUCT_GIFT_CARD_ID = "c0000000-0000-0000-0000-000000000002"
PRODUCT_MUG_ID = "c0000000-0000-0000-0000-000000000003"
PRODUCT_HOODIE_ID = "c0000000-0000-0000-0000-000000000004"

DEMO_COMPANY_ID = "acme-corp"
DEMO_ADMIN_ID = "admin@acme.example"

CATALOG = [
    (PRODUCT_HEADPHONES_ID, "Wireless Headphones", "electronics", "89.90", "900", 40),
    (PRODUCT_GIFT_CARD_ID, "Coffee Gift Card", "gift-cards", "25.00", "250", 500),
    (PRODUCT_MUG_ID, "Insulated Mug", "merchandise", "14.50", "145", 120),
    (PRODUCT_HOODIE_ID, "Company Hoodie", "merchandise", "39.00", "390", 75),
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        repos = build_sql_repositories(db)

        # Check if already seeded
        if await repos.base_products.get_base_product_by_id(PRODUCT_HEADPHONES_ID):
            print("Seed data already exists. Skipping.")
            return

        # --- Base products ---
        for product_id, name, category, price, points, stock in CATALOG:
            await repos.base_products.create_base_product(
                BaseProduct(
                    id=product_id,
                    name=name,
                    category=category,
                    price=Decimal(price),
                    points_cost=Decimal(points),
                    stock_quantity=stock,
                    is_active=True,
                )
            )

        # --- Demo budget, walked up to "released" ---
        budget = await create_budget(
            repos,
            company_id=DEMO_COMPANY_ID,
            title="Q4 recognition awards",
            created_by=DEMO_ADMIN_ID,
            description="Quarterly rewards for the engineering team",
            items=[
                {"base_product_id": PRODUCT_HEADPHONES_ID, "qty": 5, "unit_price": "89.90", "unit_points": "900"},
                {"base_product_id": PRODUCT_GIFT_CARD_ID, "qty": 20, "unit_price": "25.00", "unit_points": "250"},
                {"base_product_id": PRODUCT_HOODIE_ID, "qty": 10, "unit_price": "39.00", "unit_points": "390"},
            ],
        )
        for step in (
            BudgetStatus.SUBMITTED,
            BudgetStatus.REVIEWED,
            BudgetStatus.APPROVED,
            BudgetStatus.RELEASED,
        ):
            await request_transition(repos, budget.id, step, DEMO_ADMIN_ID)

        await db.commit()
        print("Seed data inserted successfully!")
        print(f"  Base products: {len(CATALOG)}")
        print(f"  Budgets: 1 (released, id={budget.id})")


if __name__ == "__main__":
    # Service events would drown the summary below
    setup_logging("WARNING")
    asyncio.run(seed())
