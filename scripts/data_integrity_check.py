import asyncio
import os
import sys
from decimal import Decimal

from sqlalchemy import select, func

sys.path.append(os.getcwd())

from rewards_api.database import AsyncSessionLocal
from rewards_api.models import Budget, BudgetItem, CompanyProduct
from rewards_api.services.budget_workflow import BudgetStatus


async def main():
    async with AsyncSessionLocal() as db:
        print("Starting Database Integrity Check...")
        print("=" * 60)
        problems = 0

        # 1. Persisted totals vs. line items
        print("\n[1] Checking budget totals against their items...")
        budgets = (await db.execute(select(Budget))).scalars().all()
        drifted = []
        for b in budgets:
            items = (
                await db.execute(select(BudgetItem).where(BudgetItem.budget_id == b.id))
            ).scalars().all()
            price = sum((Decimal(i.qty) * i.unit_price for i in items), Decimal("0"))
            points = sum((Decimal(i.qty) * i.unit_points for i in items), Decimal("0"))
            if price != b.total_price or points != b.total_points or len(items) != b.item_count:
                drifted.append(b)
        if drifted:
            problems += len(drifted)
            print(f"❌ Found {len(drifted)} budgets whose totals drifted from their items:")
            for b in drifted:
                print(f"   - {b.title} (ID: {b.id})")
        else:
            print("✅ All budget totals match their items.")

        # 2. Replicated budgets must have every item in the company catalog
        print("\n[2] Checking replicated budgets against company catalogs...")
        incomplete = []
        for b in budgets:
            if b.status != BudgetStatus.REPLICATED.value:
                continue
            missing = (
                await db.execute(
                    select(BudgetItem.base_product_id)
                    .where(BudgetItem.budget_id == b.id)
                    .where(
                        ~select(CompanyProduct.id)
                        .where(
                            CompanyProduct.company_id == b.company_id,
                            CompanyProduct.base_product_id == BudgetItem.base_product_id,
                        )
                        .exists()
                    )
                )
            ).scalars().all()
            if missing or b.replicated_at is None:
                incomplete.append((b, missing))
        if incomplete:
            problems += len(incomplete)
            print(f"❌ Found {len(incomplete)} replicated budgets with gaps:")
            for b, missing in incomplete:
                print(f"   - {b.title} (ID: {b.id}) missing: {', '.join(missing) or 'replicated_at'}")
        else:
            print("✅ All replicated budgets are fully present in their company catalogs.")

        # 3. One company product per (company, base product)
        print("\n[3] Checking for duplicate company products...")
        stmt = (
            select(CompanyProduct.company_id, CompanyProduct.base_product_id, func.count(CompanyProduct.id))
            .group_by(CompanyProduct.company_id, CompanyProduct.base_product_id)
            .having(func.count(CompanyProduct.id) > 1)
        )
        dupes = (await db.execute(stmt)).all()
        if dupes:
            problems += len(dupes)
            print(f"❌ Found duplicate company products: {dupes}")
        else:
            print("✅ No duplicate company products found.")

        print("\n" + "=" * 60)
        print(f"Integrity check finished with {problems} problem(s).")
        return problems


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(main()) else 0)
