"""
SQLAlchemy-backed repositories.

Every repository works on the caller's session and only flushes; the
request dependency (middleware/repositories.py) owns commit and rollback.
"""

from contextlib import asynccontextmanager
from typing import Optional, Sequence

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.models.product import BaseProduct, CompanyProduct
from rewards_api.models.replication_log import ReplicationLog
from rewards_api.repositories.base import Repositories


@asynccontextmanager
async def _savepoint(session: AsyncSession):
    # A failed write inside must not poison the outer transaction. SQLite
    # drivers do not run SAVEPOINT reliably, so there the flush is plain.
    if session.get_bind().dialect.name == "sqlite":
        yield
        await session.flush()
        return
    async with session.begin_nested():
        yield


async def _apply_patch(session: AsyncSession, record, patch: dict):
    for key, value in patch.items():
        setattr(record, key, value)
    await session.flush()
    return record


class SqlBudgetRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_budget(self, budget_id: str, for_update: bool = False) -> Optional[Budget]:
        q = select(Budget).where(Budget.id == budget_id)
        if for_update:
            q = q.with_for_update()
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def list_budgets(
        self, company_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[Budget]:
        q = select(Budget)
        if company_id:
            q = q.where(Budget.company_id == company_id)
        if status:
            q = q.where(Budget.status == status)
        result = await self.session.execute(q.order_by(Budget.created_at.desc()))
        return list(result.scalars().all())

    async def save_budget(self, budget: Budget) -> Budget:
        merged = await self.session.merge(budget)
        await self.session.flush()
        return merged

    async def update_budget(self, budget_id: str, patch: dict) -> Optional[Budget]:
        budget = await self.get_budget(budget_id)
        if budget is None:
            return None
        return await _apply_patch(self.session, budget, patch)


class SqlBudgetItemRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_items_by_budget(self, budget_id: str) -> list[BudgetItem]:
        result = await self.session.execute(
            select(BudgetItem)
            .where(BudgetItem.budget_id == budget_id)
            .order_by(BudgetItem.position, BudgetItem.created_at, BudgetItem.id)
        )
        return list(result.scalars().all())

    async def get_item(self, item_id: str) -> Optional[BudgetItem]:
        result = await self.session.execute(select(BudgetItem).where(BudgetItem.id == item_id))
        return result.scalar_one_or_none()

    async def create_item(self, item: BudgetItem) -> BudgetItem:
        self.session.add(item)
        await self.session.flush()
        return item

    async def update_item(self, item_id: str, patch: dict) -> Optional[BudgetItem]:
        item = await self.get_item(item_id)
        if item is None:
            return None
        return await _apply_patch(self.session, item, patch)

    async def delete_item(self, item_id: str) -> bool:
        item = await self.get_item(item_id)
        if item is None:
            return False
        await self.session.delete(item)
        await self.session.flush()
        return True

    async def save_all_items(self, items: Sequence[BudgetItem]) -> list[BudgetItem]:
        merged = [await self.session.merge(item) for item in items]
        await self.session.flush()
        return merged


class SqlBaseProductRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_base_product_by_id(self, product_id: str) -> Optional[BaseProduct]:
        result = await self.session.execute(select(BaseProduct).where(BaseProduct.id == product_id))
        return result.scalar_one_or_none()

    async def list_base_products(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> list[BaseProduct]:
        q = select(BaseProduct)
        if category and category != "all":
            q = q.where(BaseProduct.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            q = q.where(
                or_(
                    BaseProduct.name.ilike(pattern),
                    BaseProduct.description.ilike(pattern),
                )
            )
        result = await self.session.execute(q.order_by(BaseProduct.name))
        return list(result.scalars().all())

    async def create_base_product(self, product: BaseProduct) -> BaseProduct:
        self.session.add(product)
        await self.session.flush()
        return product


class SqlCompanyProductRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_company_products_by_company(self, company_id: str) -> list[CompanyProduct]:
        result = await self.session.execute(
            select(CompanyProduct)
            .where(CompanyProduct.company_id == company_id)
            .order_by(CompanyProduct.created_at)
        )
        return list(result.scalars().all())

    async def get_company_product(
        self, company_id: str, base_product_id: str
    ) -> Optional[CompanyProduct]:
        result = await self.session.execute(
            select(CompanyProduct).where(
                CompanyProduct.company_id == company_id,
                CompanyProduct.base_product_id == base_product_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_company_product(self, record: CompanyProduct) -> CompanyProduct:
        existing = await self.get_company_product(record.company_id, record.base_product_id)
        if existing is not None and existing is not record:
            record.id = existing.id
        async with _savepoint(self.session):
            merged = await self.session.merge(record)
        return merged


class SqlReplicationLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_log(self, entry: ReplicationLog) -> ReplicationLog:
        async with _savepoint(self.session):
            self.session.add(entry)
        return entry

    async def _list(self, *criteria) -> list[ReplicationLog]:
        q = select(ReplicationLog)
        if criteria:
            q = q.where(*criteria)
        result = await self.session.execute(q.order_by(ReplicationLog.created_at.desc()))
        return list(result.scalars().all())

    async def list_logs(self) -> list[ReplicationLog]:
        return await self._list()

    async def list_logs_by_budget(self, budget_id: str) -> list[ReplicationLog]:
        return await self._list(ReplicationLog.budget_id == budget_id)

    async def list_logs_by_company(self, company_id: str) -> list[ReplicationLog]:
        return await self._list(ReplicationLog.company_id == company_id)


def build_sql_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        budgets=SqlBudgetRepository(session),
        items=SqlBudgetItemRepository(session),
        base_products=SqlBaseProductRepository(session),
        company_products=SqlCompanyProductRepository(session),
        logs=SqlReplicationLogRepository(session),
    )
