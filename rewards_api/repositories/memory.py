"""
In-process key-value store and the repositories built on top of it.

Each entity lives in its own named collection (``budgets``, ``budget_items``
...). Insertion order is preserved, which is what gives budget items their
fixed processing order when positions tie.
"""

from datetime import datetime
from typing import Any, Optional, Sequence

from rewards_api.database import new_id
from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.models.product import BaseProduct, CompanyProduct
from rewards_api.models.replication_log import ReplicationLog
from rewards_api.repositories.base import Repositories


class InMemoryStore:
    def __init__(self):
        self._collections: dict[str, dict[str, Any]] = {}

    def _collection(self, name: str) -> dict[str, Any]:
        return self._collections.setdefault(name, {})

    def get(self, collection: str, key: str) -> Optional[Any]:
        return self._collection(collection).get(key)

    def set(self, collection: str, key: str, value: Any) -> Any:
        self._collection(collection)[key] = value
        return value

    def delete(self, collection: str, key: str) -> bool:
        return self._collection(collection).pop(key, None) is not None

    def list(self, collection: str) -> list[Any]:
        return list(self._collection(collection).values())

    def clear(self):
        self._collections.clear()


def _stamp_new(record: Any) -> Any:
    now = datetime.utcnow()
    if not record.id:
        record.id = new_id()
    if getattr(record, "created_at", None) is None:
        record.created_at = now
    if hasattr(record, "updated_at") and record.updated_at is None:
        record.updated_at = now
    return record


def _apply_patch(record: Any, patch: dict) -> Any:
    for key, value in patch.items():
        setattr(record, key, value)
    if hasattr(record, "updated_at") and "updated_at" not in patch:
        record.updated_at = datetime.utcnow()
    return record


class MemoryBudgetRepository:
    collection = "budgets"

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_budget(self, budget_id: str, for_update: bool = False) -> Optional[Budget]:
        return self.store.get(self.collection, budget_id)

    async def list_budgets(
        self, company_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[Budget]:
        budgets = self.store.list(self.collection)
        if company_id:
            budgets = [b for b in budgets if b.company_id == company_id]
        if status:
            budgets = [b for b in budgets if b.status == status]
        return budgets

    async def save_budget(self, budget: Budget) -> Budget:
        _stamp_new(budget)
        return self.store.set(self.collection, budget.id, budget)

    async def update_budget(self, budget_id: str, patch: dict) -> Optional[Budget]:
        budget = self.store.get(self.collection, budget_id)
        if budget is None:
            return None
        return _apply_patch(budget, patch)


class MemoryBudgetItemRepository:
    collection = "budget_items"

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_items_by_budget(self, budget_id: str) -> list[BudgetItem]:
        items = [i for i in self.store.list(self.collection) if i.budget_id == budget_id]
        return sorted(items, key=lambda i: i.position or 0)

    async def get_item(self, item_id: str) -> Optional[BudgetItem]:
        return self.store.get(self.collection, item_id)

    async def create_item(self, item: BudgetItem) -> BudgetItem:
        _stamp_new(item)
        return self.store.set(self.collection, item.id, item)

    async def update_item(self, item_id: str, patch: dict) -> Optional[BudgetItem]:
        item = self.store.get(self.collection, item_id)
        if item is None:
            return None
        return _apply_patch(item, patch)

    async def delete_item(self, item_id: str) -> bool:
        return self.store.delete(self.collection, item_id)

    async def save_all_items(self, items: Sequence[BudgetItem]) -> list[BudgetItem]:
        return [self.store.set(self.collection, i.id, _stamp_new(i)) for i in items]


class MemoryBaseProductRepository:
    collection = "base_products"

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_base_product_by_id(self, product_id: str) -> Optional[BaseProduct]:
        return self.store.get(self.collection, product_id)

    async def list_base_products(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> list[BaseProduct]:
        products = self.store.list(self.collection)
        if category and category != "all":
            products = [p for p in products if p.category == category]
        if search:
            needle = search.lower()
            products = [
                p for p in products
                if needle in p.name.lower() or needle in (p.description or "").lower()
            ]
        return sorted(products, key=lambda p: p.name)

    async def create_base_product(self, product: BaseProduct) -> BaseProduct:
        _stamp_new(product)
        return self.store.set(self.collection, product.id, product)


class MemoryCompanyProductRepository:
    collection = "company_products"

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_company_products_by_company(self, company_id: str) -> list[CompanyProduct]:
        return [p for p in self.store.list(self.collection) if p.company_id == company_id]

    async def get_company_product(
        self, company_id: str, base_product_id: str
    ) -> Optional[CompanyProduct]:
        for product in self.store.list(self.collection):
            if product.company_id == company_id and product.base_product_id == base_product_id:
                return product
        return None

    async def upsert_company_product(self, record: CompanyProduct) -> CompanyProduct:
        existing = await self.get_company_product(record.company_id, record.base_product_id)
        if existing is not None and existing.id != record.id:
            # Keyed on (company_id, base_product_id), never a second row
            record.id = existing.id
        _stamp_new(record)
        return self.store.set(self.collection, record.id, record)


class MemoryReplicationLogRepository:
    collection = "replication_logs"

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create_log(self, entry: ReplicationLog) -> ReplicationLog:
        _stamp_new(entry)
        return self.store.set(self.collection, entry.id, entry)

    async def list_logs(self) -> list[ReplicationLog]:
        return list(reversed(self.store.list(self.collection)))

    async def list_logs_by_budget(self, budget_id: str) -> list[ReplicationLog]:
        return [log for log in await self.list_logs() if log.budget_id == budget_id]

    async def list_logs_by_company(self, company_id: str) -> list[ReplicationLog]:
        return [log for log in await self.list_logs() if log.company_id == company_id]


def build_memory_repositories(store: Optional[InMemoryStore] = None) -> Repositories:
    store = store if store is not None else InMemoryStore()
    return Repositories(
        budgets=MemoryBudgetRepository(store),
        items=MemoryBudgetItemRepository(store),
        base_products=MemoryBaseProductRepository(store),
        company_products=MemoryCompanyProductRepository(store),
        logs=MemoryReplicationLogRepository(store),
    )


# Process-wide store behind STORAGE_BACKEND=memory
default_store = InMemoryStore()
