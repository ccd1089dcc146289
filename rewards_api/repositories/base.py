"""
Repository contracts consumed by the budget and replication services.

Services never reach for a global store; they receive a ``Repositories``
bundle and talk to one collection per entity through these protocols.
Both the in-process store (``repositories.memory``) and the SQLAlchemy
implementation (``repositories.sql``) satisfy them.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.models.product import BaseProduct, CompanyProduct
from rewards_api.models.replication_log import ReplicationLog


@runtime_checkable
class BudgetRepository(Protocol):
    async def get_budget(self, budget_id: str, for_update: bool = False) -> Optional[Budget]: ...

    async def list_budgets(
        self, company_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[Budget]: ...

    async def save_budget(self, budget: Budget) -> Budget: ...

    async def update_budget(self, budget_id: str, patch: dict) -> Optional[Budget]: ...


@runtime_checkable
class BudgetItemRepository(Protocol):
    async def list_items_by_budget(self, budget_id: str) -> list[BudgetItem]: ...

    async def get_item(self, item_id: str) -> Optional[BudgetItem]: ...

    async def create_item(self, item: BudgetItem) -> BudgetItem: ...

    async def update_item(self, item_id: str, patch: dict) -> Optional[BudgetItem]: ...

    async def delete_item(self, item_id: str) -> bool: ...

    async def save_all_items(self, items: Sequence[BudgetItem]) -> list[BudgetItem]: ...


@runtime_checkable
class BaseProductRepository(Protocol):
    async def get_base_product_by_id(self, product_id: str) -> Optional[BaseProduct]: ...

    async def list_base_products(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> list[BaseProduct]: ...

    async def create_base_product(self, product: BaseProduct) -> BaseProduct: ...


@runtime_checkable
class CompanyProductRepository(Protocol):
    async def get_company_products_by_company(self, company_id: str) -> list[CompanyProduct]: ...

    async def get_company_product(
        self, company_id: str, base_product_id: str
    ) -> Optional[CompanyProduct]: ...

    async def upsert_company_product(self, record: CompanyProduct) -> CompanyProduct: ...


@runtime_checkable
class ReplicationLogRepository(Protocol):
    async def create_log(self, entry: ReplicationLog) -> ReplicationLog: ...

    async def list_logs(self) -> list[ReplicationLog]: ...

    async def list_logs_by_budget(self, budget_id: str) -> list[ReplicationLog]: ...

    async def list_logs_by_company(self, company_id: str) -> list[ReplicationLog]: ...


@dataclass
class Repositories:
    budgets: BudgetRepository
    items: BudgetItemRepository
    base_products: BaseProductRepository
    company_products: CompanyProductRepository
    logs: ReplicationLogRepository
