"""
Replication engine — turns a base product into a company-scoped product.

Create-or-update keyed on (company_id, base_product_id):

  * no company product yet           → create  (status "created")
  * an override differs from storage → update  (status "updated")
  * everything already matches       → no write (status "skipped")

The skip path is what makes retries after a partial failure safe. Dry runs
walk the same decision tree without calling the upsert. The engine never
writes replication logs; callers decide how an outcome is recorded.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import structlog

from rewards_api.database import new_id
from rewards_api.exceptions import ValidationError
from rewards_api.models.product import BaseProduct, CompanyProduct
from rewards_api.repositories.base import Repositories
from rewards_api.services.budget_service import to_money

logger = structlog.get_logger()

BASE_PRODUCT_NOT_FOUND = "BASE_PRODUCT_NOT_FOUND"
WRITE_FAILED = "WRITE_FAILED"


class ReplicationStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class ReplicationOverrides:
    price: Optional[Decimal] = None
    points_cost: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    is_active: Optional[bool] = None

    def values(self) -> dict[str, Any]:
        """Only the overrides that were actually supplied, at their stored scale."""
        provided: dict[str, Any] = {}
        if self.price is not None:
            provided["price"] = to_money(self.price, "price")
        if self.points_cost is not None:
            provided["points_cost"] = to_money(self.points_cost, "points_cost")
        if self.stock_quantity is not None:
            provided["stock_quantity"] = int(self.stock_quantity)
        if self.is_active is not None:
            provided["is_active"] = bool(self.is_active)
        return provided


@dataclass
class ReplicationResult:
    base_product_id: str
    company_id: str
    status: ReplicationStatus
    error: Optional[str] = None
    company_product_id: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != ReplicationStatus.ERROR

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _new_company_product(
    base: BaseProduct,
    company_id: str,
    actor_id: Optional[str],
    now: datetime,
    record_id: Optional[str],
) -> CompanyProduct:
    return CompanyProduct(
        id=record_id,
        company_id=company_id,
        base_product_id=base.id,
        name=base.name,
        description=base.description,
        sku=base.sku,
        category=base.category,
        image_url=base.image_url,
        price=base.price,
        points_cost=base.points_cost,
        stock_quantity=base.stock_quantity,
        is_active=True,
        created_by=actor_id,
        updated_by=actor_id,
        created_at=now,
        updated_at=now,
    )


def _copy_company_product(record: CompanyProduct) -> CompanyProduct:
    return CompanyProduct(
        **{key: getattr(record, key) for key in CompanyProduct.__table__.columns.keys()}
    )


async def replicate_product(
    repos: Repositories,
    base_product_id: str,
    company_id: str,
    overrides: Optional[ReplicationOverrides] = None,
    actor_id: Optional[str] = None,
    dry_run: bool = False,
    staged: Optional[dict] = None,
) -> ReplicationResult:
    """
    Create or update the company product for one base product.

    A missing base product is reported through the result, not raised, so a
    batch caller can carry on with the remaining items. The stored record is
    never touched before the upsert succeeds.

    ``staged`` lets a dry-run batch see its own would-be writes: records it
    would have written are kept there, keyed on (company_id, base_product_id),
    and consulted before storage.
    """
    if not company_id:
        raise ValidationError("company_id is required", field="company_id")

    base = await repos.base_products.get_base_product_by_id(base_product_id)
    if base is None:
        return ReplicationResult(
            base_product_id=base_product_id,
            company_id=company_id,
            status=ReplicationStatus.ERROR,
            error=f"base product not found: {base_product_id}",
            error_code=BASE_PRODUCT_NOT_FOUND,
        )

    values = (overrides or ReplicationOverrides()).values()
    key = (company_id, base_product_id)
    if staged is not None and key in staged:
        existing = staged[key]
    else:
        existing = await repos.company_products.get_company_product(company_id, base_product_id)
    now = datetime.utcnow()

    if existing is None:
        record = _new_company_product(
            base, company_id, actor_id, now, record_id=None if dry_run else new_id()
        )
        for field_name, value in values.items():
            setattr(record, field_name, value)
        status = ReplicationStatus.CREATED
    else:
        changes = {k: v for k, v in values.items() if getattr(existing, k) != v}
        if not changes:
            return ReplicationResult(
                base_product_id, company_id, ReplicationStatus.SKIPPED,
                company_product_id=existing.id,
            )
        record = _copy_company_product(existing)
        for field_name, value in changes.items():
            setattr(record, field_name, value)
        record.updated_by = actor_id
        record.updated_at = now
        status = ReplicationStatus.UPDATED

    if dry_run:
        if staged is not None:
            staged[key] = record
        return ReplicationResult(base_product_id, company_id, status, company_product_id=record.id)

    try:
        saved = await repos.company_products.upsert_company_product(record)
    except Exception as exc:
        logger.error(
            "company_product_write_failed",
            base_product_id=base_product_id,
            company_id=company_id,
            error=str(exc),
        )
        return ReplicationResult(
            base_product_id, company_id, ReplicationStatus.ERROR,
            error=f"write failed: {exc}", error_code=WRITE_FAILED,
        )

    logger.info(
        "product_replicated",
        base_product_id=base_product_id,
        company_id=company_id,
        company_product_id=saved.id,
        status=status.value,
    )
    return ReplicationResult(base_product_id, company_id, status, company_product_id=saved.id)
