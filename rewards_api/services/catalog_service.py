"""Catalog service — platform base products and company catalogs."""

from datetime import datetime
from typing import Any, Optional

import structlog

from rewards_api.database import new_id
from rewards_api.exceptions import NotFoundError, ValidationError
from rewards_api.models.product import BaseProduct, CompanyProduct
from rewards_api.repositories.base import Repositories
from rewards_api.services.budget_service import to_money

logger = structlog.get_logger()


async def create_base_product(
    repos: Repositories,
    name: Optional[str],
    category: Optional[str],
    price: Any = 0,
    points_cost: Any = 0,
    stock_quantity: int = 0,
    **fields,
) -> BaseProduct:
    if not name or not category:
        raise ValidationError("name and category are required")
    price, points_cost = to_money(price, "price"), to_money(points_cost, "points_cost")
    if price < 0 or points_cost < 0 or stock_quantity < 0:
        raise ValidationError("price, points_cost and stock_quantity must be >= 0")

    now = datetime.utcnow()
    product = await repos.base_products.create_base_product(
        BaseProduct(
            id=new_id(),
            name=name,
            category=category,
            description=fields.get("description"),
            sku=fields.get("sku"),
            image_url=fields.get("image_url"),
            price=price,
            points_cost=points_cost,
            stock_quantity=stock_quantity,
            is_active=fields.get("is_active", True),
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("base_product_created", product_id=product.id, category=category)
    return product


async def get_base_product(repos: Repositories, product_id: str) -> BaseProduct:
    product = await repos.base_products.get_base_product_by_id(product_id)
    if product is None:
        raise NotFoundError("Base product", product_id)
    return product


async def list_base_products(
    repos: Repositories, category: Optional[str] = None, search: Optional[str] = None
) -> list[BaseProduct]:
    return await repos.base_products.list_base_products(category=category, search=search)


async def list_company_products(repos: Repositories, company_id: str) -> list[CompanyProduct]:
    if not company_id:
        raise ValidationError("company_id is required", field="company_id")
    return await repos.company_products.get_company_products_by_company(company_id)
