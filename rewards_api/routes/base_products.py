from fastapi import APIRouter, Depends, Query, status

from rewards_api.middleware.repositories import get_repositories
from rewards_api.models.product import BaseProduct
from rewards_api.repositories.base import Repositories
from rewards_api.schemas.common import PaginatedResponse, build_pagination, paginate
from rewards_api.schemas.product import BaseProductCreate, BaseProductResponse
from rewards_api.services import catalog_service

router = APIRouter()


def _to_response(p: BaseProduct) -> BaseProductResponse:
    return BaseProductResponse(
        id=str(p.id),
        name=p.name,
        description=p.description,
        sku=p.sku,
        category=p.category,
        image_url=p.image_url,
        price=float(p.price or 0),
        points_cost=float(p.points_cost or 0),
        stock_quantity=p.stock_quantity or 0,
        is_active=bool(p.is_active),
        created_at=p.created_at.isoformat() if p.created_at else "",
        updated_at=p.updated_at.isoformat() if p.updated_at else "",
    )


@router.get("", response_model=PaginatedResponse[BaseProductResponse])
async def list_base_products(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=200),
    category: str = Query(None),
    search: str = Query(None),
    repos: Repositories = Depends(get_repositories),
):
    products = await catalog_service.list_base_products(repos, category=category, search=search)
    data = [_to_response(p) for p in paginate(products, page, limit)]
    return PaginatedResponse(data=data, pagination=build_pagination(page, limit, len(products)))


@router.get("/{product_id}", response_model=BaseProductResponse)
async def get_base_product(product_id: str, repos: Repositories = Depends(get_repositories)):
    return _to_response(await catalog_service.get_base_product(repos, product_id))


@router.post("", response_model=BaseProductResponse, status_code=status.HTTP_201_CREATED)
async def create_base_product(
    body: BaseProductCreate,
    repos: Repositories = Depends(get_repositories),
):
    data = body.model_dump()
    product = await catalog_service.create_base_product(
        repos,
        name=data.pop("name"),
        category=data.pop("category"),
        price=data.pop("price"),
        points_cost=data.pop("points_cost"),
        stock_quantity=data.pop("stock_quantity"),
        **data,
    )
    return _to_response(product)
