from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from rewards_api.middleware.repositories import get_repositories
from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.repositories.base import Repositories
from rewards_api.schemas.budget import (
    BudgetCreate,
    BudgetItemCreate,
    BudgetItemResponse,
    BudgetItemUpdate,
    BudgetResponse,
    BudgetUpdate,
)
from rewards_api.schemas.common import PaginatedResponse, build_pagination, paginate
from rewards_api.services import budget_service
from rewards_api.services.budget_workflow import is_valid_transition, request_transition

logger = structlog.get_logger()
router = APIRouter()


def _iso(value) -> str:
    return value.isoformat() if value else ""


def _item_response(i: BudgetItem) -> BudgetItemResponse:
    return BudgetItemResponse(
        id=str(i.id),
        budget_id=str(i.budget_id),
        base_product_id=str(i.base_product_id),
        qty=i.qty,
        unit_price=float(i.unit_price or 0),
        unit_points=float(i.unit_points or 0),
        position=i.position or 0,
        created_at=_iso(i.created_at),
        updated_at=_iso(i.updated_at),
    )


def _to_response(b: Budget, items: Optional[list[BudgetItem]] = None) -> BudgetResponse:
    return BudgetResponse(
        id=str(b.id),
        company_id=b.company_id,
        title=b.title,
        description=b.description,
        status=b.status,
        total_price=float(b.total_price or 0),
        total_points=float(b.total_points or 0),
        item_count=b.item_count or 0,
        created_by=b.created_by,
        updated_by=b.updated_by,
        created_at=_iso(b.created_at),
        updated_at=_iso(b.updated_at),
        replicated_at=b.replicated_at.isoformat() if b.replicated_at else None,
        items=[_item_response(i) for i in items or []],
    )


@router.get("", response_model=PaginatedResponse[BudgetResponse])
async def list_budgets(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    company_id: str = Query(None),
    status_filter: str = Query(None, alias="status"),
    repos: Repositories = Depends(get_repositories),
):
    budgets = await budget_service.list_budgets(repos, company_id=company_id, status=status_filter)
    data = [_to_response(b) for b in paginate(budgets, page, limit)]
    return PaginatedResponse(data=data, pagination=build_pagination(page, limit, len(budgets)))


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(budget_id: str, repos: Repositories = Depends(get_repositories)):
    budget, items = await budget_service.get_budget_with_items(repos, budget_id)
    return _to_response(budget, items)


@router.post("", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(body: BudgetCreate, repos: Repositories = Depends(get_repositories)):
    budget = await budget_service.create_budget(
        repos,
        company_id=body.company_id,
        title=body.title,
        created_by=body.created_by,
        description=body.description,
        items=[item.model_dump() for item in body.items],
    )
    items = await repos.items.list_items_by_budget(budget.id)
    return _to_response(budget, items)


@router.patch("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: str,
    body: BudgetUpdate,
    repos: Repositories = Depends(get_repositories),
):
    budget, _ = await budget_service.get_budget_with_items(repos, budget_id)

    # Reject illegal moves before touching the workflow
    if body.status is not None and not is_valid_transition(budget.status, body.status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_TRANSITION",
                "message": f"Invalid transition: {budget.status} -> {body.status}",
            },
        )

    updated = await request_transition(
        repos,
        budget_id,
        body.status,
        body.updated_by,
        title=body.title,
        description=body.description,
    )
    items = await repos.items.list_items_by_budget(budget_id)
    return _to_response(updated, items)


@router.post(
    "/{budget_id}/items",
    response_model=BudgetItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    budget_id: str,
    body: BudgetItemCreate,
    repos: Repositories = Depends(get_repositories),
):
    item = await budget_service.add_budget_item(
        repos,
        budget_id,
        body.base_product_id,
        qty=body.qty,
        unit_price=body.unit_price,
        unit_points=body.unit_points,
    )
    return _item_response(item)


@router.patch("/{budget_id}/items/{item_id}", response_model=BudgetItemResponse)
async def update_item(
    budget_id: str,
    item_id: str,
    body: BudgetItemUpdate,
    repos: Repositories = Depends(get_repositories),
):
    item = await budget_service.update_budget_item(
        repos,
        budget_id,
        item_id,
        qty=body.qty,
        unit_price=body.unit_price,
        unit_points=body.unit_points,
    )
    return _item_response(item)


@router.delete("/{budget_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    budget_id: str,
    item_id: str,
    repos: Repositories = Depends(get_repositories),
):
    await budget_service.delete_budget_item(repos, budget_id, item_id)
