from typing import Union

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
import structlog

from rewards_api.exceptions import NotFoundError
from rewards_api.middleware.repositories import get_repositories
from rewards_api.models.product import CompanyProduct
from rewards_api.models.replication_log import ReplicationLog
from rewards_api.repositories.base import Repositories
from rewards_api.schemas.common import PaginatedResponse, build_pagination, paginate
from rewards_api.schemas.product import CompanyProductResponse
from rewards_api.schemas.replication import (
    BudgetReplicationResponse,
    ReplicationLogResponse,
    ReplicationRequest,
    ReplicationResultResponse,
    ReplicationSummary,
    SingleReplicationResponse,
)
from rewards_api.services import catalog_service
from rewards_api.services.replication_log_service import list_replication_logs
from rewards_api.services.replication_orchestrator import replicate_budget, replicate_single
from rewards_api.services.replication_service import ReplicationOverrides, ReplicationResult

logger = structlog.get_logger()
router = APIRouter()


def _result_response(r: ReplicationResult) -> ReplicationResultResponse:
    return ReplicationResultResponse(
        base_product_id=r.base_product_id,
        company_id=r.company_id,
        status=r.status.value,
        company_product_id=r.company_product_id,
        error=r.error,
    )


def _log_response(log: ReplicationLog) -> ReplicationLogResponse:
    return ReplicationLogResponse(
        id=str(log.id),
        budget_id=log.budget_id,
        company_id=log.company_id,
        base_product_id=log.base_product_id,
        actor_id=log.actor_id,
        action=log.action,
        status=log.status,
        results=log.results or [],
        errors=log.errors,
        summary=ReplicationSummary(**(log.summary or {})),
        metadata=log.extra_metadata or {},
        created_at=log.created_at.isoformat() if log.created_at else "",
    )


def _company_product_response(p: CompanyProduct) -> CompanyProductResponse:
    return CompanyProductResponse(
        id=str(p.id),
        company_id=p.company_id,
        base_product_id=p.base_product_id,
        name=p.name,
        description=p.description,
        sku=p.sku,
        category=p.category,
        image_url=p.image_url,
        price=float(p.price or 0),
        points_cost=float(p.points_cost or 0),
        stock_quantity=p.stock_quantity or 0,
        is_active=bool(p.is_active),
        created_by=p.created_by,
        updated_by=p.updated_by,
        created_at=p.created_at.isoformat() if p.created_at else "",
        updated_at=p.updated_at.isoformat() if p.updated_at else "",
    )


@router.post("", response_model=Union[BudgetReplicationResponse, SingleReplicationResponse])
async def replicate(body: ReplicationRequest, repos: Repositories = Depends(get_repositories)):
    if body.is_budget_mode:
        outcome = await replicate_budget(
            repos,
            body.budget_id,
            dry_run=body.dry_run,
            actor_id=body.actor_id,
            budget_snapshot=body.budget_data,
            item_snapshots=body.budget_items,
        )
        return BudgetReplicationResponse(
            budget_id=outcome.budget_id,
            log_id=outcome.log_id,
            dry_run=outcome.dry_run,
            budget_status=outcome.budget_status,
            results=[_result_response(r) for r in outcome.results],
            errors=outcome.errors,
            warnings=outcome.warnings,
            summary=ReplicationSummary(**outcome.summary),
        )

    overrides = None
    if body.overrides is not None:
        overrides = ReplicationOverrides(**body.overrides.model_dump())
    # Error answers are returned, not raised, so the session dependency
    # still commits the replicate_single log entry
    try:
        single = await replicate_single(
            repos,
            body.base_product_id,
            body.company_id,
            overrides=overrides,
            actor_id=body.actor_id,
            dry_run=body.dry_run,
        )
    except NotFoundError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
    if not single.result.ok:
        logger.info(
            "single_replication_failed", base_product_id=body.base_product_id, log_id=single.log_id
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": {"code": "REPLICATION_FAILED", "message": single.result.error}},
        )
    return SingleReplicationResponse(
        result=_result_response(single.result),
        log_id=single.log_id,
        dry_run=single.dry_run,
        warnings=single.warnings,
    )


@router.get("/logs", response_model=PaginatedResponse[ReplicationLogResponse])
async def list_logs(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    budget_id: str = Query(None),
    company_id: str = Query(None),
    repos: Repositories = Depends(get_repositories),
):
    logs = await list_replication_logs(repos, budget_id=budget_id, company_id=company_id)
    data = [_log_response(log) for log in paginate(logs, page, limit)]
    return PaginatedResponse(data=data, pagination=build_pagination(page, limit, len(logs)))


@router.get("/company-products", response_model=list[CompanyProductResponse])
async def list_company_products(
    company_id: str = Query(..., min_length=1),
    repos: Repositories = Depends(get_repositories),
):
    products = await catalog_service.list_company_products(repos, company_id)
    return [_company_product_response(p) for p in products]
