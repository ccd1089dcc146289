"""Replication log service — append-only audit trail of replication runs."""

from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

import structlog

from rewards_api.config import settings
from rewards_api.database import new_id
from rewards_api.exceptions import ValidationError
from rewards_api.models.replication_log import ReplicationLog
from rewards_api.repositories.base import Repositories
from rewards_api.services.replication_service import ReplicationResult, ReplicationStatus

logger = structlog.get_logger()


class ReplicationAction(str, Enum):
    REPLICATE_BUDGET = "replicate_budget"
    REPLICATE_SINGLE = "replicate_single"


class ReplicationLogStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def summarize_results(
    results: Sequence[ReplicationResult], errors: Sequence[str], total: Optional[int] = None
) -> dict:
    """Count outcomes. ``total`` defaults to successes plus failures."""
    return {
        "total": total if total is not None else len(results) + len(errors),
        "created": sum(1 for r in results if r.status == ReplicationStatus.CREATED),
        "updated": sum(1 for r in results if r.status == ReplicationStatus.UPDATED),
        "skipped": sum(1 for r in results if r.status == ReplicationStatus.SKIPPED),
        "failed": len(errors),
    }


def _log_status(results: Sequence[ReplicationResult], errors: Sequence[str]) -> ReplicationLogStatus:
    if not errors:
        return ReplicationLogStatus.SUCCESS
    if results:
        return ReplicationLogStatus.PARTIAL
    return ReplicationLogStatus.FAILED


async def create_replication_log(
    repos: Repositories,
    company_id: str,
    actor_id: Optional[str],
    action: ReplicationAction,
    results: Sequence[ReplicationResult],
    errors: Sequence[str] = (),
    budget_id: Optional[str] = None,
    base_product_id: Optional[str] = None,
    dry_run: bool = False,
    total: Optional[int] = None,
    source: Optional[str] = None,
) -> ReplicationLog:
    """
    Append one log entry for a replication invocation.

    Budget runs carry ``budget_id``; single-product runs carry
    ``base_product_id`` instead.
    """
    if action == ReplicationAction.REPLICATE_BUDGET and not budget_id:
        raise ValidationError("budget_id is required for budget replication logs")
    if action == ReplicationAction.REPLICATE_SINGLE and not base_product_id:
        raise ValidationError("base_product_id is required for single replication logs")

    entry = ReplicationLog(
        id=new_id(),
        budget_id=budget_id,
        company_id=company_id,
        base_product_id=base_product_id,
        actor_id=actor_id or settings.DEFAULT_ACTOR_ID,
        action=action.value,
        status=_log_status(results, errors).value,
        results=[r.to_dict() for r in results],
        errors=list(errors) or None,
        summary=summarize_results(results, errors, total),
        extra_metadata={
            "dry_run": dry_run,
            "source": source or settings.REPLICATION_SOURCE,
        },
        created_at=datetime.utcnow(),
    )
    log = await repos.logs.create_log(entry)

    logger.info(
        "replication_log_created",
        log_id=log.id,
        action=entry.action,
        status=entry.status,
        budget_id=budget_id,
        company_id=company_id,
        dry_run=dry_run,
    )
    return log


async def list_replication_logs(
    repos: Repositories,
    budget_id: Optional[str] = None,
    company_id: Optional[str] = None,
) -> list[ReplicationLog]:
    if budget_id:
        return await repos.logs.list_logs_by_budget(budget_id)
    if company_id:
        return await repos.logs.list_logs_by_company(company_id)
    return await repos.logs.list_logs()
