"""
Replication orchestrator — drives a released budget into the company catalog.

Per run:
  1. reconcile caller-supplied snapshots (caller wins, lifecycle fields excluded)
  2. require status "released" and at least one item
  3. replicate every item in repository order, continuing past failures
  4. write exactly one replication log (a failed write is reported, not raised)
  5. advance to "replicated" only when nothing failed and it is not a dry run
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog

from rewards_api.config import settings
from rewards_api.database import new_id
from rewards_api.exceptions import (
    BudgetNotReleasedError,
    NoItemsError,
    NotFoundError,
    ValidationError,
)
from rewards_api.models.budget import Budget, BudgetItem
from rewards_api.repositories.base import Repositories
from rewards_api.services.budget_service import to_money, validate_item_values
from rewards_api.services.budget_workflow import BudgetStatus, mark_replicated
from rewards_api.services.replication_log_service import (
    ReplicationAction,
    create_replication_log,
    summarize_results,
)
from rewards_api.services.replication_service import (
    BASE_PRODUCT_NOT_FOUND,
    ReplicationOverrides,
    ReplicationResult,
    replicate_product,
)

logger = structlog.get_logger()

# Never taken from a caller snapshot
PROTECTED_BUDGET_FIELDS = frozenset(
    {"id", "company_id", "status", "replicated_at", "created_at", "created_by"}
)
SNAPSHOT_BUDGET_FIELDS = frozenset(
    {"title", "description", "updated_by", "total_price", "total_points", "item_count"}
)
SNAPSHOT_ITEM_FIELDS = frozenset(
    {"base_product_id", "qty", "unit_price", "unit_points", "position"}
)

# Entries vanish once no run holds or awaits the lock
_budget_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _budget_lock(budget_id: str) -> asyncio.Lock:
    lock = _budget_locks.get(budget_id)
    if lock is None:
        lock = asyncio.Lock()
        _budget_locks[budget_id] = lock
    return lock


@dataclass
class BudgetReplicationOutcome:
    budget_id: str
    dry_run: bool
    results: list[ReplicationResult]
    errors: list[str]
    summary: dict
    log_id: Optional[str] = None
    budget_status: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class SingleReplicationOutcome:
    result: ReplicationResult
    dry_run: bool
    log_id: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


def _copy_item(item: BudgetItem) -> BudgetItem:
    return BudgetItem(**{key: getattr(item, key) for key in BudgetItem.__table__.columns.keys()})


async def reconcile_snapshots(
    repos: Repositories,
    budget: Budget,
    budget_snapshot: Optional[dict] = None,
    item_snapshots: Optional[list[dict]] = None,
    persist: bool = True,
) -> list[BudgetItem]:
    """
    Last-write-wins merge of caller snapshots onto the stored budget.

    The caller's copy wins for content fields. Lifecycle fields (status,
    replicated_at, ...) always come from storage, so a snapshot can never move
    a budget through the approval workflow. Merges happen on detached copies;
    with ``persist=False`` (dry runs) nothing is saved.

    Returns the budget's items as they should be replicated.
    """
    if budget_snapshot:
        snapshot_id = budget_snapshot.get("id")
        if snapshot_id and snapshot_id != budget.id:
            raise ValidationError("budget snapshot id does not match budget_id")
        ignored = sorted(set(budget_snapshot) & PROTECTED_BUDGET_FIELDS - {"id"})
        if ignored:
            logger.info("snapshot_fields_ignored", budget_id=budget.id, fields=ignored)
        patch = {k: budget_snapshot[k] for k in SNAPSHOT_BUDGET_FIELDS & set(budget_snapshot)}
        for money_field in ("total_price", "total_points"):
            if money_field in patch:
                patch[money_field] = to_money(patch[money_field], money_field)
        if persist:
            patch["updated_at"] = datetime.utcnow()
            await repos.budgets.update_budget(budget.id, patch)

    stored = await repos.items.list_items_by_budget(budget.id)
    if not item_snapshots:
        return stored

    by_id = {i.id: i for i in stored}
    merged: dict[str, BudgetItem] = {}
    now = datetime.utcnow()
    for snapshot in item_snapshots:
        if snapshot.get("budget_id", budget.id) != budget.id:
            raise ValidationError(
                f"item {snapshot.get('id')} does not belong to budget {budget.id}"
            )
        current = by_id.get(snapshot.get("id") or "")
        if current is None and snapshot.get("id") and await repos.items.get_item(snapshot["id"]):
            raise ValidationError(
                f"item {snapshot['id']} does not belong to budget {budget.id}"
            )
        if current is None:
            item = BudgetItem(
                id=snapshot.get("id") or new_id(),
                budget_id=budget.id,
                position=len(stored) + len(merged),
                created_at=now,
            )
        else:
            item = _copy_item(current)
        for key in SNAPSHOT_ITEM_FIELDS & set(snapshot):
            setattr(item, key, snapshot[key])
        if not item.base_product_id:
            raise ValidationError("base_product_id is required", field="base_product_id")
        item.qty, item.unit_price, item.unit_points = validate_item_values(
            item.qty, item.unit_price, item.unit_points
        )
        item.updated_at = now
        merged[item.id] = item

    logger.info(
        "snapshot_items_reconciled", budget_id=budget.id, count=len(merged), persisted=persist
    )
    if persist:
        await repos.items.save_all_items(list(merged.values()))
        return await repos.items.list_items_by_budget(budget.id)

    items = [merged.pop(i.id, i) for i in stored]
    return items + sorted(merged.values(), key=lambda i: i.position or 0)


async def replicate_budget(
    repos: Repositories,
    budget_id: str,
    dry_run: bool = False,
    actor_id: Optional[str] = None,
    budget_snapshot: Optional[dict] = None,
    item_snapshots: Optional[list[dict]] = None,
) -> BudgetReplicationOutcome:
    """
    Replicate every item of a released budget into its company catalog.

    Raises NotFoundError, BudgetNotReleasedError or NoItemsError before any
    product or log is written. Per-item failures are collected in
    ``errors`` and keep the budget at "released" so the run can be retried.
    """
    async with _budget_lock(budget_id):
        budget = await repos.budgets.get_budget(budget_id, for_update=True)
        if budget is None:
            raise NotFoundError("Budget", budget_id)
        if budget.status != BudgetStatus.RELEASED.value:
            raise BudgetNotReleasedError(budget_id, budget.status)

        if budget_snapshot or item_snapshots:
            items = await reconcile_snapshots(
                repos, budget, budget_snapshot, item_snapshots, persist=not dry_run
            )
        else:
            items = await repos.items.list_items_by_budget(budget_id)
        if not items:
            raise NoItemsError(budget_id)

        actor = actor_id or budget.updated_by or settings.DEFAULT_ACTOR_ID
        results: list[ReplicationResult] = []
        errors: list[str] = []
        # Dry runs stage would-be writes so repeated products report like a real run
        staged: Optional[dict] = {} if dry_run else None

        for item in items:
            result = await replicate_product(
                repos,
                item.base_product_id,
                budget.company_id,
                overrides=ReplicationOverrides(
                    price=item.unit_price,
                    points_cost=item.unit_points,
                    stock_quantity=item.qty,
                    is_active=True,
                ),
                actor_id=actor,
                dry_run=dry_run,
                staged=staged,
            )
            if result.ok:
                results.append(result)
            else:
                errors.append(f"{item.base_product_id}: {result.error}")

        outcome = BudgetReplicationOutcome(
            budget_id=budget_id,
            dry_run=dry_run,
            results=results,
            errors=errors,
            summary=summarize_results(results, errors, total=len(items)),
            budget_status=budget.status,
        )

        try:
            log = await create_replication_log(
                repos,
                company_id=budget.company_id,
                actor_id=actor,
                action=ReplicationAction.REPLICATE_BUDGET,
                results=results,
                errors=errors,
                budget_id=budget_id,
                dry_run=dry_run,
                total=len(items),
            )
            outcome.log_id = log.id
        except Exception as exc:
            logger.error("replication_log_write_failed", budget_id=budget_id, error=str(exc))
            outcome.warnings.append(f"replication log not persisted: {exc}")

        if not dry_run and not errors:
            try:
                updated = await mark_replicated(repos, budget_id, actor)
                outcome.budget_status = updated.status
            except Exception as exc:
                logger.error("budget_status_update_failed", budget_id=budget_id, error=str(exc))
                outcome.warnings.append(f"budget status not advanced: {exc}")

        logger.info(
            "budget_replicated",
            budget_id=budget_id,
            dry_run=dry_run,
            budget_status=outcome.budget_status,
            **outcome.summary,
        )
        return outcome


async def replicate_single(
    repos: Repositories,
    base_product_id: str,
    company_id: str,
    overrides: Optional[ReplicationOverrides] = None,
    actor_id: Optional[str] = None,
    dry_run: bool = False,
) -> SingleReplicationOutcome:
    """Replicate one base product outside any budget and log it."""
    if not base_product_id or not company_id:
        raise ValidationError("base_product_id and company_id are required")

    actor = actor_id or settings.DEFAULT_ACTOR_ID
    result = await replicate_product(
        repos, base_product_id, company_id, overrides=overrides, actor_id=actor, dry_run=dry_run
    )
    outcome = SingleReplicationOutcome(result=result, dry_run=dry_run)
    errors = [] if result.ok else [f"{base_product_id}: {result.error}"]

    try:
        log = await create_replication_log(
            repos,
            company_id=company_id,
            actor_id=actor,
            action=ReplicationAction.REPLICATE_SINGLE,
            results=[result] if result.ok else [],
            errors=errors,
            base_product_id=base_product_id,
            dry_run=dry_run,
            total=1,
        )
        outcome.log_id = log.id
    except Exception as exc:
        logger.error(
            "replication_log_write_failed", base_product_id=base_product_id, error=str(exc)
        )
        outcome.warnings.append(f"replication log not persisted: {exc}")

    if result.error_code == BASE_PRODUCT_NOT_FOUND:
        raise NotFoundError("Base product", base_product_id)
    return outcome
