from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class ReplicationOverridesSchema(BaseModel):
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    points_cost: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ReplicationRequest(BaseModel):
    """
    Budget mode: ``budget_id`` (optionally with the client's ``budget_data`` /
    ``budget_items`` snapshots). Single mode: ``base_product_id`` +
    ``company_id``.
    """

    budget_id: Optional[str] = None
    base_product_id: Optional[str] = None
    company_id: Optional[str] = None
    overrides: Optional[ReplicationOverridesSchema] = None
    actor_id: Optional[str] = None
    dry_run: bool = False
    budget_data: Optional[Dict[str, Any]] = None
    budget_items: Optional[List[Dict[str, Any]]] = None

    @model_validator(mode="after")
    def check_mode(self):
        if self.budget_id:
            if self.base_product_id or self.overrides:
                raise ValueError("budget_id cannot be combined with base_product_id or overrides")
        elif not (self.base_product_id and self.company_id):
            raise ValueError("Provide budget_id, or base_product_id together with company_id")
        elif self.budget_data or self.budget_items:
            raise ValueError("budget_data and budget_items require budget_id")
        return self

    @property
    def is_budget_mode(self) -> bool:
        return bool(self.budget_id)


class ReplicationResultResponse(BaseModel):
    base_product_id: str
    company_id: str
    status: str
    company_product_id: Optional[str] = None
    error: Optional[str] = None


class ReplicationSummary(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class BudgetReplicationResponse(BaseModel):
    budget_id: str
    log_id: Optional[str] = None
    dry_run: bool
    budget_status: Optional[str] = None
    results: List[ReplicationResultResponse] = []
    errors: List[str] = []
    warnings: List[str] = []
    summary: ReplicationSummary


class SingleReplicationResponse(BaseModel):
    result: ReplicationResultResponse
    log_id: Optional[str] = None
    dry_run: bool
    warnings: List[str] = []


class ReplicationLogResponse(BaseModel):
    id: str
    budget_id: Optional[str] = None
    company_id: str
    base_product_id: Optional[str] = None
    actor_id: str
    action: str
    status: str
    results: List[Dict[str, Any]] = []
    errors: Optional[List[str]] = None
    summary: ReplicationSummary
    metadata: Dict[str, Any] = {}
    created_at: str
