from typing import List, Optional
from pydantic import BaseModel, Field


class BudgetItemCreate(BaseModel):
    base_product_id: str = Field(..., min_length=1)
    qty: int = Field(1, ge=1)
    unit_price: float = Field(0, ge=0, allow_inf_nan=False)
    unit_points: float = Field(0, ge=0, allow_inf_nan=False)


class BudgetItemUpdate(BaseModel):
    qty: Optional[int] = Field(None, ge=1)
    unit_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    unit_points: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class BudgetCreate(BaseModel):
    company_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    created_by: str = Field(..., min_length=1)
    items: List[BudgetItemCreate] = []


class BudgetUpdate(BaseModel):
    status: Optional[str] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    updated_by: str = Field(..., min_length=1)


class BudgetItemResponse(BaseModel):
    id: str
    budget_id: str
    base_product_id: str
    qty: int
    unit_price: float
    unit_points: float
    position: int = 0
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class BudgetResponse(BaseModel):
    id: str
    company_id: str
    title: str
    description: Optional[str] = None
    status: str
    total_price: float
    total_points: float
    item_count: int
    created_by: str
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str
    replicated_at: Optional[str] = None
    items: List[BudgetItemResponse] = []

    model_config = {"from_attributes": True}
