from typing import Optional
from pydantic import BaseModel, Field


class BaseProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=64)
    category: str = Field(..., min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    price: float = Field(0, ge=0, allow_inf_nan=False)
    points_cost: float = Field(0, ge=0, allow_inf_nan=False)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True


class BaseProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    category: str
    image_url: Optional[str] = None
    price: float
    points_cost: float
    stock_quantity: int
    is_active: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class CompanyProductResponse(BaseModel):
    id: str
    company_id: str
    base_product_id: str
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    price: float
    points_cost: float
    stock_quantity: int
    is_active: bool
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
