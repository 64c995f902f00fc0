from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from count_engine.models.shared.enums import ItemStatus

class ItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    barcode: Optional[str] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None

class ItemCreate(ItemBase):
    sku: Optional[str] = None  # generated when omitted
    current_stock: Decimal = Field(default=Decimal("0"), ge=0)

class ItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None

class Item(ItemBase):
    id: int
    organization_id: int
    sku: str
    current_stock: Decimal
    status: ItemStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class SkuGenerated(BaseModel):
    sku: str
    prefix: str
    fallback: bool = False

class SkuUniquenessResult(BaseModel):
    is_unique: bool
    conflicting_item_id: Optional[int] = None
    conflicting_item_name: Optional[str] = None
    message: Optional[str] = None
