from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from count_engine.models.shared.enums import CountStatus

class ItemRef(BaseModel):
    id: int
    name: str
    sku: Optional[str] = None
    class Config:
        from_attributes = True

# === Count items ===

class InventoryCountItemInDB(BaseModel):
    id: int
    count_id: int
    item_id: int
    in_stock_quantity: Decimal
    actual_quantity: Optional[Decimal] = None
    template_minimum_quantity: Optional[Decimal] = None
    template_maximum_quantity: Optional[Decimal] = None
    notes: Optional[str] = None
    counted_by: Optional[int] = None
    counted_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class InventoryCountItem(InventoryCountItemInDB):
    item: Optional[ItemRef] = None

class CountItemUpdate(BaseModel):
    """One submission for the batch updater, addressed by catalog item id"""
    item_id: int
    actual_quantity: Decimal
    notes: Optional[str] = None
    counted_by: Optional[int] = None

class BulkUpdateRequest(BaseModel):
    updates: List[CountItemUpdate] = Field(default_factory=list)

class BulkUpdateFailure(BaseModel):
    item_id: int
    error: str

class BulkUpdateResult(BaseModel):
    saved: int = 0
    failed: List[BulkUpdateFailure] = Field(default_factory=list)

class CountItemBump(BaseModel):
    delta: Decimal

class CountItemSet(BaseModel):
    quantity: Decimal = Field(..., ge=0)
    notes: Optional[str] = None

class CountItemQuantity(BaseModel):
    count_item_id: int
    actual_quantity: Decimal

# === Counts ===

class InventoryCountCreate(BaseModel):
    count_date: date = Field(default_factory=date.today)
    template_id: Optional[int] = None
    team_id: Optional[int] = None
    notes: Optional[str] = None

class InventoryCountVoid(BaseModel):
    reason: str = Field(..., min_length=1)

class InventoryCountInDB(BaseModel):
    id: int
    organization_id: int
    team_id: Optional[int] = None
    template_id: Optional[int] = None
    count_date: date
    status: CountStatus
    notes: Optional[str] = None
    total_items_count: int
    completion_percentage: Decimal
    variance_count: int
    started_by: Optional[int] = None
    completed_by: Optional[int] = None
    completed_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    voided_by: Optional[int] = None
    voided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class InventoryCount(InventoryCountInDB):
    pass

class CountTotals(BaseModel):
    total_items_count: int
    completion_percentage: Decimal
    variance_count: int

class RepairResult(BaseModel):
    total_lines: int
    updated_lines: int

class CommitResult(BaseModel):
    count_id: int
    items_updated: int = 0
    adjustments_created: int = 0
    audit_failures: List[BulkUpdateFailure] = Field(default_factory=list)

class InventoryCountCompletion(BaseModel):
    count: InventoryCount
    reconciliation: CommitResult
