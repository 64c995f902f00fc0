from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional
from count_engine.api.dependencies import get_count_batch_service, get_inventory_count_service
from count_engine.models.shared.enums import CountStatus
from count_engine.schemas.common.pagination import PaginatedResponse
from count_engine.schemas.inventory.inventory_count import (
    BulkUpdateRequest,
    BulkUpdateResult,
    CountItemBump,
    CountItemQuantity,
    CountItemSet,
    CountTotals,
    InventoryCount,
    InventoryCountCompletion,
    InventoryCountCreate,
    InventoryCountItem,
    InventoryCountVoid,
    RepairResult,
)
from count_engine.services.inventory.count_batch_service import CountBatchService
from count_engine.services.inventory.inventory_count_service import InventoryCountService

router = APIRouter()

@router.post("/", response_model=InventoryCount, status_code=status.HTTP_201_CREATED)
async def create_inventory_count(
    count_data: InventoryCountCreate,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    """Create a new inventory count and seed its items"""
    return await service.create_inventory_count(count_data)

@router.get("/", response_model=PaginatedResponse[InventoryCount])
async def get_inventory_counts(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    status: Optional[CountStatus] = Query(None),
    team_id: Optional[int] = Query(None),
    include_voided: bool = Query(False),
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    """Get inventory counts with optional filters"""
    return await service.get_inventory_counts(
        page_index=page_index,
        page_size=page_size,
        status=status,
        team_id=team_id,
        include_voided=include_voided
    )

@router.get("/{count_id}", response_model=InventoryCount)
async def get_inventory_count(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    """Get inventory count by ID"""
    return await service.get_count(count_id)

@router.get("/{count_id}/items", response_model=List[InventoryCountItem])
async def get_inventory_count_items(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    return await service.get_count_items(count_id)

@router.post("/{count_id}/items/bulk", response_model=BulkUpdateResult)
async def bulk_update_inventory_count_items(
    count_id: int,
    request: BulkUpdateRequest,
    service: CountBatchService = Depends(get_count_batch_service)
):
    """Save many counted quantities; partial failures are reported per item"""
    return await service.bulk_update_count_items(count_id, request.updates)

@router.post("/{count_id}/items/{count_item_id}/bump", response_model=CountItemQuantity)
async def bump_inventory_count_item(
    count_id: int,
    count_item_id: int,
    bump: CountItemBump,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    quantity = await service.bump_count_item(count_id, count_item_id, bump.delta)
    return CountItemQuantity(count_item_id=count_item_id, actual_quantity=quantity)

@router.put("/{count_id}/items/{count_item_id}", response_model=CountItemQuantity)
async def set_inventory_count_item(
    count_id: int,
    count_item_id: int,
    item_data: CountItemSet,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    quantity = await service.set_count_item(count_id, count_item_id, item_data.quantity, item_data.notes)
    return CountItemQuantity(count_item_id=count_item_id, actual_quantity=quantity)

@router.post("/{count_id}/recalculate", response_model=CountTotals)
async def recalculate_inventory_count(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    return await service.recalculate_count_totals(count_id)

@router.post("/{count_id}/repair", response_model=RepairResult)
async def repair_inventory_count(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    """Recompute expected quantities from the template or current stock"""
    return await service.repair_expected_quantities(count_id)

@router.post("/{count_id}/complete", response_model=InventoryCountCompletion)
async def complete_inventory_count(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    """Complete inventory count and write counted quantities to stock"""
    count, reconciliation = await service.complete_inventory_count(count_id)
    return InventoryCountCompletion(count=InventoryCount.model_validate(count), reconciliation=reconciliation)

@router.post("/{count_id}/cancel", response_model=InventoryCount)
async def cancel_inventory_count(
    count_id: int,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    return await service.cancel_inventory_count(count_id)

@router.post("/{count_id}/void", response_model=InventoryCount)
async def void_inventory_count(
    count_id: int,
    void_data: InventoryCountVoid,
    service: InventoryCountService = Depends(get_inventory_count_service)
):
    return await service.void_inventory_count(count_id, void_data.reason)
