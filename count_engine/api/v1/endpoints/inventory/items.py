from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional
from count_engine.api.dependencies import get_item_service, get_sku_service
from count_engine.schemas.inventory.item import Item, ItemCreate, ItemUpdate, SkuGenerated, SkuUniquenessResult
from count_engine.services.inventory.item_service import ItemService
from count_engine.services.inventory.sku_service import SkuService

router = APIRouter()

@router.post("/", response_model=Item, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: ItemCreate,
    service: ItemService = Depends(get_item_service)
):
    """Create an item; a SKU is issued when none is supplied"""
    return await service.create_item(item_data)

@router.get("/sku/generate", response_model=SkuGenerated)
async def generate_sku(
    category_id: Optional[int] = Query(None),
    category_name: Optional[str] = Query(None),
    service: SkuService = Depends(get_sku_service)
):
    return await service.generate_sku(category_id=category_id, category_name=category_name)

@router.get("/sku/check", response_model=SkuUniquenessResult)
async def check_sku(
    sku: str = Query(..., min_length=1),
    exclude_item_id: Optional[int] = Query(None),
    service: SkuService = Depends(get_sku_service)
):
    return await service.check_sku_unique(sku, exclude_item_id)

@router.get("/barcode/{barcode}", response_model=Item)
async def get_item_by_barcode(
    barcode: str,
    service: ItemService = Depends(get_item_service)
):
    item = await service.get_item_by_barcode(barcode)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item

@router.get("/{item_id}", response_model=Item)
async def get_item(
    item_id: int,
    service: ItemService = Depends(get_item_service)
):
    item = await service.get_item_by_id(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item

@router.put("/{item_id}", response_model=Item)
async def update_item(
    item_id: int,
    item_data: ItemUpdate,
    service: ItemService = Depends(get_item_service)
):
    return await service.update_item(item_id, item_data)

@router.delete("/{item_id}", response_model=Item)
async def deactivate_item(
    item_id: int,
    service: ItemService = Depends(get_item_service)
):
    """Items are deactivated, never deleted"""
    return await service.deactivate_item(item_id)
