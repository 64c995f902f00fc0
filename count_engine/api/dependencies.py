from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.database import get_async_session
from count_engine.services.inventory.count_batch_service import CountBatchService
from count_engine.services.inventory.inventory_count_service import InventoryCountService
from count_engine.services.inventory.item_service import ItemService
from count_engine.services.inventory.sku_service import SkuService
import logging

logger = logging.getLogger(__name__)

async def get_caller_scope(
    x_user_id: Optional[int] = Header(None),
    x_organization_id: Optional[int] = Header(None),
    x_team_id: Optional[int] = Header(None)
) -> CallerScope:
    """Caller identity as forwarded by the upstream authentication layer"""
    return require_caller_scope(
        CallerScope(user_id=x_user_id, organization_id=x_organization_id, team_id=x_team_id)
    )

def get_inventory_count_service(
    db: AsyncSession = Depends(get_async_session),
    scope: CallerScope = Depends(get_caller_scope)
) -> InventoryCountService:
    return InventoryCountService(db, scope)

def get_count_batch_service(
    db: AsyncSession = Depends(get_async_session),
    scope: CallerScope = Depends(get_caller_scope)
) -> CountBatchService:
    return CountBatchService(db, scope)

def get_item_service(
    db: AsyncSession = Depends(get_async_session),
    scope: CallerScope = Depends(get_caller_scope)
) -> ItemService:
    return ItemService(db, scope)

def get_sku_service(
    db: AsyncSession = Depends(get_async_session),
    scope: CallerScope = Depends(get_caller_scope)
) -> SkuService:
    return SkuService(db, scope)
