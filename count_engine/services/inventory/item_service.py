import logging
from typing import Optional
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.exceptions import DuplicateValueError, NotFoundError, ValidationError
from count_engine.core.logging import log_user_action
from count_engine.models.inventory.category import InventoryCategory
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.shared.enums import ItemStatus
from count_engine.schemas.inventory.item import ItemCreate, ItemUpdate
from count_engine.services.inventory.sku_service import SkuService

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def duplicate_error(error: IntegrityError, sku: Optional[str] = None) -> Exception:
    """Map a store uniqueness violation onto the field the operator has to change"""
    message = str(error.orig).lower()
    if "sku" in message:
        return DuplicateValueError(f'SKU "{sku}" is already used by another item', field="sku")
    if "barcode" in message:
        return DuplicateValueError("That barcode is already used by another item", field="barcode")
    if "unique" in message or "duplicate" in message:
        return DuplicateValueError("This item conflicts with an existing item (duplicate SKU, barcode, or name)")
    return ValidationError(f"Item violates a data constraint: {str(error.orig)}")


class ItemService:
    def __init__(
        self,
        db: AsyncSession,
        scope: CallerScope,
        session_factory: Optional[async_sessionmaker] = None
    ):
        self.scope = require_caller_scope(scope)
        self.db = db
        self.sku_service = SkuService(db, scope, session_factory)

    async def create_item(self, item_data: ItemCreate) -> InventoryItem:
        if item_data.category_id:
            category = await self.db.execute(
                select(InventoryCategory).where(
                    and_(
                        InventoryCategory.id == item_data.category_id,
                        InventoryCategory.organization_id == self.scope.organization_id
                    )
                )
            )
            if not category.scalar_one_or_none():
                raise ValidationError("Category not found")

        sku = _clean(item_data.sku)
        if sku:
            uniqueness = await self.sku_service.check_sku_unique(sku)
            if not uniqueness.is_unique:
                raise DuplicateValueError(uniqueness.message, field="sku")
        else:
            generated = await self.sku_service.generate_sku(category_id=item_data.category_id)
            sku = generated.sku

        item = InventoryItem(
            **item_data.model_dump(exclude={"sku", "barcode"}),
            sku=sku,
            barcode=_clean(item_data.barcode),
            organization_id=self.scope.organization_id,
            status=ItemStatus.ACTIVE,
            created_by=self.scope.user_id
        )
        self.db.add(item)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Error creating item {item_data.name}: {str(e.orig)}")
            raise duplicate_error(e, sku)

        await self.db.refresh(item)
        logger.info(f"Item created: {item.name} ({item.sku})")
        log_user_action(self.scope.user_id, "CREATE", "inventory_item", item.id)
        return item

    async def get_item_by_id(self, item_id: int, include_inactive: bool = False) -> Optional[InventoryItem]:
        query = select(InventoryItem).where(
            and_(
                InventoryItem.id == item_id,
                InventoryItem.organization_id == self.scope.organization_id
            )
        )
        if not include_inactive:
            query = query.where(InventoryItem.status == ItemStatus.ACTIVE)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def get_item_by_barcode(self, barcode: str) -> Optional[InventoryItem]:
        barcode = _clean(barcode)
        if not barcode:
            return None
        result = await self.db.execute(
            select(InventoryItem).where(
                and_(
                    InventoryItem.barcode == barcode,
                    InventoryItem.organization_id == self.scope.organization_id,
                    InventoryItem.status == ItemStatus.ACTIVE
                )
            )
        )
        return result.scalar_one_or_none()

    async def update_item(self, item_id: int, item_data: ItemUpdate) -> InventoryItem:
        item = await self.get_item_by_id(item_id)
        if not item:
            raise NotFoundError("Item not found")

        updates = item_data.model_dump(exclude_unset=True)
        if "sku" in updates:
            sku = _clean(updates.pop("sku"))
            if sku != item.sku:
                raise ValidationError("SKU cannot be changed once assigned to a product. SKUs are permanent identifiers.")
        if "barcode" in updates:
            updates["barcode"] = _clean(updates["barcode"])

        current_sku = item.sku
        for field, value in updates.items():
            setattr(item, field, value)
        item.updated_by = self.scope.user_id

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Error updating item {item_id}: {str(e.orig)}")
            raise duplicate_error(e, current_sku)

        await self.db.refresh(item)
        logger.info(f"Item updated: {item.name}")
        return item

    async def deactivate_item(self, item_id: int) -> InventoryItem:
        """Items are never deleted, only deactivated"""
        item = await self.get_item_by_id(item_id)
        if not item:
            raise NotFoundError("Item not found")

        item.status = ItemStatus.DEACTIVATED
        item.updated_by = self.scope.user_id
        await self.db.commit()
        await self.db.refresh(item)
        log_user_action(self.scope.user_id, "DEACTIVATE", "inventory_item", item_id)
        return item
