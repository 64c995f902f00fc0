import logging
import re
import time
from typing import Optional
from sqlalchemy import and_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.config import settings
from count_engine.core.exceptions import ValidationError
from count_engine.models.inventory.category import InventoryCategory
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.inventory.sku_counter import SkuCounter
from count_engine.models.shared.enums import ItemStatus
from count_engine.schemas.inventory.item import SkuGenerated, SkuUniquenessResult

logger = logging.getLogger(__name__)

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

MIN_PREFIX_LENGTH = 3

# Last fallback timestamp handed out by this process
_last_fallback_ms = 0


def derive_prefix(category_name: Optional[str]) -> str:
    """Build the SKU prefix for a category name.

    Two or more words contribute two characters from each of the first two
    words ("Dry Goods" -> "DRGO"); a single word is cut to four characters
    ("Beverages" -> "BEVE"). No usable name, or one yielding fewer than
    three characters ("Ab", "A & B"), gives the default prefix.
    """
    if not category_name:
        return settings.SKU_DEFAULT_PREFIX

    words = [re.sub(r"[^A-Za-z0-9]", "", word) for word in category_name.split()]
    words = [word for word in words if word]
    if not words:
        return settings.SKU_DEFAULT_PREFIX

    if len(words) > 1:
        prefix = words[0][:2] + words[1][:2]
    else:
        prefix = words[0][:4]
    if len(prefix) < MIN_PREFIX_LENGTH:
        return settings.SKU_DEFAULT_PREFIX
    return prefix.upper()


def format_sku(prefix: str, number: int) -> str:
    return f"{prefix}-{number:0{settings.SKU_NUMBER_WIDTH}d}"


def fallback_sku() -> str:
    """Timestamp based SKU used when the atomic counter is unavailable"""
    global _last_fallback_ms
    now_ms = int(time.time() * 1000)
    # strictly increasing within the process so simultaneous fallbacks differ
    _last_fallback_ms = max(now_ms, _last_fallback_ms + 1)
    return f"{settings.SKU_DEFAULT_PREFIX}-{str(_last_fallback_ms)[-6:]}"


class SkuService:
    def __init__(
        self,
        db: AsyncSession,
        scope: CallerScope,
        session_factory: Optional[async_sessionmaker] = None
    ):
        self.scope = require_caller_scope(scope)
        self.db = db
        self.session_factory = session_factory or async_sessionmaker(
            bind=db.bind, class_=AsyncSession, expire_on_commit=False
        )

    async def generate_sku(
        self,
        category_id: Optional[int] = None,
        category_name: Optional[str] = None
    ) -> SkuGenerated:
        """Issue the next SKU for a category, degrading to a timestamp SKU on failure"""
        try:
            if category_name is None and category_id is not None:
                category_name = await self._get_category_name(category_id)
            prefix = derive_prefix(category_name)
            number = await self._next_sku_number(prefix)
            return SkuGenerated(sku=format_sku(prefix, number), prefix=prefix)
        except Exception as e:
            sku = fallback_sku()
            logger.warning(
                f"⚠️ Atomic SKU generation failed for organization {self.scope.organization_id}: "
                f"{str(e)}. Falling back to {sku}"
            )
            return SkuGenerated(sku=sku, prefix=settings.SKU_DEFAULT_PREFIX, fallback=True)

    async def _get_category_name(self, category_id: int) -> Optional[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(InventoryCategory.name).where(
                    and_(
                        InventoryCategory.id == category_id,
                        InventoryCategory.organization_id == self.scope.organization_id
                    )
                )
            )
            return result.scalar_one_or_none()

    async def _next_sku_number(self, prefix: str) -> int:
        """Atomically increment the (organization, prefix) counter and return the new value"""
        async with self.session_factory() as session:
            dialect = session.bind.dialect.name
            insert_builder = _UPSERT_BUILDERS.get(dialect)
            if insert_builder is None:
                raise RuntimeError(f"No atomic SKU counter available for dialect {dialect}")

            counters = SkuCounter.__table__
            stmt = insert_builder(counters).values(
                organization_id=self.scope.organization_id,
                prefix=prefix,
                last_number=1
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["organization_id", "prefix"],
                set_={
                    "last_number": counters.c.last_number + 1,
                    "updated_at": func.now(),
                }
            ).returning(counters.c.last_number)

            result = await session.execute(stmt)
            number = result.scalar_one()
            await session.commit()
            return number

    async def check_sku_unique(
        self,
        sku: str,
        exclude_item_id: Optional[int] = None
    ) -> SkuUniquenessResult:
        """Case-sensitive check of a manually entered SKU against active items"""
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("SKU is required")

        query = select(InventoryItem.id, InventoryItem.name).where(
            and_(
                InventoryItem.organization_id == self.scope.organization_id,
                InventoryItem.sku == sku,
                InventoryItem.status == ItemStatus.ACTIVE
            )
        )
        if exclude_item_id is not None:
            query = query.where(InventoryItem.id != exclude_item_id)

        result = await self.db.execute(query.limit(1))
        conflict = result.first()
        if conflict is None:
            return SkuUniquenessResult(is_unique=True)

        return SkuUniquenessResult(
            is_unique=False,
            conflicting_item_id=conflict.id,
            conflicting_item_name=conflict.name,
            message=f'SKU "{sku}" is already used by "{conflict.name}"'
        )
