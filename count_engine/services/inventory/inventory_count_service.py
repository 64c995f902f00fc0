import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import and_, desc, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.config import settings
from count_engine.core.exceptions import InitializationError, NotFoundError, ValidationError, error_message
from count_engine.core.logging import log_user_action
from count_engine.models.inventory.inventory_count import InventoryCount
from count_engine.models.inventory.inventory_count_item import InventoryCountItem
from count_engine.models.inventory.inventory_template import InventoryTemplate
from count_engine.models.inventory.inventory_template_item import InventoryTemplateItem
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.shared.enums import CountStatus, ItemStatus
from count_engine.schemas.inventory.inventory_count import (
    CommitResult,
    CountItemUpdate,
    CountTotals,
    InventoryCountCreate,
    RepairResult,
)
from count_engine.services.inventory.count_reconciliation_service import CountReconciliationService

logger = logging.getLogger(__name__)

_PERCENT = Decimal("0.01")


def calculate_count_totals(
    lines: Iterable[Tuple[Optional[Decimal], Optional[Decimal]]],
    epsilon: Decimal
) -> CountTotals:
    """Aggregate (actual_quantity, in_stock_quantity) pairs into count totals.

    Uncounted lines (actual is None) never count as variances.
    """
    total = 0
    counted = 0
    variances = 0
    for actual, expected in lines:
        total += 1
        if actual is None:
            continue
        counted += 1
        if abs(Decimal(actual) - Decimal(expected or 0)) > epsilon:
            variances += 1

    if total == 0:
        percentage = Decimal("0.00")
    else:
        percentage = (Decimal(counted) * 100 / Decimal(total)).quantize(_PERCENT, rounding=ROUND_HALF_UP)

    return CountTotals(
        total_items_count=total,
        completion_percentage=percentage,
        variance_count=variances
    )


def template_baseline(expected_quantity: Optional[Decimal], current_stock: Optional[Decimal]) -> Decimal:
    """Template quantity wins; live stock only when the template row has none"""
    if expected_quantity is not None:
        return Decimal(expected_quantity)
    return Decimal(current_stock or 0)


def count_item_update_statement(count_id: int, submission: CountItemUpdate, counted_by: Optional[int]):
    """UPDATE for one counted line addressed by (count, catalog item)"""
    if submission.actual_quantity < 0:
        raise ValidationError("Counted quantity cannot be negative")

    values: Dict[str, Any] = {
        "actual_quantity": submission.actual_quantity,
        "counted_at": datetime.now(timezone.utc),
    }
    if submission.notes:
        values["notes"] = submission.notes
    if submission.counted_by or counted_by:
        values["counted_by"] = submission.counted_by or counted_by

    return (
        update(InventoryCountItem)
        .where(
            and_(
                InventoryCountItem.count_id == count_id,
                InventoryCountItem.item_id == submission.item_id
            )
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )


class InventoryCountService:
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
        self.variance_epsilon = Decimal(str(settings.VARIANCE_EPSILON))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_inventory_count_by_id(self, count_id: int) -> Optional[InventoryCount]:
        result = await self.db.execute(
            select(InventoryCount)
            .where(
                and_(
                    InventoryCount.id == count_id,
                    InventoryCount.organization_id == self.scope.organization_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_count(self, count_id: int) -> InventoryCount:
        """Resolve a count inside the caller's organization or raise"""
        if not isinstance(count_id, int) or isinstance(count_id, bool) or count_id <= 0:
            raise ValidationError(f"Invalid inventory count id: {count_id!r}")

        inventory_count = await self.get_inventory_count_by_id(count_id)
        if not inventory_count:
            raise NotFoundError("Inventory count not found")
        return inventory_count

    async def get_count_in_progress(self, count_id: int) -> InventoryCount:
        inventory_count = await self.get_count(count_id)
        if inventory_count.status != CountStatus.IN_PROGRESS:
            raise ValidationError(
                f"Inventory count is {inventory_count.status.value} and can no longer be counted"
            )
        return inventory_count

    async def get_inventory_counts(
        self,
        page_index: int = 1,
        page_size: int = 100,
        status: Optional[CountStatus] = None,
        team_id: Optional[int] = None,
        include_voided: bool = False
    ) -> Dict[str, Any]:
        """Get inventory counts with pagination"""
        query = select(InventoryCount).where(
            InventoryCount.organization_id == self.scope.organization_id
        ).order_by(desc(InventoryCount.count_date), desc(InventoryCount.id))

        if status:
            query = query.where(InventoryCount.status == status)
        elif not include_voided:
            query = query.where(InventoryCount.status != CountStatus.VOIDED)
        if team_id:
            query = query.where(InventoryCount.team_id == team_id)

        # Get total count
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        # Calculate offset and get data
        skip = (page_index - 1) * page_size
        result = await self.db.execute(
            query.offset(skip).limit(page_size).execution_options(populate_existing=True)
        )
        counts = result.scalars().all()

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total,
            "data": counts
        }

    async def get_count_items(self, count_id: int) -> List[InventoryCountItem]:
        await self.get_count(count_id)
        result = await self.db.execute(
            select(InventoryCountItem)
            .options(selectinload(InventoryCountItem.item))
            .where(InventoryCountItem.count_id == count_id)
            .order_by(InventoryCountItem.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_count_item(self, count_id: int, count_item_id: int) -> InventoryCountItem:
        result = await self.db.execute(
            select(InventoryCountItem)
            .where(
                and_(
                    InventoryCountItem.id == count_item_id,
                    InventoryCountItem.count_id == count_id
                )
            )
            .execution_options(populate_existing=True)
        )
        count_item = result.scalar_one_or_none()
        if not count_item:
            raise NotFoundError(f"Count item {count_item_id} not found in count {count_id}")
        return count_item

    # ------------------------------------------------------------------
    # Creation & initialization
    # ------------------------------------------------------------------

    async def create_inventory_count(self, count_data: InventoryCountCreate) -> InventoryCount:
        """Create a count and seed its lines from the template or the active catalog"""
        if count_data.template_id is not None:
            await self._get_template(count_data.template_id)

        inventory_count = InventoryCount(
            organization_id=self.scope.organization_id,
            team_id=count_data.team_id or self.scope.team_id,
            template_id=count_data.template_id,
            count_date=count_data.count_date,
            status=CountStatus.IN_PROGRESS,
            notes=count_data.notes,
            started_by=self.scope.user_id,
            created_by=self.scope.user_id
        )

        self.db.add(inventory_count)
        await self.db.commit()
        await self.db.refresh(inventory_count)
        log_user_action(self.scope.user_id, "CREATE", "inventory_count", inventory_count.id)

        await self.initialize_count_items(inventory_count.id, count_data.template_id)
        return await self.get_count(inventory_count.id)

    async def _get_template(self, template_id: int) -> InventoryTemplate:
        result = await self.db.execute(
            select(InventoryTemplate).where(
                and_(
                    InventoryTemplate.id == template_id,
                    InventoryTemplate.organization_id == self.scope.organization_id,
                    InventoryTemplate.is_deleted == False
                )
            )
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError("Inventory template not found")
        return template

    async def initialize_count_items(self, count_id: int, template_id: Optional[int] = None) -> int:
        """Populate the lines of a new, empty count. Returns the number of lines created."""
        inventory_count = await self.get_count_in_progress(count_id)

        existing = await self.db.execute(
            select(func.count(InventoryCountItem.id)).where(InventoryCountItem.count_id == count_id)
        )
        if existing.scalar():
            raise ValidationError("Inventory count already has items")

        if template_id is not None:
            await self._get_template(template_id)
            source = f"template {template_id}"
        else:
            source = "active catalog"

        try:
            if template_id is not None:
                baselines = await self._template_baselines(template_id)
            else:
                baselines = await self._catalog_baselines()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error fetching {source} for count {count_id} initialization: {str(e)}")
            raise InitializationError(f"Failed to fetch {source} items: {str(e)}")

        count_items = [
            InventoryCountItem(
                count_id=inventory_count.id,
                item_id=row["item_id"],
                in_stock_quantity=row["in_stock_quantity"],
                template_minimum_quantity=row.get("minimum_quantity"),
                template_maximum_quantity=row.get("maximum_quantity"),
                created_by=self.scope.user_id
            )
            for row in baselines
        ]

        if not count_items:
            logger.warning(f"No items found for count {count_id} initialization ({source})")
        else:
            try:
                self.db.add_all(count_items)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Error inserting count items for count {count_id}: {str(e)}")
                raise InitializationError(f"Failed to initialize count items: {str(e)}")

        await self.recalculate_count_totals(count_id)
        logger.info(f"Initialized {len(count_items)} count items for count {count_id} from {source}")
        return len(count_items)

    async def _template_baselines(self, template_id: int) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(
                InventoryTemplateItem.item_id,
                InventoryTemplateItem.expected_quantity,
                InventoryTemplateItem.minimum_quantity,
                InventoryTemplateItem.maximum_quantity,
                InventoryItem.current_stock
            )
            .join(InventoryItem, InventoryTemplateItem.item_id == InventoryItem.id)
            .where(
                and_(
                    InventoryTemplateItem.template_id == template_id,
                    InventoryTemplateItem.is_deleted == False,
                    InventoryItem.organization_id == self.scope.organization_id,
                    InventoryItem.status == ItemStatus.ACTIVE
                )
            )
            .order_by(InventoryTemplateItem.sort_order, InventoryTemplateItem.id)
        )
        return [
            {
                "item_id": row.item_id,
                "in_stock_quantity": template_baseline(row.expected_quantity, row.current_stock),
                "minimum_quantity": row.minimum_quantity,
                "maximum_quantity": row.maximum_quantity,
            }
            for row in result.all()
        ]

    async def _catalog_baselines(self) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(InventoryItem.id, InventoryItem.current_stock)
            .where(
                and_(
                    InventoryItem.organization_id == self.scope.organization_id,
                    InventoryItem.status == ItemStatus.ACTIVE
                )
            )
            .order_by(InventoryItem.name, InventoryItem.id)
        )
        return [
            {"item_id": row.id, "in_stock_quantity": Decimal(row.current_stock or 0)}
            for row in result.all()
        ]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def recalculate_count_totals(self, count_id: int) -> CountTotals:
        """Recompute total, completion percentage and variance count from the current lines"""
        await self.get_count(count_id)

        result = await self.db.execute(
            select(InventoryCountItem.actual_quantity, InventoryCountItem.in_stock_quantity)
            .where(InventoryCountItem.count_id == count_id)
        )
        totals = calculate_count_totals(result.all(), self.variance_epsilon)

        await self.db.execute(
            update(InventoryCount)
            .where(InventoryCount.id == count_id)
            .values(
                total_items_count=totals.total_items_count,
                completion_percentage=totals.completion_percentage,
                variance_count=totals.variance_count
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return totals

    # ------------------------------------------------------------------
    # Counting
    # ------------------------------------------------------------------

    async def update_count_item(
        self,
        count_id: int,
        item_id: int,
        actual_quantity: Decimal,
        notes: Optional[str] = None,
        counted_by: Optional[int] = None
    ) -> None:
        """Record the counted quantity of one catalog item"""
        await self.get_count_in_progress(count_id)
        stmt = count_item_update_statement(
            count_id,
            CountItemUpdate(item_id=item_id, actual_quantity=actual_quantity, notes=notes, counted_by=counted_by),
            self.scope.user_id
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            # no row matched, nothing to undo
            await self.db.commit()
            raise NotFoundError(f"Item {item_id} is not part of count {count_id}")
        await self.db.commit()
        await self.recalculate_count_totals(count_id)

    async def bump_count_item(self, count_id: int, count_item_id: int, delta: Decimal) -> Decimal:
        """Add delta to a line's counted quantity (NULL counts as 0) in one statement"""
        await self.get_count_in_progress(count_id)

        new_quantity = func.coalesce(InventoryCountItem.actual_quantity, 0) + delta
        result = await self.db.execute(
            update(InventoryCountItem)
            .where(
                and_(
                    InventoryCountItem.id == count_item_id,
                    InventoryCountItem.count_id == count_id,
                    new_quantity >= 0
                )
            )
            .values(
                actual_quantity=new_quantity,
                counted_at=datetime.now(timezone.utc),
                counted_by=self.scope.user_id
            )
            .returning(InventoryCountItem.actual_quantity)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            await self.db.commit()
            # distinguishes a missing line from a bump below zero
            await self.get_count_item(count_id, count_item_id)
            raise ValidationError("Counted quantity cannot go below zero")
        await self.db.commit()

        await self.recalculate_count_totals(count_id)
        return Decimal(row[0])

    async def set_count_item(
        self,
        count_id: int,
        count_item_id: int,
        quantity: Decimal,
        notes: Optional[str] = None
    ) -> Decimal:
        """Write a line's counted quantity directly"""
        if quantity < 0:
            raise ValidationError("Counted quantity cannot be negative")
        await self.get_count_in_progress(count_id)

        values: Dict[str, Any] = {
            "actual_quantity": quantity,
            "counted_at": datetime.now(timezone.utc),
            "counted_by": self.scope.user_id,
        }
        if notes:
            values["notes"] = notes

        result = await self.db.execute(
            update(InventoryCountItem)
            .where(
                and_(
                    InventoryCountItem.id == count_item_id,
                    InventoryCountItem.count_id == count_id
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.commit()
            raise NotFoundError(f"Count item {count_item_id} not found in count {count_id}")
        await self.db.commit()

        await self.recalculate_count_totals(count_id)
        return Decimal(quantity)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _transition(
        self,
        count_id: int,
        allowed: Iterable[CountStatus],
        values: Dict[str, Any],
        commit: bool = True
    ) -> bool:
        """Conditional status change; False when the count left the allowed states meanwhile.

        With ``commit=False`` the change stays pending in the session so the caller
        can commit it together with further writes.
        """
        result = await self.db.execute(
            update(InventoryCount)
            .where(
                and_(
                    InventoryCount.id == count_id,
                    InventoryCount.organization_id == self.scope.organization_id,
                    InventoryCount.status.in_(list(allowed))
                )
            )
            .values(updated_by=self.scope.user_id, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.commit()
            return False
        if commit:
            await self.db.commit()
        return True

    async def complete_inventory_count(self, count_id: int) -> Tuple[InventoryCount, CommitResult]:
        """Mark a count completed and commit its counted quantities into stock.

        The status change and the stock writes share one transaction: a failed
        stock write leaves the count IN_PROGRESS so completion can be retried.
        """
        inventory_count = await self.get_count_in_progress(count_id)
        await self.recalculate_count_totals(count_id)

        completed = await self._transition(
            count_id,
            [CountStatus.IN_PROGRESS],
            {
                "status": CountStatus.COMPLETED,
                "completed_by": self.scope.user_id,
                "completed_at": datetime.now(timezone.utc),
            },
            commit=False
        )
        if not completed:
            raise ValidationError(f"Inventory count {count_id} was already completed or closed")

        try:
            reconciliation = await CountReconciliationService(self.db, self.scope).commit_count(count_id)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error completing count {count_id}, count left in progress: {error_message(e)}")
            raise
        log_user_action(self.scope.user_id, "COMPLETE", "inventory_count", count_id)

        return await self.get_count(count_id), reconciliation

    async def cancel_inventory_count(self, count_id: int) -> InventoryCount:
        inventory_count = await self.get_count(count_id)
        cancelled = await self._transition(
            count_id, [CountStatus.IN_PROGRESS], {"status": CountStatus.CANCELLED}
        )
        if not cancelled:
            raise ValidationError(f"Inventory count is {inventory_count.status.value} and cannot be cancelled")
        log_user_action(self.scope.user_id, "CANCEL", "inventory_count", count_id)
        return await self.get_count(count_id)

    async def void_inventory_count(self, count_id: int, reason: str) -> InventoryCount:
        """Soft-delete a count for compliance; stock already committed is left as is"""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void an inventory count")
        await self.get_count(count_id)

        voided = await self._transition(
            count_id,
            [CountStatus.IN_PROGRESS, CountStatus.COMPLETED, CountStatus.CANCELLED],
            {
                "status": CountStatus.VOIDED,
                "void_reason": reason.strip(),
                "voided_by": self.scope.user_id,
                "voided_at": datetime.now(timezone.utc),
            }
        )
        if not voided:
            raise ValidationError("Inventory count is already voided")
        log_user_action(self.scope.user_id, "VOID", "inventory_count", count_id)
        return await self.get_count(count_id)

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    async def repair_expected_quantities(self, count_id: int) -> RepairResult:
        """Recompute every line baseline from the count's template, or live stock without one"""
        inventory_count = await self.get_count(count_id)
        if inventory_count.status == CountStatus.VOIDED:
            raise ValidationError("Cannot repair a voided inventory count")

        lines = (
            await self.db.execute(
                select(
                    InventoryCountItem.id,
                    InventoryCountItem.item_id,
                    InventoryCountItem.in_stock_quantity
                ).where(InventoryCountItem.count_id == count_id)
            )
        ).all()

        if inventory_count.template_id:
            result = await self.db.execute(
                select(
                    InventoryTemplateItem.item_id,
                    InventoryTemplateItem.expected_quantity,
                    InventoryItem.current_stock
                )
                .join(InventoryItem, InventoryTemplateItem.item_id == InventoryItem.id)
                .where(
                    and_(
                        InventoryTemplateItem.template_id == inventory_count.template_id,
                        InventoryTemplateItem.is_deleted == False
                    )
                )
            )
            baselines = {
                row.item_id: template_baseline(row.expected_quantity, row.current_stock)
                for row in result.all()
            }
            source = f"template {inventory_count.template_id}"
        else:
            item_ids = {line.item_id for line in lines}
            result = await self.db.execute(
                select(InventoryItem.id, InventoryItem.current_stock).where(
                    and_(
                        InventoryItem.id.in_(item_ids),
                        InventoryItem.organization_id == self.scope.organization_id
                    )
                )
            )
            baselines = {row.id: Decimal(row.current_stock or 0) for row in result.all()}
            source = "current stock"

        updated = 0
        for line in lines:
            target = baselines.get(line.item_id)
            if target is None:
                continue
            if line.in_stock_quantity is not None and Decimal(line.in_stock_quantity) == target:
                continue
            await self.db.execute(
                update(InventoryCountItem)
                .where(InventoryCountItem.id == line.id)
                .values(in_stock_quantity=target, updated_by=self.scope.user_id)
                .execution_options(synchronize_session=False)
            )
            updated += 1

        await self.db.commit()
        await self.recalculate_count_totals(count_id)

        logger.info(f"Repaired expected quantities for {updated}/{len(lines)} items of count {count_id} using {source}")
        log_user_action(self.scope.user_id, "REPAIR", "inventory_count", count_id)
        return RepairResult(total_lines=len(lines), updated_lines=updated)
