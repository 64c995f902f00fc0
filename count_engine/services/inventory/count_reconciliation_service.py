import logging
from decimal import Decimal
from typing import Optional
from sqlalchemy import and_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from count_engine.auth.scope import CallerScope, require_caller_scope
from count_engine.core.config import settings
from count_engine.core.exceptions import NotFoundError, error_message
from count_engine.core.logging import log_user_action
from count_engine.models.inventory.inventory_count import InventoryCount
from count_engine.models.inventory.inventory_count_item import InventoryCountItem
from count_engine.models.inventory.inventory_transaction import InventoryTransaction
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.shared.enums import InventoryTransactionType, TransactionReferenceType
from count_engine.schemas.inventory.inventory_count import BulkUpdateFailure, CommitResult

logger = logging.getLogger(__name__)


class CountReconciliationService:
    """Writes counted quantities back into catalog stock and the adjustment ledger.

    Counted quantities overwrite ``current_stock`` unconditionally. Each line
    whose count differs from the baseline captured at initialization by more
    than the variance epsilon gets one ADJUSTMENT transaction. A failed
    transaction insert is logged and reported, never rolled back into the
    stock writes.

    The stock writes are committed together with whatever the session already
    holds pending, so a caller can make its own status change atomic with them.

    Not idempotent: callers must commit a count at most once
    (``InventoryCountService.complete_inventory_count`` guards this).
    """

    def __init__(self, db: AsyncSession, scope: CallerScope, variance_epsilon: Optional[Decimal] = None):
        self.scope = require_caller_scope(scope)
        self.db = db
        self.variance_epsilon = (
            Decimal(str(variance_epsilon)) if variance_epsilon is not None
            else Decimal(str(settings.VARIANCE_EPSILON))
        )

    async def commit_count(self, count_id: int) -> CommitResult:
        count_result = await self.db.execute(
            select(InventoryCount.id).where(
                and_(
                    InventoryCount.id == count_id,
                    InventoryCount.organization_id == self.scope.organization_id
                )
            )
        )
        if count_result.scalar_one_or_none() is None:
            raise NotFoundError("Inventory count not found")

        result = CommitResult(count_id=count_id)

        lines = (
            await self.db.execute(
                select(
                    InventoryCountItem.item_id,
                    InventoryCountItem.in_stock_quantity,
                    InventoryCountItem.actual_quantity
                )
                .where(
                    and_(
                        InventoryCountItem.count_id == count_id,
                        InventoryCountItem.actual_quantity.isnot(None)
                    )
                )
                .order_by(InventoryCountItem.id)
            )
        ).all()

        if not lines:
            # still ends the transaction holding the caller's pending writes
            await self.db.commit()
            logger.info(f"Count {count_id} has no counted items, nothing to reconcile")
            return result

        stock_result = await self.db.execute(
            select(InventoryItem.id, InventoryItem.current_stock).where(
                and_(
                    InventoryItem.id.in_({line.item_id for line in lines}),
                    InventoryItem.organization_id == self.scope.organization_id
                )
            )
        )
        previous_stock = {row.id: row.current_stock for row in stock_result.all()}

        # Stock first: the counted quantity is the authoritative value
        try:
            for line in lines:
                # pre-commit stock is logged so out-of-order commits can be traced later
                logger.info(
                    f"Count {count_id}: item {line.item_id} stock {previous_stock.get(line.item_id)} "
                    f"-> {line.actual_quantity} (baseline {line.in_stock_quantity})"
                )
                write = await self.db.execute(
                    update(InventoryItem)
                    .where(
                        and_(
                            InventoryItem.id == line.item_id,
                            InventoryItem.organization_id == self.scope.organization_id
                        )
                    )
                    .values(current_stock=line.actual_quantity, updated_by=self.scope.user_id)
                    .execution_options(synchronize_session=False)
                )
                result.items_updated += write.rowcount
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error writing counted stock for count {count_id}: {str(e)}")
            raise

        # Then the audit trail, one adjustment per real variance
        for line in lines:
            delta = Decimal(line.actual_quantity) - Decimal(line.in_stock_quantity or 0)
            if abs(delta) <= self.variance_epsilon:
                continue
            try:
                await self._record_adjustment(count_id, line.item_id, line.in_stock_quantity, line.actual_quantity, delta)
                result.adjustments_created += 1
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Error creating adjustment transaction for item {line.item_id} in count {count_id}: {str(e)}")
                result.audit_failures.append(BulkUpdateFailure(item_id=line.item_id, error=error_message(e)))

        logger.info(
            f"Reconciled count {count_id}: {result.items_updated} stock levels updated, "
            f"{result.adjustments_created} adjustments, {len(result.audit_failures)} audit failures"
        )
        log_user_action(self.scope.user_id, "RECONCILE", "inventory_count", count_id)
        return result

    async def _record_adjustment(
        self,
        count_id: int,
        item_id: int,
        expected: Decimal,
        actual: Decimal,
        delta: Decimal
    ) -> InventoryTransaction:
        transaction = InventoryTransaction(
            organization_id=self.scope.organization_id,
            item_id=item_id,
            transaction_type=InventoryTransactionType.ADJUSTMENT,
            quantity=delta,
            reference_type=TransactionReferenceType.INVENTORY_COUNT.value,
            reference_id=count_id,
            notes=f"Inventory count #{count_id} adjustment: expected {expected}, counted {actual}",
            created_by=self.scope.user_id
        )
        self.db.add(transaction)
        await self.db.commit()
        return transaction
