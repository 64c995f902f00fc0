import pytest
from decimal import Decimal
from sqlalchemy import update
from count_engine.core.exceptions import ValidationError
from count_engine.models.inventory.inventory_template_item import InventoryTemplateItem
from count_engine.models.inventory.item import InventoryItem
from count_engine.schemas.inventory.inventory_count import InventoryCountCreate
from tests.integration.conftest import add_template


async def baselines(service, count_id):
    return {line.item_id: line.in_stock_quantity for line in await service.get_count_items(count_id)}


async def set_stock(db, item_id, quantity):
    await db.execute(update(InventoryItem).where(InventoryItem.id == item_id).values(current_stock=Decimal(quantity)))
    await db.commit()


@pytest.mark.asyncio
class TestRepairExpectedQuantities:
    """Recomputing baselines of an existing count"""

    async def test_catalog_count_follows_live_stock(self, db, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await set_stock(db, catalog["sugar"].id, "20")

        result = await count_service.repair_expected_quantities(count.id)

        assert result.total_lines == 3
        assert result.updated_lines == 1
        assert (await baselines(count_service, count.id))[catalog["sugar"].id] == Decimal("20")

    async def test_second_run_changes_nothing(self, db, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await set_stock(db, catalog["flour"].id, "1")
        await set_stock(db, catalog["salt"].id, "2")

        first = await count_service.repair_expected_quantities(count.id)
        second = await count_service.repair_expected_quantities(count.id)

        assert first.updated_lines == 2
        assert second.updated_lines == 0
        assert second.total_lines == 3

    async def test_template_count_uses_template(self, db, count_service, catalog):
        template = await add_template(db, "Walk-in", {
            catalog["flour"].id: "12",
            catalog["sugar"].id: None,
        })
        count = await count_service.create_inventory_count(InventoryCountCreate(template_id=template.id))

        await db.execute(
            update(InventoryTemplateItem)
            .where(InventoryTemplateItem.item_id == catalog["flour"].id)
            .values(expected_quantity=Decimal("15"))
        )
        await db.commit()
        await set_stock(db, catalog["sugar"].id, "30")

        result = await count_service.repair_expected_quantities(count.id)

        assert result.updated_lines == 2
        assert await baselines(count_service, count.id) == {
            catalog["flour"].id: Decimal("15"),
            catalog["sugar"].id: Decimal("30"),
        }

    async def test_repair_refreshes_variances(self, db, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await count_service.update_count_item(count.id, catalog["flour"].id, Decimal("4"))
        assert (await count_service.get_count(count.id)).variance_count == 1

        await set_stock(db, catalog["flour"].id, "4")
        await count_service.repair_expected_quantities(count.id)

        assert (await count_service.get_count(count.id)).variance_count == 0

    async def test_voided_count(self, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await count_service.void_inventory_count(count.id, "duplicate")

        with pytest.raises(ValidationError):
            await count_service.repair_expected_quantities(count.id)
