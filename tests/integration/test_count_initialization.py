import pytest
from decimal import Decimal
from sqlalchemy.future import select
from count_engine.auth.scope import CallerScope
from count_engine.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from count_engine.models.inventory.inventory_count_item import InventoryCountItem
from count_engine.models.shared.enums import CountStatus
from count_engine.schemas.inventory.inventory_count import InventoryCountCreate
from count_engine.services.inventory.inventory_count_service import InventoryCountService
from tests.integration.conftest import add_item, add_template, ORGANIZATION_ID


async def baselines(service: InventoryCountService, count_id: int):
    return {line.item_id: line.in_stock_quantity for line in await service.get_count_items(count_id)}


@pytest.mark.asyncio
class TestCountInitialization:
    """Seeding count lines from the active catalog or a template"""

    async def test_catalog_snapshot(self, count_service, catalog):
        """Without a template every active item is seeded with its live stock"""
        count = await count_service.create_inventory_count(InventoryCountCreate())

        assert count.status == CountStatus.IN_PROGRESS
        assert count.organization_id == ORGANIZATION_ID
        assert count.total_items_count == 3
        assert count.completion_percentage == Decimal("0")
        assert count.variance_count == 0

        lines = await baselines(count_service, count.id)
        assert lines == {
            catalog["flour"].id: Decimal("10"),
            catalog["sugar"].id: Decimal("8"),
            catalog["salt"].id: Decimal("5"),
        }

    async def test_lines_start_uncounted(self, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        for line in await count_service.get_count_items(count.id):
            assert line.actual_quantity is None
            assert line.counted_at is None

    async def test_template_baselines(self, db, count_service, catalog):
        """Template quantity wins, live stock fills in only when it is unset; zero is kept"""
        template = await add_template(db, "Morning dry store", {
            catalog["flour"].id: "12",
            catalog["sugar"].id: None,
            catalog["salt"].id: "0",
            catalog["retired"].id: "4",
        })

        count = await count_service.create_inventory_count(InventoryCountCreate(template_id=template.id))

        assert count.template_id == template.id
        assert count.total_items_count == 3
        lines = await baselines(count_service, count.id)
        assert lines == {
            catalog["flour"].id: Decimal("12"),
            catalog["sugar"].id: Decimal("8"),
            catalog["salt"].id: Decimal("0"),
        }

    async def test_empty_catalog(self, db, session_factory):
        """An organization without items gets an empty count at 0%"""
        service = InventoryCountService(db, CallerScope(organization_id=42, user_id=1), session_factory)
        count = await service.create_inventory_count(InventoryCountCreate())

        assert count.total_items_count == 0
        assert count.completion_percentage == Decimal("0")
        assert await service.get_count_items(count.id) == []

    async def test_other_organization_items_are_excluded(self, db, session_factory, other_scope, catalog):
        service = InventoryCountService(db, other_scope, session_factory)
        count = await service.create_inventory_count(InventoryCountCreate())
        lines = await baselines(service, count.id)
        assert lines == {catalog["foreign"].id: Decimal("99")}

    async def test_initialize_twice_is_rejected(self, db, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())

        with pytest.raises(ValidationError):
            await count_service.initialize_count_items(count.id)

        result = await db.execute(
            select(InventoryCountItem).where(InventoryCountItem.count_id == count.id)
        )
        assert len(result.scalars().all()) == 3

    async def test_unknown_template(self, count_service, catalog):
        with pytest.raises(NotFoundError):
            await count_service.create_inventory_count(InventoryCountCreate(template_id=9999))

    async def test_template_of_other_organization(self, db, count_service, catalog):
        template = await add_template(db, "Not ours", {catalog["foreign"].id: "1"}, organization_id=2)
        with pytest.raises(NotFoundError):
            await count_service.create_inventory_count(InventoryCountCreate(template_id=template.id))

    async def test_count_lookup_is_scoped(self, db, session_factory, other_scope, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        stranger = InventoryCountService(db, other_scope, session_factory)
        with pytest.raises(NotFoundError):
            await stranger.get_count(count.id)

    async def test_invalid_count_id(self, count_service):
        with pytest.raises(ValidationError):
            await count_service.get_count(0)

    async def test_missing_scope(self, db):
        with pytest.raises(AuthenticationError):
            InventoryCountService(db, CallerScope(user_id=1))
        with pytest.raises(AuthenticationError):
            InventoryCountService(db, CallerScope(organization_id=1))

    async def test_new_item_after_start_is_not_added(self, db, count_service, catalog):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await add_item(db, "Late Arrival", "2")
        assert len(await count_service.get_count_items(count.id)) == 3

    async def test_list_counts(self, count_service, catalog):
        first = await count_service.create_inventory_count(InventoryCountCreate(notes="first"))
        second = await count_service.create_inventory_count(InventoryCountCreate(notes="second"))
        await count_service.void_inventory_count(first.id, "entered twice")

        page = await count_service.get_inventory_counts()
        assert [c.id for c in page["data"]] == [second.id]
        assert page["count"] == 1

        page = await count_service.get_inventory_counts(include_voided=True)
        assert {c.id for c in page["data"]} == {first.id, second.id}

        page = await count_service.get_inventory_counts(status=CountStatus.VOIDED)
        assert [c.id for c in page["data"]] == [first.id]
