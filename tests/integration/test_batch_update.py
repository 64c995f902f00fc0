import asyncio
import pytest
from decimal import Decimal
from sqlalchemy.exc import OperationalError
from count_engine.core.exceptions import ValidationError
from count_engine.schemas.inventory.inventory_count import CountItemUpdate, InventoryCountCreate
from count_engine.services.inventory import count_batch_service
from count_engine.services.inventory.count_batch_service import CountBatchService, chunked
from tests.integration.conftest import add_item


@pytest.fixture
async def shelf(db):
    """Twenty active items with stock 1..20"""
    return [await add_item(db, f"Shelf Item {n:02d}", str(n)) for n in range(1, 21)]


@pytest.fixture
def batch_service(db, scope, session_factory):
    return CountBatchService(db, scope, session_factory, chunk_size=8, chunk_delay_ms=0)


@pytest.mark.asyncio
class TestBulkUpdate:
    """Bounded concurrent batch entry of counted quantities"""

    async def test_partial_failures_are_reported(self, count_service, batch_service, shelf):
        """K submissions with M bad ones save K-M and report exactly the M"""
        count = await count_service.create_inventory_count(InventoryCountCreate())

        updates = [CountItemUpdate(item_id=item.id, actual_quantity=Decimal("3")) for item in shelf]
        updates += [
            CountItemUpdate(item_id=987654, actual_quantity=Decimal("1")),
            CountItemUpdate(item_id=987655, actual_quantity=Decimal("1")),
        ]
        updates.append(CountItemUpdate(item_id=shelf[0].id, actual_quantity=Decimal("-2")))

        result = await batch_service.bulk_update_count_items(count.id, updates)

        assert result.saved == 20
        assert sorted(f.item_id for f in result.failed) == [shelf[0].id, 987654, 987655]
        messages = {f.item_id: f.error for f in result.failed}
        assert "not part of count" in messages[987654]
        assert "negative" in messages[shelf[0].id]

        lines = await count_service.get_count_items(count.id)
        assert all(line.actual_quantity == Decimal("3") for line in lines)

    async def test_store_errors_leave_lines_unchanged(self, count_service, batch_service, shelf, monkeypatch):
        """Simulated store failures for M of K items: K-M saved, the M lines untouched"""
        count = await count_service.create_inventory_count(InventoryCountCreate())
        broken = {shelf[2].id, shelf[9].id, shelf[17].id}
        original = batch_service._write_count_item

        async def flaky(count_id, submission):
            if submission.item_id in broken:
                raise OperationalError("UPDATE inventory_count_items", {}, Exception("connection reset"))
            return await original(count_id, submission)

        monkeypatch.setattr(batch_service, "_write_count_item", flaky)

        updates = [CountItemUpdate(item_id=item.id, actual_quantity=Decimal("6")) for item in shelf]
        result = await batch_service.bulk_update_count_items(count.id, updates)

        assert result.saved == 17
        assert {f.item_id for f in result.failed} == broken
        assert all("connection reset" in f.error for f in result.failed)

        for line in await count_service.get_count_items(count.id):
            if line.item_id in broken:
                assert line.actual_quantity is None
            else:
                assert line.actual_quantity == Decimal("6")

    async def test_totals_recalculated_once_at_the_end(self, count_service, batch_service, shelf, monkeypatch):
        count = await count_service.create_inventory_count(InventoryCountCreate())

        calls = []
        original = batch_service.count_service.recalculate_count_totals

        async def tracking(count_id):
            calls.append(count_id)
            return await original(count_id)

        monkeypatch.setattr(batch_service.count_service, "recalculate_count_totals", tracking)

        updates = [CountItemUpdate(item_id=item.id, actual_quantity=Decimal(n)) for n, item in enumerate(shelf[:10], start=1)]
        await batch_service.bulk_update_count_items(count.id, updates)

        assert calls == [count.id]
        refreshed = await count_service.get_count(count.id)
        assert refreshed.total_items_count == 20
        assert refreshed.completion_percentage == Decimal("50.00")
        # item n has stock n, counted n: no variances
        assert refreshed.variance_count == 0

    async def test_in_flight_writes_are_bounded(self, db, scope, session_factory, count_service, shelf, monkeypatch):
        service = CountBatchService(db, scope, session_factory, chunk_size=3, chunk_delay_ms=0)
        count = await count_service.create_inventory_count(InventoryCountCreate())

        in_flight = 0
        peak = 0
        original = service._write_count_item

        async def observed(count_id, submission):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.01)
                return await original(count_id, submission)
            finally:
                in_flight -= 1

        monkeypatch.setattr(service, "_write_count_item", observed)

        updates = [CountItemUpdate(item_id=item.id, actual_quantity=Decimal("1")) for item in shelf[:7]]
        result = await service.bulk_update_count_items(count.id, updates)

        assert result.saved == 7
        assert peak <= 3

    async def test_pause_only_between_chunks(self, db, scope, session_factory, count_service, shelf, monkeypatch):
        service = CountBatchService(db, scope, session_factory, chunk_size=3, chunk_delay_ms=50)
        count = await count_service.create_inventory_count(InventoryCountCreate())

        pauses = []
        real_sleep = asyncio.sleep

        async def recording_sleep(delay, *args, **kwargs):
            pauses.append(delay)
            return await real_sleep(delay, *args, **kwargs)

        monkeypatch.setattr(count_batch_service.asyncio, "sleep", recording_sleep)

        updates = [CountItemUpdate(item_id=item.id, actual_quantity=Decimal("1")) for item in shelf[:7]]
        await service.bulk_update_count_items(count.id, updates)

        # 7 updates in chunks of 3 -> 3 chunks -> 2 pauses
        assert pauses.count(0.05) == 2

    async def test_closed_count_rejects_batch(self, count_service, batch_service, shelf):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await count_service.cancel_inventory_count(count.id)

        with pytest.raises(ValidationError):
            await batch_service.bulk_update_count_items(
                count.id, [CountItemUpdate(item_id=shelf[0].id, actual_quantity=Decimal("1"))]
            )

        lines = await count_service.get_count_items(count.id)
        assert all(line.actual_quantity is None for line in lines)

    async def test_empty_batch(self, count_service, batch_service, shelf):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        result = await batch_service.bulk_update_count_items(count.id, [])
        assert result.saved == 0
        assert result.failed == []

    async def test_counted_by_defaults_to_caller(self, count_service, batch_service, scope, shelf):
        count = await count_service.create_inventory_count(InventoryCountCreate())
        await batch_service.bulk_update_count_items(count.id, [
            CountItemUpdate(item_id=shelf[0].id, actual_quantity=Decimal("4"), notes="top shelf"),
            CountItemUpdate(item_id=shelf[1].id, actual_quantity=Decimal("4"), counted_by=99),
        ])

        lines = {line.item_id: line for line in await count_service.get_count_items(count.id)}
        assert lines[shelf[0].id].counted_by == scope.user_id
        assert lines[shelf[0].id].notes == "top shelf"
        assert lines[shelf[0].id].counted_at is not None
        assert lines[shelf[1].id].counted_by == 99


class TestChunked:
    def test_chunk_sizes(self):
        updates = [CountItemUpdate(item_id=n, actual_quantity=Decimal("1")) for n in range(17)]
        assert [len(chunk) for chunk in chunked(updates, 8)] == [8, 8, 1]

    def test_empty(self):
        assert chunked([], 8) == []
