import pytest
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from count_engine.main import app
from count_engine.core.database import get_async_session, Base
from count_engine.auth.scope import CallerScope
from count_engine.models.inventory.category import InventoryCategory
from count_engine.models.inventory.inventory_template import InventoryTemplate
from count_engine.models.inventory.inventory_template_item import InventoryTemplateItem
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.shared.enums import ItemStatus
from count_engine.services.inventory.inventory_count_service import InventoryCountService

ORGANIZATION_ID = 1
OTHER_ORGANIZATION_ID = 2
USER_ID = 7

AUTH_HEADERS = {
    "X-User-Id": str(USER_ID),
    "X-Organization-Id": str(ORGANIZATION_ID),
}


async def add_item(
    db: AsyncSession,
    name: str,
    stock: str = "0",
    organization_id: int = ORGANIZATION_ID,
    sku: Optional[str] = None,
    barcode: Optional[str] = None,
    status: ItemStatus = ItemStatus.ACTIVE,
    category_id: Optional[int] = None
) -> InventoryItem:
    item = InventoryItem(
        organization_id=organization_id,
        name=name,
        sku=sku or f"T-{name.upper().replace(' ', '')}",
        barcode=barcode,
        current_stock=Decimal(stock),
        status=status,
        category_id=category_id,
        created_by=USER_ID
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def add_category(db: AsyncSession, name: str, organization_id: int = ORGANIZATION_ID) -> InventoryCategory:
    category = InventoryCategory(organization_id=organization_id, name=name)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


async def add_template(
    db: AsyncSession,
    name: str,
    expected: Dict[int, Optional[str]],
    organization_id: int = ORGANIZATION_ID
) -> InventoryTemplate:
    """Template with one row per item id; None leaves the expected quantity unset"""
    template = InventoryTemplate(organization_id=organization_id, name=name, is_active=True)
    db.add(template)
    await db.commit()
    await db.refresh(template)

    for position, (item_id, quantity) in enumerate(expected.items()):
        db.add(
            InventoryTemplateItem(
                template_id=template.id,
                item_id=item_id,
                expected_quantity=Decimal(quantity) if quantity is not None else None,
                sort_order=position
            )
        )
    await db.commit()
    return template


@pytest.fixture
async def test_engine(tmp_path):
    """A fresh SQLite file per test; NullPool gives every session its own connection"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'count_engine.db'}",
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def scope() -> CallerScope:
    return CallerScope(organization_id=ORGANIZATION_ID, user_id=USER_ID)


@pytest.fixture
def other_scope() -> CallerScope:
    return CallerScope(organization_id=OTHER_ORGANIZATION_ID, user_id=USER_ID + 1)


@pytest.fixture
def count_service(db, scope, session_factory) -> InventoryCountService:
    return InventoryCountService(db, scope, session_factory)


@pytest.fixture
async def catalog(db) -> Dict[str, InventoryItem]:
    """Flour/Sugar/Salt active in the caller's organization, plus noise the count must skip"""
    items = {
        "flour": await add_item(db, "Flour", "10", barcode="4000000000011"),
        "sugar": await add_item(db, "Sugar", "8"),
        "salt": await add_item(db, "Salt", "5"),
    }
    items["retired"] = await add_item(db, "Retired Syrup", "3", status=ItemStatus.DEACTIVATED)
    items["foreign"] = await add_item(db, "Foreign Oil", "99", organization_id=OTHER_ORGANIZATION_ID)
    return items


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the per-test database"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
