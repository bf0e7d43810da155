import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from stock_reconciler.db.database import Base, enable_sqlite_savepoints, get_db
from stock_reconciler.core.config import settings
from stock_reconciler.models.store import Store
from stock_reconciler.models.supplier import Supplier
from stock_reconciler.models.product import Product
import stock_reconciler.models  # noqa: F401  register all tables


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory test database."""
    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    enable_sqlite_savepoints(engine)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_maker):
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client against the app with the test database."""
    from main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def store(db_session):
    store = Store(name="Main Street")
    db_session.add(store)
    await db_session.commit()
    return store


@pytest.fixture
async def supplier(db_session):
    supplier = Supplier(name="Bio Großhandel", code="BIO_GROSSHANDEL")
    db_session.add(supplier)
    await db_session.commit()
    return supplier


@pytest.fixture
async def products(db_session):
    """Three catalogue products keyed by barcode"""
    items = [
        Product(sku="SKU-001", barcode="4001", name="Oat Milk"),
        Product(sku="SKU-002", barcode="4002", name="Rye Bread"),
        Product(sku="SKU-003", barcode="4003", name="Honey"),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return {product.barcode: product for product in items}
