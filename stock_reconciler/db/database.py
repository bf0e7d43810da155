import logging

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.orm import DeclarativeBase

from stock_reconciler.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def async_database_url(raw_database_url: str) -> str:
    """Ensure an async driver is specified in the database URL"""
    if raw_database_url.startswith("postgresql://"):
        return raw_database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if raw_database_url.startswith("sqlite://"):
        return raw_database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return raw_database_url


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT/ROLLBACK TO behave on SQLite"""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def upsert(db: AsyncSession, model):
    """Dialect specific INSERT supporting ON CONFLICT for the session's bind"""
    if db.bind.dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


database_url = async_database_url(settings.DATABASE_URL)
logger.debug(f"Using database driver {database_url.split('://', 1)[0]}")

# Create async engine
engine = create_async_engine(
    database_url,
    echo=settings.DEBUG,
    future=True
)

if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

# Create async session maker
async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncSession:
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()
