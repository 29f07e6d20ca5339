import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncGenerator, Iterator, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, event
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, declared_attr, relationship
from sqlalchemy.sql import func

from academic_records.core.config import get_engine_options, settings
from academic_records.core.exceptions import StoreUnavailable
from academic_records.core.logging import logger


def build_engine(url: Optional[str] = None, **overrides) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys switched on"""
    url = url or settings.DATABASE_URL
    options = get_engine_options()
    if url.startswith("sqlite"):
        for key in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
            options.pop(key, None)
    options.update(overrides)
    new_engine = create_async_engine(url, **options)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,    # Registration results are read after commit
        autoflush=False            # Explicit flush management
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


class BaseModel:
    """Base model class with common attributes"""
    id = Column(Integer, primary_key=True, index=True)


Base = declarative_base(cls=BaseModel)


class TimestampMixin:
    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TenantModel(TimestampMixin, Base):
    """Base class for models that belong to an institution"""
    __abstract__ = True

    @declared_attr
    def institution_id(cls):
        return Column(
            Integer,
            ForeignKey("institutions.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )

    @declared_attr
    def institution(cls):
        return relationship("Institution")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate transport and timeout failures from the store into StoreUnavailable"""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError, TimeoutError) as e:
        logger.error(f"Store unavailable during {operation}: {type(e).__name__}")
        raise StoreUnavailable(
            f"Store unavailable during {operation}",
            details={"operation": operation}
        ) from e


@asynccontextmanager
async def get_db_context(
    factory: Optional[async_sessionmaker] = None
) -> AsyncGenerator[AsyncSession, None]:
    """
    Unit-of-work session: committed on success, rolled back on error.
    Usage: async with get_db_context() as session:
    """
    session = (factory or AsyncSessionLocal)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Initialize database tables"""
    import academic_records.models  # noqa: F401  registers every table on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
