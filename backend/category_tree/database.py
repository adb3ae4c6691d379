"""
Database setup (async SQLAlchemy)
"""
from sqlalchemy import Column, DateTime, Integer, event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from category_tree.config import settings

# Async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    future=True
)


def enable_sqlite_savepoints(async_engine):
    """Have SQLAlchemy emit BEGIN itself so SAVEPOINT works with the sqlite3 driver"""
    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

# Session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class
Base = declarative_base()


class TimestampMixin:
    """Mixin for created_at and updated_at."""
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AuditMixin(TimestampMixin):
    """Mixin for creator/updater identity, stamped by the audit hook on flush."""
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)


async def get_db():
    """Dependency for getting DB session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

