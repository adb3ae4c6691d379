"""
Shared fixtures: an in-memory database per test and small tree builders
"""

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from category_tree.database import Base, enable_sqlite_savepoints
from category_tree.models.category import Category, DomainType
from category_tree.services.category_service import CategoryService


OWNER = 1
OTHER_OWNER = 2


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """Test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def service():
    return CategoryService()


@pytest.fixture
def make(db, service):
    """Create a category: a root of (owner, type) or a child inheriting from ``parent``"""
    async def _make(name, parent=None, owner_id=OWNER, domain_type=DomainType.POST):
        if parent is not None:
            return await service.create(db, None, None, name, parent=parent)
        return await service.create(db, owner_id, domain_type, name)
    return _make


@pytest.fixture
def rows(db):
    """Stored (parent_id, display_order) per category name, read straight from the table"""
    async def _rows(owner_id=OWNER, domain_type=DomainType.POST):
        result = await db.execute(
            select(Category.name, Category.parent_id, Category.display_order)
            .where(Category.owner_id == owner_id, Category.domain_type == domain_type.value)
        )
        return {name: (parent_id, display_order) for name, parent_id, display_order in result.all()}
    return _rows


@pytest.fixture
def group(db):
    """Names of one sibling group in display order"""
    async def _group(parent=None, owner_id=OWNER, domain_type=DomainType.POST):
        stmt = select(Category.name, Category.display_order).where(
            Category.owner_id == owner_id,
            Category.domain_type == domain_type.value,
        )
        if parent is None:
            stmt = stmt.where(Category.parent_id.is_(None))
        else:
            stmt = stmt.where(Category.parent_id == parent.id)
        result = await db.execute(stmt.order_by(Category.display_order, Category.id))
        return [(name, order) for name, order in result.all()]
    return _group
