"""Navigation and query scopes over the category forest"""
import logging
from collections import defaultdict
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.config import settings
from category_tree.exceptions import CategoryNotFound, HierarchyCorrupted
from category_tree.models.category import Category, CategoryTreeNode
from category_tree.services import ordering

logger = logging.getLogger(__name__)


class NameMatch(Enum):
    """How a name filter compares against category names"""
    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"

    def clause(self, column, term: str):
        if self is NameMatch.PREFIX:
            return column.startswith(term, autoescape=True)
        if self is NameMatch.SUFFIX:
            return column.endswith(term, autoescape=True)
        if self is NameMatch.CONTAINS:
            return column.contains(term, autoescape=True)
        return column == term


def _category_id(node: Union[Category, int]) -> int:
    return node.id if isinstance(node, Category) else node


async def get_category(db: AsyncSession, category_id: int) -> Category:
    """Get a category by ID or raise CategoryNotFound"""
    category = await db.get(Category, category_id)
    if category is None:
        raise CategoryNotFound(category_id=category_id)
    return category


async def get_parent(db: AsyncSession, node: Category) -> Optional[Category]:
    if node.parent_id is None:
        return None
    return await get_category(db, node.parent_id)


async def children_of(db: AsyncSession, node: Union[Category, int]) -> List[Category]:
    """Children of a category sorted by display order"""
    result = await db.execute(
        select(Category)
        .where(Category.parent_id == _category_id(node))
        .order_by(Category.display_order, Category.id)
    )
    return list(result.scalars().all())


get_children = children_of


async def has_children(db: AsyncSession, node: Union[Category, int]) -> bool:
    count = (await db.execute(
        select(func.count(Category.id)).where(Category.parent_id == _category_id(node))
    )).scalar()
    return bool(count)


async def iter_ancestors(db: AsyncSession, node: Category) -> AsyncIterator[Category]:
    """Yield the category itself, then its parent, up to the root.

    The walk is bounded by ``settings.max_category_depth`` and stops with
    HierarchyCorrupted on a revisited node.
    """
    seen = set()
    current = node
    while current is not None:
        if current.id is not None and current.id in seen:
            raise HierarchyCorrupted(category_id=node.id, reason="cycle", revisited=current.id)
        if len(seen) >= settings.max_category_depth:
            raise HierarchyCorrupted(category_id=node.id, reason="depth", max_depth=settings.max_category_depth)
        seen.add(current.id)
        yield current
        current = await get_parent(db, current)


async def level(db: AsyncSession, node: Category) -> int:
    """1 for a root category, plus one for each ancestor"""
    depth = 0
    async for _ in iter_ancestors(db, node):
        depth += 1
    return depth


async def ancestor_chain(db: AsyncSession, node: Category) -> List[Category]:
    """Categories from the root down to ``node`` (breadcrumbs)"""
    chain = [ancestor async for ancestor in iter_ancestors(db, node)]
    chain.reverse()
    return chain


async def previous_sibling(db: AsyncSession, node: Category) -> Optional[Category]:
    result = await db.execute(
        select(Category)
        .where(ordering.sibling_filter(node.owner_id, node.domain_type, node.parent_id))
        .where(Category.display_order < node.display_order)
        .order_by(Category.display_order.desc(), Category.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def next_sibling(db: AsyncSession, node: Category) -> Optional[Category]:
    result = await db.execute(
        select(Category)
        .where(ordering.sibling_filter(node.owner_id, node.domain_type, node.parent_id))
        .where(Category.display_order > node.display_order)
        .order_by(Category.display_order, Category.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def descendants(db: AsyncSession, node: Category) -> List[Category]:
    """Every category below ``node``, depth first, parents before their children"""
    found: List[Category] = []
    stack = [(child, 1) for child in reversed(await children_of(db, node))]
    while stack:
        current, depth = stack.pop()
        if depth >= settings.max_category_depth:
            raise HierarchyCorrupted(category_id=node.id, reason="depth", max_depth=settings.max_category_depth)
        found.append(current)
        stack.extend((child, depth + 1) for child in reversed(await children_of(db, current)))
    return found


async def list_categories(
    db: AsyncSession,
    owner_id: int,
    domain_type: Optional[str] = None,
    name: Optional[str] = None,
    match: NameMatch = NameMatch.EXACT,
) -> List[Category]:
    """Categories of an owner (optionally one domain type and a name filter) by display order"""
    stmt = select(Category).where(Category.owner_id == owner_id)
    if domain_type is not None:
        stmt = stmt.where(Category.domain_type == _domain_value(domain_type))
    if name is not None:
        stmt = stmt.where(match.clause(Category.name, name))
    result = await db.execute(stmt.order_by(Category.display_order, Category.id))
    return list(result.scalars().all())


async def get_by_name(db: AsyncSession, owner_id: int, domain_type: str, name: str) -> Optional[Category]:
    result = await db.execute(
        select(Category).where(
            Category.owner_id == owner_id,
            Category.domain_type == _domain_value(domain_type),
            Category.name == name,
        )
    )
    return result.scalar_one_or_none()


async def category_tree(db: AsyncSession, owner_id: int, domain_type: str) -> List[CategoryTreeNode]:
    """Nested tree of one owner's categories for one domain type"""
    nodes = await list_categories(db, owner_id, domain_type)
    by_parent: Dict[Optional[int], List[Category]] = defaultdict(list)
    for node in nodes:
        by_parent[node.parent_id].append(node)

    def build(parent_id: Optional[int], depth: int) -> List[CategoryTreeNode]:
        if depth > settings.max_category_depth:
            raise HierarchyCorrupted(owner_id=owner_id, reason="depth", max_depth=settings.max_category_depth)
        return [
            CategoryTreeNode(
                id=node.id,
                name=node.name,
                display_order=node.display_order,
                image=node.image,
                children=build(node.id, depth + 1),
            )
            for node in by_parent.get(parent_id, [])
        ]

    return build(None, 1)


def _domain_value(domain_type) -> str:
    return domain_type.value if isinstance(domain_type, Enum) else domain_type
