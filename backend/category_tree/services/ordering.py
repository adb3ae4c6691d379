"""Display order bookkeeping for sibling groups.

A sibling group is every category with the same owner, domain type and
parent (roots share ``parent_id IS NULL``). Inside a group ``display_order``
runs 1..n without gaps, and every group query is sorted by it.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.models.category import Category

logger = logging.getLogger(__name__)


def sibling_filter(owner_id: int, domain_type: str, parent_id: Optional[int]):
    """WHERE clause selecting one sibling group"""
    if parent_id is None:
        parent_clause = Category.parent_id.is_(None)
    else:
        parent_clause = Category.parent_id == parent_id
    return and_(
        Category.owner_id == owner_id,
        Category.domain_type == domain_type,
        parent_clause,
    )


def sibling_query(owner_id: int, domain_type: str, parent_id: Optional[int], exclude_id: Optional[int] = None):
    stmt = select(Category).where(sibling_filter(owner_id, domain_type, parent_id))
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    return stmt.order_by(Category.display_order, Category.id)


async def sibling_group(
    db: AsyncSession,
    owner_id: int,
    domain_type: str,
    parent_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> List[Category]:
    """Get one sibling group sorted by display order"""
    result = await db.execute(sibling_query(owner_id, domain_type, parent_id, exclude_id))
    return list(result.scalars().all())


async def next_display_order(
    db: AsyncSession,
    owner_id: int,
    domain_type: str,
    parent_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> int:
    """Display order for a category appended at the end of a group"""
    stmt = select(func.max(Category.display_order)).where(sibling_filter(owner_id, domain_type, parent_id))
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    max_order = (await db.execute(stmt)).scalar()
    return (max_order or 0) + 1


def swap_display_order(first: Category, second: Category):
    """Exchange display order between two categories"""
    first.display_order, second.display_order = second.display_order, first.display_order


async def shift_insert(
    db: AsyncSession,
    node: Category,
    parent_id: Optional[int],
    after: Optional[Category] = None,
) -> int:
    """Open a slot right after ``after`` in the group under ``parent_id`` and put ``node`` there.

    Every sibling positioned after ``after`` moves down by one. With
    ``after=None`` the node becomes the first of the group.
    """
    position = after.display_order if after is not None else 0
    group = await sibling_group(db, node.owner_id, node.domain_type, parent_id, exclude_id=node.id)
    shifted = 0
    for sibling in group:
        if sibling.display_order > position:
            sibling.display_order += 1
            shifted += 1
    node.display_order = position + 1
    logger.debug(f"Inserted category {node.id} at {node.display_order} under {parent_id}, shifted {shifted}")
    return node.display_order


async def close_gap(
    db: AsyncSession,
    owner_id: int,
    domain_type: str,
    parent_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> int:
    """Renumber a group to 1..n keeping its current order. Returns how many rows changed."""
    group = await sibling_group(db, owner_id, domain_type, parent_id, exclude_id=exclude_id)
    changed = 0
    for position, sibling in enumerate(group, start=1):
        if sibling.display_order != position:
            sibling.display_order = position
            changed += 1
    if changed:
        logger.debug(f"Renumbered {changed} categories under {parent_id} (owner={owner_id}, type={domain_type})")
    return changed
