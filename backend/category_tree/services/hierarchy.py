"""Structural changes to a category tree.

Promote, demote, swap and the same-level order moves. Each function mutates
the affected categories and flushes; committing (or rolling back) is up to
the caller so that one operation is one transaction. Every group touched is
left numbered 1..n.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.exceptions import (
    OwnerMismatch,
    TypeMismatch,
    SWAP_OWNER_MISMATCH,
    SWAP_TYPE_MISMATCH,
)
from category_tree.models.category import Category
from category_tree.services import ordering, tree

logger = logging.getLogger(__name__)

# Categories at these levels are not promoted: a root has nowhere to go and
# a second level category would turn into a root.
PROMOTE_MIN_LEVEL = 3


async def promote(db: AsyncSession, category: Category) -> bool:
    """Move a category one level up, right after its former parent.

    Returns False (and changes nothing) for level 1 and 2 categories.
    """
    category_level = await tree.level(db, category)
    if category_level < PROMOTE_MIN_LEVEL:
        logger.debug(f"Promote of category {category.id} skipped at level {category_level}")
        return False

    parent = await tree.get_parent(db, category)
    source_parent_id = category.parent_id

    await ordering.shift_insert(db, category, parent.parent_id, after=parent)
    category.parent_id = parent.parent_id
    await ordering.close_gap(db, category.owner_id, category.domain_type, source_parent_id, exclude_id=category.id)
    await db.flush()

    logger.info(f"Promoted category {category.id} to level {category_level - 1} after {parent.id}")
    return True


async def demote(db: AsyncSession, category: Category) -> bool:
    """Move a category one level down, as the last child of its previous sibling.

    Returns False (and changes nothing) when the category is first in its group.
    """
    previous = await tree.previous_sibling(db, category)
    if previous is None:
        logger.debug(f"Demote of category {category.id} skipped, no previous sibling")
        return False

    source_parent_id = category.parent_id
    category.display_order = await ordering.next_display_order(
        db, category.owner_id, category.domain_type, previous.id, exclude_id=category.id
    )
    category.parent_id = previous.id
    await ordering.close_gap(db, category.owner_id, category.domain_type, source_parent_id, exclude_id=category.id)
    await db.flush()

    logger.info(f"Demoted category {category.id} under {previous.id} at {category.display_order}")
    return True


async def swap(db: AsyncSession, source: Category, target: Category) -> bool:
    """Exchange the tree positions of two categories of the same owner and type.

    Siblings only exchange display order. Categories in different groups
    trade places and children stay where they hang, so each category adopts
    the other's children: the target's children move under the source, the
    parents are exchanged, and the source's remaining children move under
    the target.
    """
    if source.owner_id != target.owner_id:
        raise OwnerMismatch(*SWAP_OWNER_MISMATCH, source=source.owner_id, target=target.owner_id)
    if source.domain_type != target.domain_type:
        raise TypeMismatch(*SWAP_TYPE_MISMATCH, source=source.domain_type, target=target.domain_type)
    if source.id == target.id:
        return False

    if source.parent_id == target.parent_id:
        ordering.swap_display_order(source, target)
        await db.flush()
        logger.info(f"Swapped display order of categories {source.id} and {target.id}")
        return True

    if source.parent_id == target.id:
        # The parent of the pair always plays the source
        source, target = target, source

    source_parent_id = source.parent_id
    target_parent_id = target.parent_id

    migrated = set()
    for child in await tree.children_of(db, target):
        child.parent_id = source.id
        migrated.add(child.id)

    if target_parent_id == source.id:
        target.parent_id = source_parent_id
        source.parent_id = target.id
    else:
        source.parent_id = target_parent_id
        target.parent_id = source_parent_id
    ordering.swap_display_order(source, target)

    for child in await tree.children_of(db, source):
        if child.id not in migrated:
            child.parent_id = target.id
    await db.flush()

    logger.info(f"Swapped tree positions of categories {source.id} and {target.id}")
    return True


async def order_up(db: AsyncSession, category: Category) -> bool:
    """Exchange places with the previous sibling; False when already first"""
    previous = await tree.previous_sibling(db, category)
    if previous is None:
        return False
    ordering.swap_display_order(category, previous)
    await db.flush()
    return True


async def order_down(db: AsyncSession, category: Category) -> bool:
    """Exchange places with the next sibling; False when already last"""
    following = await tree.next_sibling(db, category)
    if following is None:
        return False
    ordering.swap_display_order(category, following)
    await db.flush()
    return True


async def reattach(db: AsyncSession, category: Category, source_parent_id: Optional[int]) -> bool:
    """Finish a reparenting done through an update.

    ``category.parent_id`` already holds the new parent. The category goes to
    the end of its new group and the group it left is renumbered.
    """
    if category.parent_id == source_parent_id:
        return False
    category.display_order = await ordering.next_display_order(
        db, category.owner_id, category.domain_type, category.parent_id, exclude_id=category.id
    )
    await ordering.close_gap(db, category.owner_id, category.domain_type, source_parent_id, exclude_id=category.id)
    await db.flush()
    logger.info(f"Moved category {category.id} under {category.parent_id} at {category.display_order}")
    return True
