"""Invariant checks for category create, update and delete"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.exceptions import (
    CategoryNotFound,
    HasChildren,
    HierarchyCycle,
    NameDuplicate,
    OwnerMismatch,
    TypeMismatch,
)
from category_tree.models.category import Category
from category_tree.services import tree
from category_tree.services.pipeline import SavePipeline, require_fields

logger = logging.getLogger(__name__)


def _is_unset(value) -> bool:
    return value is None or value == ""


async def inherit_from_parent(db: AsyncSession, category: Category, creating: bool):
    """Owner and domain type come from the parent when unset and must match it when set"""
    if category.parent_id is None:
        return

    if category.id is not None and category.parent_id == category.id:
        raise HierarchyCycle(category_id=category.id, parent_id=category.parent_id)

    parent = await db.get(Category, category.parent_id)
    if parent is None:
        raise CategoryNotFound(category_id=category.parent_id)

    if not creating and category.id is not None:
        # The new parent may not sit below the category itself
        async for ancestor in tree.iter_ancestors(db, parent):
            if ancestor.id == category.id:
                raise HierarchyCycle(category_id=category.id, parent_id=parent.id)

    if _is_unset(category.owner_id):
        category.owner_id = parent.owner_id
    elif category.owner_id != parent.owner_id:
        raise OwnerMismatch(owner_id=category.owner_id, parent_owner_id=parent.owner_id)

    if _is_unset(category.domain_type):
        category.domain_type = parent.domain_type
    elif category.domain_type != parent.domain_type:
        raise TypeMismatch(domain_type=category.domain_type, parent_domain_type=parent.domain_type)


async def unique_name(db: AsyncSession, category: Category, creating: bool):
    """Names are unique across all levels within (owner, domain type)"""
    stmt = select(Category.id).where(
        Category.owner_id == category.owner_id,
        Category.domain_type == category.domain_type,
        Category.name == category.name,
    )
    if category.id is not None:
        stmt = stmt.where(Category.id != category.id)
    existing = (await db.execute(stmt.limit(1))).scalar_one_or_none()
    if existing is not None:
        raise NameDuplicate(name=category.name, owner_id=category.owner_id, domain_type=category.domain_type)


category_pipeline = SavePipeline([inherit_from_parent, require_fields, unique_name])


async def guard_delete(db: AsyncSession, category: Category):
    """A category with children cannot be deleted"""
    if await tree.has_children(db, category):
        raise HasChildren(category_id=category.id, name=category.name)
