"""Service for managing per-owner category trees"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from category_tree.exceptions import (
    CategoryError,
    NameDuplicate,
    OwnerMismatch,
    TypeMismatch,
    CONTENT_OWNER_MISMATCH,
    CONTENT_TYPE_MISMATCH,
)
from category_tree.models.category import (
    Category,
    CategoryCreate,
    CategoryResponse,
    CategoryTreeNode,
    CategoryUpdate,
)
from category_tree.services import hierarchy, images, ordering, tree
from category_tree.services.pipeline import SavePipeline
from category_tree.services.tree import NameMatch
from category_tree.services.validation import category_pipeline, guard_delete

logger = logging.getLogger(__name__)

CategoryRef = Union[Category, int]


class CategoryService:
    """Service for category CRUD and restructuring.

    Every mutating method runs in a savepoint and commits on success. A
    rejected call rolls back its savepoint and re-raises; any other failure
    rolls back the whole transaction.
    """

    def __init__(self, pipeline: SavePipeline = category_pipeline):
        self.pipeline = pipeline

    @asynccontextmanager
    async def _transaction(self, db: AsyncSession, action: str, name: Optional[str] = None):
        # A rejected operation rolls back only its own savepoint
        try:
            async with db.begin_nested():
                yield
            await db.commit()
        except IntegrityError as e:
            if "UNIQUE constraint failed" in str(e) or "duplicate key" in str(e):
                logger.info(f"Rejected {action}: duplicate name {name!r}")
                raise NameDuplicate(name=name) from e
            await db.rollback()
            logger.error(f"Error {action}: {e}")
            raise
        except CategoryError as e:
            logger.info(f"Rejected {action}: {e}")
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Error {action}: {e}")
            raise

    async def _resolve(self, db: AsyncSession, category: CategoryRef) -> Category:
        if isinstance(category, Category):
            return category
        return await tree.get_category(db, category)

    # Create / update / delete

    async def create_category(self, db: AsyncSession, category_data: CategoryCreate) -> Category:
        """Create a category as the last of its sibling group"""
        async with self._transaction(db, "creating category", name=category_data.name):
            category = Category(
                owner_id=category_data.owner_id,
                domain_type=category_data.domain_type,
                name=category_data.name,
                image=category_data.image,
                parent_id=category_data.parent_id,
            )
            await self.pipeline.run(db, category, creating=True)
            category.display_order = await ordering.next_display_order(
                db, category.owner_id, category.domain_type, category.parent_id
            )
            db.add(category)
            await db.flush()

        await db.refresh(category)
        logger.info(
            f"Created category {category.id} '{category.name}' "
            f"(owner={category.owner_id}, type={category.domain_type}, parent={category.parent_id})"
        )
        return category

    async def create(
        self,
        db: AsyncSession,
        owner_id: Optional[int],
        domain_type: Optional[str],
        name: Optional[str],
        parent: Optional[CategoryRef] = None,
        image: Optional[str] = None,
    ) -> Category:
        """Shortcut for create_category with plain arguments"""
        parent_id = parent.id if isinstance(parent, Category) else parent
        domain_type = getattr(domain_type, "value", domain_type)
        return await self.create_category(
            db,
            CategoryCreate(owner_id=owner_id, domain_type=domain_type, name=name, parent_id=parent_id, image=image),
        )

    async def update_category(self, db: AsyncSession, category: CategoryRef, category_data: CategoryUpdate) -> Category:
        """Update name, image or parent. Only fields explicitly set are applied."""
        fields = category_data.model_fields_set
        async with self._transaction(db, f"updating category {getattr(category, 'id', category)}", name=category_data.name):
            category = await self._resolve(db, category)
            source_parent_id = category.parent_id

            if "name" in fields:
                category.name = category_data.name
            if "image" in fields:
                category.image = category_data.image
            if "parent_id" in fields:
                category.parent_id = category_data.parent_id

            await self.pipeline.run(db, category, creating=False)
            if category.parent_id != source_parent_id:
                await hierarchy.reattach(db, category, source_parent_id)
            await db.flush()

        return category

    async def rename_category(self, db: AsyncSession, category: CategoryRef, new_name: str) -> Category:
        return await self.update_category(db, category, CategoryUpdate(name=new_name))

    async def delete_category(self, db: AsyncSession, category: CategoryRef, hierarchically: bool = False):
        """Delete a category.

        A category with children is rejected with HasChildren unless
        ``hierarchically`` is set, in which case the whole subtree goes.
        """
        async with self._transaction(db, f"deleting category {getattr(category, 'id', category)}"):
            category = await self._resolve(db, category)
            owner_id, domain_type, parent_id = category.owner_id, category.domain_type, category.parent_id

            if hierarchically:
                # Children before their parents
                for descendant in reversed(await tree.descendants(db, category)):
                    await db.delete(descendant)
                    await db.flush()
            else:
                await guard_delete(db, category)

            await db.delete(category)
            await db.flush()
            await ordering.close_gap(db, owner_id, domain_type, parent_id)

        logger.info(f"Deleted category {category.id} '{category.name}'" + (" with subtree" if hierarchically else ""))

    async def delete_by_name(
        self,
        db: AsyncSession,
        owner_id: int,
        domain_type: str,
        name: str,
        hierarchically: bool = False,
    ) -> bool:
        """Delete a category by name; False when there is no such category"""
        category = await tree.get_by_name(db, owner_id, domain_type, name)
        if category is None:
            return False
        await self.delete_category(db, category, hierarchically=hierarchically)
        return True

    # Restructuring

    async def promote(self, db: AsyncSession, category: CategoryRef) -> bool:
        async with self._transaction(db, f"promoting category {getattr(category, 'id', category)}"):
            moved = await hierarchy.promote(db, await self._resolve(db, category))
        return moved

    async def demote(self, db: AsyncSession, category: CategoryRef) -> bool:
        async with self._transaction(db, f"demoting category {getattr(category, 'id', category)}"):
            moved = await hierarchy.demote(db, await self._resolve(db, category))
        return moved

    async def swap(self, db: AsyncSession, source: CategoryRef, target: CategoryRef) -> bool:
        async with self._transaction(db, "swapping categories"):
            swapped = await hierarchy.swap(db, await self._resolve(db, source), await self._resolve(db, target))
        return swapped

    async def order_up(self, db: AsyncSession, category: CategoryRef) -> bool:
        async with self._transaction(db, f"moving category {getattr(category, 'id', category)} up"):
            moved = await hierarchy.order_up(db, await self._resolve(db, category))
        return moved

    async def order_down(self, db: AsyncSession, category: CategoryRef) -> bool:
        async with self._transaction(db, f"moving category {getattr(category, 'id', category)} down"):
            moved = await hierarchy.order_down(db, await self._resolve(db, category))
        return moved

    # Images

    async def store_image(self, db: AsyncSession, category: CategoryRef, data: Union[str, bytes, Path]) -> Category:
        """Encode an image file/bytes (or keep a URL) and store it on the category"""
        async with self._transaction(db, f"storing image for category {getattr(category, 'id', category)}"):
            category = await self._resolve(db, category)
            category.image = images.encode_image(data)
            await db.flush()
        return category

    # Queries

    async def get_category(self, db: AsyncSession, category_id: int) -> Category:
        return await tree.get_category(db, category_id)

    async def get_by_name(self, db: AsyncSession, owner_id: int, domain_type: str, name: str) -> Optional[Category]:
        return await tree.get_by_name(db, owner_id, domain_type, name)

    async def list_categories(
        self,
        db: AsyncSession,
        owner_id: int,
        domain_type: Optional[str] = None,
        name: Optional[str] = None,
        match: NameMatch = NameMatch.EXACT,
    ) -> List[Category]:
        return await tree.list_categories(db, owner_id, domain_type, name=name, match=match)

    async def get_children(self, db: AsyncSession, category: CategoryRef) -> List[Category]:
        return await tree.children_of(db, category)

    async def get_ancestor_chain(self, db: AsyncSession, category: CategoryRef) -> List[Category]:
        return await tree.ancestor_chain(db, await self._resolve(db, category))

    async def get_level(self, db: AsyncSession, category: CategoryRef) -> int:
        return await tree.level(db, await self._resolve(db, category))

    async def get_tree(self, db: AsyncSession, owner_id: int, domain_type: str) -> List[CategoryTreeNode]:
        return await tree.category_tree(db, owner_id, domain_type)

    async def to_response(self, db: AsyncSession, category: Category) -> CategoryResponse:
        response = CategoryResponse.model_validate(category)
        response.level = await tree.level(db, category)
        response.has_children = await tree.has_children(db, category)
        return response

    async def resolve_for_content(
        self,
        db: AsyncSession,
        owner_id: int,
        content_type: str,
        category: Optional[Union[Category, int, str]],
    ) -> Optional[Category]:
        """Category a content item of (owner, type) may reference.

        Accepts a Category, an id or a category name. An unknown name
        resolves to None. A category of another domain type or owner is
        rejected.
        """
        if category is None:
            return None
        if isinstance(category, str):
            resolved = await tree.get_by_name(db, owner_id, content_type, category)
            if resolved is None:
                logger.debug(f"No {content_type} category named '{category}' for owner {owner_id}")
            return resolved

        resolved = await self._resolve(db, category)
        content_type = getattr(content_type, "value", content_type)
        if resolved.domain_type != content_type:
            raise TypeMismatch(*CONTENT_TYPE_MISMATCH, category=resolved.domain_type, content=content_type)
        if resolved.owner_id != owner_id:
            raise OwnerMismatch(*CONTENT_OWNER_MISMATCH, category=resolved.owner_id, content=owner_id)
        return resolved


# Singleton instance
category_service = CategoryService()
