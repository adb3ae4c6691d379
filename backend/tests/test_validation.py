"""
Required fields, inheritance from the parent, name uniqueness and the delete guard
"""

import pytest

from category_tree.exceptions import (
    CategoryNotFound,
    HasChildren,
    HierarchyCycle,
    MissingField,
    NameDuplicate,
    OwnerMismatch,
    TypeMismatch,
)
from category_tree.models.category import CategoryCreate, CategoryUpdate, DomainType
from category_tree.services.pipeline import SavePipeline, require_fields
from category_tree.services.validation import unique_name

from conftest import OWNER, OTHER_OWNER


@pytest.mark.asyncio
class TestRequiredFields:

    async def test_owner_required(self, db, service):
        with pytest.raises(MissingField) as exc_info:
            await service.create(db, None, DomainType.POST, "Category")
        assert exc_info.value.field == "owner_id"
        assert exc_info.value.message == "CategoryProfileRequired"

    async def test_domain_type_required(self, db, service):
        with pytest.raises(MissingField) as exc_info:
            await service.create(db, OWNER, None, "Category")
        assert exc_info.value.field == "domain_type"
        assert exc_info.value.code == 71009

    async def test_name_required(self, db, service):
        with pytest.raises(MissingField) as exc_info:
            await service.create(db, OWNER, DomainType.POST, None)
        assert exc_info.value.field == "name"

    async def test_blank_name_rejected(self, db, service):
        with pytest.raises(MissingField):
            await service.create(db, OWNER, DomainType.POST, "   ")

    async def test_rename_to_empty_rejected(self, db, service, make):
        category = await make("Category")

        with pytest.raises(MissingField):
            await service.rename_category(db, category, "")

        await db.refresh(category)
        assert category.name == "Category"

    @pytest.mark.parametrize("domain_type", list(DomainType))
    async def test_known_domain_types(self, db, service, domain_type):
        category = await service.create(db, OWNER, domain_type, "Category")
        assert category.domain_type == domain_type.value

    async def test_create_from_schema(self, db, service):
        category = await service.create_category(
            db, CategoryCreate(owner_id=OWNER, domain_type="post", name="From schema")
        )
        assert category.id is not None
        assert category.display_order == 1


@pytest.mark.asyncio
class TestNameUniqueness:

    async def test_duplicate_name_rejected(self, db, service, make):
        await make("Category")

        with pytest.raises(NameDuplicate) as exc_info:
            await service.create(db, OWNER, DomainType.POST, "Category")
        assert exc_info.value.code == 71011

    async def test_duplicate_across_levels_rejected(self, db, service, make):
        root = await make("Root")
        await make("Leaf", parent=root)

        with pytest.raises(NameDuplicate):
            await service.create(db, OWNER, DomainType.POST, "Leaf")

    async def test_same_name_other_domain_type(self, make):
        await make("Category")
        category = await make("Category", domain_type=DomainType.PHOTO)
        assert category.name == "Category"

    async def test_same_name_other_owner(self, make):
        await make("Category")
        category = await make("Category", owner_id=OTHER_OWNER)
        assert category.name == "Category"

    async def test_rename(self, db, service, make):
        category = await make("Old")

        renamed = await service.rename_category(db, category.id, "New")

        assert renamed.name == "New"
        assert (await service.get_by_name(db, OWNER, DomainType.POST, "New")).id == category.id

    async def test_rename_to_own_name(self, db, service, make):
        category = await make("Same")
        renamed = await service.rename_category(db, category, "Same")
        assert renamed.name == "Same"

    async def test_rename_to_taken_name(self, db, service, make):
        await make("Taken")
        category = await make("Mine")

        with pytest.raises(NameDuplicate):
            await service.rename_category(db, category, "Taken")

        await db.refresh(category)
        assert category.name == "Mine"


@pytest.mark.asyncio
class TestParentInheritance:

    async def test_child_inherits_owner_and_type(self, make):
        root = await make("Root", domain_type=DomainType.ITEM)
        children = [await make(f"Child{i}", parent=root) for i in range(2)]

        for child in children:
            assert child.owner_id == root.owner_id
            assert child.domain_type == "item"
            assert child.parent_id == root.id

    async def test_parent_owner_mismatch(self, db, service, make):
        root = await make("Root")

        with pytest.raises(OwnerMismatch) as exc_info:
            await service.create(db, OTHER_OWNER, DomainType.POST, "Child", parent=root)
        assert exc_info.value.message == "CategoryParentProfileMissmatch"

    async def test_parent_type_mismatch(self, db, service, make):
        root = await make("Root")

        with pytest.raises(TypeMismatch) as exc_info:
            await service.create(db, OWNER, DomainType.PHOTO, "Child", parent=root)
        assert exc_info.value.message == "CategoryParentTypeMissmatch"

    async def test_explicit_matching_values_accepted(self, db, service, make):
        root = await make("Root")
        child = await service.create(db, OWNER, DomainType.POST, "Child", parent=root)
        assert child.parent_id == root.id

    async def test_unknown_parent(self, db, service):
        with pytest.raises(CategoryNotFound):
            await service.create(db, OWNER, DomainType.POST, "Orphan", parent=9999)

    async def test_self_parent_rejected(self, db, service, make):
        category = await make("Self")

        with pytest.raises(HierarchyCycle):
            await service.update_category(db, category, CategoryUpdate(parent_id=category.id))

    async def test_descendant_parent_rejected(self, db, service, make):
        root = await make("Root")
        child = await make("Child", parent=root)
        grandchild = await make("Grandchild", parent=child)

        with pytest.raises(HierarchyCycle):
            await service.update_category(db, root, CategoryUpdate(parent_id=grandchild.id))

        await db.refresh(root)
        assert root.parent_id is None

    async def test_reparent_to_other_owner_rejected(self, db, service, make):
        mine = await make("Mine")
        theirs = await make("Theirs", owner_id=OTHER_OWNER)

        with pytest.raises(OwnerMismatch):
            await service.update_category(db, mine, CategoryUpdate(parent_id=theirs.id))


@pytest.mark.asyncio
class TestDelete:

    async def test_delete_leaf(self, db, service, make):
        category = await make("Leaf")
        category_id = category.id

        await service.delete_category(db, category)

        with pytest.raises(CategoryNotFound):
            await service.get_category(db, category_id)

    async def test_delete_with_children_rejected(self, db, service, make):
        root = await make("Root")
        await make("Child", parent=root)

        with pytest.raises(HasChildren) as exc_info:
            await service.delete_category(db, root.id)
        assert exc_info.value.code == 71005

        await db.refresh(root)
        assert (await service.get_category(db, root.id)).name == "Root"

    async def test_delete_hierarchically(self, db, service, make):
        root = await make("Root")
        child = await make("Child", parent=root)
        await make("Grandchild", parent=child)
        keep = await make("Keep")

        await service.delete_category(db, root, hierarchically=True)

        remaining = await service.list_categories(db, OWNER)
        assert [c.name for c in remaining] == ["Keep"]
        assert keep.display_order == 1

    async def test_delete_closes_gap(self, db, service, make, group):
        root = await make("Root")
        await make("A", parent=root)
        b = await make("B", parent=root)
        await make("C", parent=root)

        await service.delete_category(db, b)

        assert await group(root) == [("A", 1), ("C", 2)]

    async def test_delete_by_name(self, db, service, make):
        await make("Named")

        assert await service.delete_by_name(db, OWNER, DomainType.POST, "Named")
        assert not await service.delete_by_name(db, OWNER, DomainType.POST, "Named")

    async def test_delete_unknown(self, db, service):
        with pytest.raises(CategoryNotFound):
            await service.delete_category(db, 4242)


@pytest.mark.asyncio
class TestPipeline:

    async def test_custom_step_runs_in_order(self, db, service, make):
        calls = []

        async def record(db, entity, creating):
            calls.append((entity.name, creating))

        service.pipeline = SavePipeline([require_fields, record, unique_name])
        await service.create(db, OWNER, DomainType.POST, "Recorded")

        assert calls == [("Recorded", True)]

    async def test_step_decorator(self):
        pipeline = SavePipeline()

        @pipeline.add
        async def step(db, entity, creating):
            pass

        assert pipeline.steps == [step]
