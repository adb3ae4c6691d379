"""
Creator/updater stamping
"""

import pytest

from category_tree.services import acting_as, current_actor


def test_acting_as_restores_previous_actor():
    assert current_actor() is None
    with acting_as(3):
        with acting_as(4):
            assert current_actor() == 4
        assert current_actor() == 3
    assert current_actor() is None


@pytest.mark.asyncio
class TestAuditColumns:

    async def test_created_by_and_updated_by_on_create(self, make):
        with acting_as(7):
            category = await make("Audited")

        assert category.created_by == 7
        assert category.updated_by == 7

    async def test_no_actor(self, make):
        category = await make("Anonymous")

        assert category.created_by is None
        assert category.updated_by is None

    async def test_updated_by_on_rename(self, db, service, make):
        with acting_as(7):
            category = await make("Before")
        with acting_as(8):
            await service.rename_category(db, category, "After")

        assert category.created_by == 7
        assert category.updated_by == 8

    async def test_renumbered_siblings_are_stamped(self, db, service, make):
        with acting_as(5):
            a = await make("A")
            b = await make("B")
            c = await make("C")
        with acting_as(9):
            await service.delete_category(db, a)

        assert (b.display_order, b.created_by, b.updated_by) == (1, 5, 9)
        assert (c.display_order, c.created_by, c.updated_by) == (2, 5, 9)

    async def test_untouched_rows_keep_updater(self, db, service, make):
        with acting_as(5):
            a = await make("A")
            b = await make("B")
            c = await make("C")
        with acting_as(6):
            await service.order_up(db, c)

        assert a.updated_by == 5
        assert b.updated_by == 6
        assert c.updated_by == 6
