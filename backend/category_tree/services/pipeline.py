"""Pre-persistence pipeline shared by every entity that needs checks before a save.

A pipeline is an ordered list of async steps ``step(db, entity, creating)``.
Steps may enrich the entity (inherit values) or raise to reject the save.
Entities declare their required attributes in ``__required_fields__``.
"""
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.exceptions import MissingField

logger = logging.getLogger(__name__)

SaveStep = Callable[[AsyncSession, Any, bool], Awaitable[None]]


class SavePipeline:
    """Ordered checks and mutators run before an entity is persisted"""

    def __init__(self, steps: Optional[Iterable[SaveStep]] = None):
        self.steps: List[SaveStep] = list(steps or [])

    def add(self, step: SaveStep) -> SaveStep:
        """Append a step; usable as a decorator"""
        self.steps.append(step)
        return step

    async def run(self, db: AsyncSession, entity: Any, creating: bool):
        # Pending changes must not reach the database before every step passed
        with db.no_autoflush:
            for step in self.steps:
                await step(db, entity, creating)


async def require_fields(db: AsyncSession, entity: Any, creating: bool):
    """Reject the save when a declared required attribute is empty"""
    for field in getattr(entity, "__required_fields__", ()):
        value = getattr(entity, field, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            logger.debug(f"{type(entity).__name__} rejected, {field} is empty")
            raise MissingField(field)
