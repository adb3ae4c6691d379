from . import audit
from .audit import acting_as, current_actor
from .category_service import CategoryService, category_service
from .tree import NameMatch

__all__ = ["audit", "acting_as", "current_actor", "CategoryService", "category_service", "NameMatch"]
