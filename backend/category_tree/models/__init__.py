from .category import (
    Category,
    CategoryCreate,
    CategoryList,
    CategoryResponse,
    CategoryTreeNode,
    CategoryUpdate,
    DomainType,
)

__all__ = [
    "Category",
    "CategoryCreate",
    "CategoryList",
    "CategoryResponse",
    "CategoryTreeNode",
    "CategoryUpdate",
    "DomainType",
]
