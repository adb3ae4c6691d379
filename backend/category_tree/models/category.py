from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import validates
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from category_tree.database import Base, AuditMixin


class DomainType(str, Enum):
    """Known content kinds a category tree can classify"""
    POST = "post"
    PHOTO = "photo"
    ITEM = "item"
    LOCATION = "location"


class Category(Base, AuditMixin):
    """Category model: one node of an owner's classification tree for one domain type"""
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint('owner_id', 'domain_type', 'name', name='uk_category'),
        Index('ix_categories_sibling_group', 'owner_id', 'domain_type', 'parent_id', 'display_order'),
    )

    # Server-generated timestamps are fetched on flush
    __mapper_args__ = {'eager_defaults': True}

    # Checked by the save pipeline on every create and update
    __required_fields__ = ('owner_id', 'domain_type', 'name')

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    domain_type = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    image = Column(Text, nullable=True)
    parent_id = Column(Integer, ForeignKey('categories.id'), nullable=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)

    @validates('domain_type')
    def _normalize_domain_type(self, key, value):
        if isinstance(value, Enum):
            return value.value
        return value

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self):
        return (
            f"<Category(id={self.id}, name='{self.name}', parent_id={self.parent_id}, "
            f"display_order={self.display_order})>"
        )


# Pydantic models

class CategoryBase(BaseModel):
    """Base category schema"""
    name: Optional[str] = Field(None, max_length=255)
    image: Optional[str] = None


class CategoryCreate(CategoryBase):
    """Schema for creating a category. Owner and type are inherited from the parent when omitted."""
    owner_id: Optional[int] = None
    domain_type: Optional[str] = Field(None, max_length=255)
    parent_id: Optional[int] = Field(default=None, description="Parent category, None for a root category")


class CategoryUpdate(BaseModel):
    """Schema for updating a category. parent_id is applied only when explicitly set."""
    name: Optional[str] = Field(None, max_length=255)
    image: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryResponse(CategoryBase):
    """Schema for category response"""
    id: int
    owner_id: int
    domain_type: str
    parent_id: Optional[int] = None
    display_order: int
    level: Optional[int] = None
    has_children: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryTreeNode(BaseModel):
    """One node of a nested category tree"""
    id: int
    name: str
    display_order: int
    image: Optional[str] = None
    children: List["CategoryTreeNode"] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CategoryList(BaseModel):
    """Schema for list of categories"""
    categories: List[CategoryResponse]
    total: int


CategoryTreeNode.model_rebuild()
