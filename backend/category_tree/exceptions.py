"""Category errors.

Every error carries a numeric ``code`` (71xxx is the category range) and a
short symbolic ``message`` so callers can map them to their own responses.
"""
from typing import Any, Dict, Optional


class CategoryError(Exception):
    """Base exception for category errors."""

    code: int = 71000
    message: str = "CategoryError"

    def __init__(self, code: Optional[int] = None, message: Optional[str] = None, **details: Any):
        self.code = code if code is not None else self.code
        self.message = message or self.message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            detail = ", ".join(f"{k}={v!r}" for k, v in sorted(self.details.items()))
            return f"{self.message}[{self.code}] ({detail})"
        return f"{self.message}[{self.code}]"


class MissingField(CategoryError):
    """Raised when a required attribute is empty at create or update."""

    codes = {
        "owner_id": (71008, "CategoryProfileRequired"),
        "domain_type": (71009, "CategoryTypeRequired"),
        "name": (71010, "CategoryNameRequired"),
    }

    def __init__(self, field: str):
        code, message = self.codes.get(field, (71000, "CategoryFieldRequired"))
        self.field = field
        super().__init__(code, message, field=field)


class NameDuplicate(CategoryError):
    """Raised when a name is already used within (owner, domain type)."""

    code = 71011
    message = "CategoryNameDuplicated"


class OwnerMismatch(CategoryError):
    """Raised on a cross-owner attachment, swap or content assignment."""

    code = 71003
    message = "CategoryParentProfileMissmatch"


class TypeMismatch(CategoryError):
    """Raised on a cross-domain-type attachment, swap or content assignment."""

    code = 71004
    message = "CategoryParentTypeMissmatch"


class HasChildren(CategoryError):
    """Raised when deleting a category that still has children."""

    code = 71005
    message = "CategoryDeleteHasChild"


class CategoryNotFound(CategoryError):
    """Raised when a referenced category does not exist."""

    code = 71012
    message = "CategoryNotFound"


class HierarchyCycle(CategoryError):
    """Raised when a category would become its own ancestor."""

    code = 71013
    message = "CategoryParentCycle"


class HierarchyCorrupted(CategoryError):
    """Raised when a parent walk exceeds the configured maximum depth."""

    code = 71014
    message = "CategoryHierarchyCorrupted"


# Codes used where the same kind of failure happens in another context
SWAP_OWNER_MISMATCH = (71001, "CategorySwapProfileMissmatch")
SWAP_TYPE_MISMATCH = (71002, "CategorySwapTypeMissmatch")
CONTENT_OWNER_MISMATCH = (71006, "CategoryContentProfileMissmatch")
CONTENT_TYPE_MISMATCH = (71007, "CategoryContentTypeMissmatch")
