"""Custom exception classes for the taxonomy service.

Every error raised by the category engine is a ``TaxonomyException`` with a
stable ``code``; the API layer maps codes to HTTP statuses. None of them are
fatal to the process.
"""


class TaxonomyException(Exception):
    """Base exception for all taxonomy errors."""

    code = "TAXONOMY_ERROR"

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(TaxonomyException):
    """Raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class ParentNotFoundError(TaxonomyException):
    """Raised when a referenced parent category does not exist."""

    code = "PARENT_NOT_FOUND"

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        super().__init__(f"Parent category '{parent_id}' not found")


class DuplicateSiblingNameError(TaxonomyException):
    """Raised when a sibling under the same parent already uses the name."""

    code = "DUPLICATE_SIBLING_NAME"

    def __init__(self, name: str, parent_id: str | None):
        self.name = name
        self.parent_id = parent_id
        where = f"under '{parent_id}'" if parent_id else "at the root level"
        super().__init__(f"Category name '{name}' already exists {where}")


class CycleDetectedError(TaxonomyException):
    """Raised when a move would make a category its own ancestor."""

    code = "CYCLE_DETECTED"

    def __init__(self, category_id: str, target_parent_id: str):
        self.category_id = category_id
        self.target_parent_id = target_parent_id
        super().__init__(
            f"Cannot move category '{category_id}' under '{target_parent_id}': "
            "target is the category itself or one of its descendants"
        )


class HasChildrenError(TaxonomyException):
    """Raised when deleting a category that still has children."""

    code = "HAS_CHILDREN"

    def __init__(self, category_id: str, children: int):
        self.category_id = category_id
        self.children = children
        super().__init__(f"Category '{category_id}' has {children} child categories")


class HasLinkedItemsError(TaxonomyException):
    """Raised when deleting a category that still has materials assigned."""

    code = "HAS_LINKED_ITEMS"

    def __init__(self, category_id: str, items: int):
        self.category_id = category_id
        self.items = items
        super().__init__(f"Category '{category_id}' has {items} linked materials")


class InvalidIdentifierError(TaxonomyException):
    """Raised when an identifier is malformed."""

    code = "INVALID_IDENTIFIER"

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Invalid category identifier: '{identifier}'")
