"""
Domain errors raised by the hierarchy engine and the node store.
"""


class TreeError(Exception):
    """Base class for all hierarchy errors."""
    default_message = "Tree operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(TreeError):
    default_message = "Resource not found"


class DuplicateNameError(TreeError):
    default_message = "A sibling with this name already exists"


class CyclicReferenceError(TreeError):
    default_message = "Cyclic reference"


class ForbiddenError(TreeError):
    """Raised by the web layer when the caller's role is not allowed."""
    default_message = "Access denied"


class StoreFailureError(TreeError):
    """The underlying database transaction could not be completed."""
    default_message = "Storage failure"

    def __init__(self, message=None, conflict: bool = False):
        super().__init__(message)
        # True when a storage constraint (unique index, foreign key) rejected the write
        self.conflict = conflict
