"""
Ownership rules shared by every single-book operation.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .errors import AuthorizationError, NotFoundError
from .models import Book


class Operation(str, Enum):
    """Operations guarded by ownership."""
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


_DENIED_MESSAGES = {
    Operation.READ: "Not allowed to view this book",
    Operation.UPDATE: "Not allowed to update this book",
    Operation.DELETE: "Not allowed to delete this book",
}


def authorize(owner_id: str, principal_id: str, operation: Operation) -> Decision:
    """Only the owner may read, update or delete a single book."""
    return Decision.ALLOW if owner_id == principal_id else Decision.DENY


def ensure_owner(book: Optional[Book], principal_id: str, operation: Operation) -> Book:
    """
    Existence first, then ownership.

    Args:
        book: Book loaded from the store, or None if absent
        principal_id: Identifier of the calling principal
        operation: Operation about to be performed

    Returns:
        The book, when the principal owns it

    Raises:
        NotFoundError: If the book does not exist
        AuthorizationError: If the principal is not the owner
    """
    if book is None:
        raise NotFoundError("Book not found")
    if authorize(book.owner, principal_id, operation) is Decision.DENY:
        raise AuthorizationError(_DENIED_MESSAGES[operation])
    return book


def owner_scope(principal_id: str) -> Dict[str, Any]:
    """Store filter restricting a listing to the principal's own books."""
    return {"owner": principal_id}
