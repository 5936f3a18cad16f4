"""
Error taxonomy for the library service.

Every error carries the message shown to the caller and the HTTP status the
API layer renders it with.
"""


class LibraryError(Exception):
    """Base class for all library errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(LibraryError):
    """Missing or malformed input."""
    status_code = 400


class ConflictError(LibraryError):
    """Operation conflicts with stored state (duplicate email, favorites)."""
    status_code = 400


class DuplicateFavoriteError(ConflictError):
    """Document is already in the favorites set."""


class NotAFavoriteError(ConflictError):
    """Document is not in the favorites set."""


class AuthenticationError(LibraryError):
    """No usable credential was presented."""
    status_code = 401


class InvalidTokenError(AuthenticationError):
    """Credential is malformed, badly signed, expired or unknown."""


class AuthorizationError(LibraryError):
    """Principal is authenticated but does not own the resource."""
    status_code = 403


class NotFoundError(LibraryError):
    """Resource does not exist."""
    status_code = 404


class InternalError(LibraryError):
    """Unexpected failure; never shown to the caller in detail."""
    status_code = 500


class StoreError(InternalError):
    """The document store failed."""
