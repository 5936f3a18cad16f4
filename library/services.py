"""
Account and book services.

Both services only talk to the store through the RecordStore interface so
they run unchanged against MongoDB or an in-memory store.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

import structlog

from utilities.storage import LocalFileStorage

from .auth_gate import AuthGate
from .errors import AuthenticationError, ConflictError, InvalidInputError, NotFoundError
from .favorites import FavoritesManager
from .models import Book, Principal, utcnow
from .ownership import Operation, ensure_owner, owner_scope
from .security import MAX_SECRET_BYTES, PasswordHasher, TokenIssuer, TokenVerifier
from .store import RecordStore

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("title", "author", "note")


class AccountService:
    """Registration and login."""

    def __init__(self, users: RecordStore, hasher: PasswordHasher, issuer: TokenIssuer):
        self.users = users
        self.hasher = hasher
        self.issuer = issuer

    async def register(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str]
    ) -> Tuple[Principal, str]:
        """
        Register a new principal.

        Args:
            name: Display name
            email: Email address, unique across principals
            password: Plaintext secret

        Returns:
            Tuple of the public principal and a fresh token

        Raises:
            InvalidInputError: If a field is missing or the secret is too long
            ConflictError: If the email is already registered
        """
        if not name or not email or not password:
            raise InvalidInputError("All fields are required")
        if len(password.encode("utf-8")) > MAX_SECRET_BYTES:
            raise InvalidInputError(f"Password cannot exceed {MAX_SECRET_BYTES} bytes")

        if await self.users.find_by_field("email", email) is not None:
            raise ConflictError("User already exists")

        record = {
            "name": name,
            "email": email,
            "password_hash": await asyncio.to_thread(self.hasher.hash, password),
            "created_at": utcnow(),
            "favorites": [],
        }
        # The unique index still rejects a concurrent registration
        record["id"] = await self.users.insert(record)

        principal = Principal.from_record(record)
        logger.info("User registered", principal_id=principal.id)
        return principal, self.issuer.issue(principal.id)

    async def login(self, email: Optional[str], password: Optional[str]) -> Tuple[Principal, str]:
        """
        Exchange email and secret for a token.

        Raises:
            AuthenticationError: Unknown email and wrong secret alike
        """
        record = await self.users.find_by_field("email", email) if email else None
        matched = record is not None and bool(password) and await asyncio.to_thread(
            self.hasher.verify, password, record.get("password_hash", "")
        )
        if not matched:
            logger.info("Login failed", email=email)
            raise AuthenticationError("Invalid email or password")

        principal = Principal.from_record(record)
        logger.info("User logged in", principal_id=principal.id)
        return principal, self.issuer.issue(principal.id)


class BookService:
    """Book creation, listing and owner-only mutation."""

    def __init__(self, books: RecordStore, storage: LocalFileStorage):
        self.books = books
        self.storage = storage

    async def create(
        self,
        principal: Principal,
        title: Optional[str],
        author: Optional[str],
        note: Optional[str],
        filename: Optional[str],
        content: Optional[bytes]
    ) -> Book:
        """
        Store an uploaded book owned by the calling principal.

        Raises:
            InvalidInputError: If title, author or the attachment is missing
        """
        if not title or not author or not content:
            raise InvalidInputError("Title, author, and PDF are required")

        pdf_url = await asyncio.to_thread(self.storage.save, filename, content)
        record = {
            "title": title,
            "author": author,
            "note": note,
            "pdf_url": pdf_url,
            "last_modified": utcnow(),
            "owner": principal.id,
        }
        record["id"] = await self.books.insert(record)

        logger.info("Book created", book_id=record["id"], owner=principal.id)
        return Book.from_record(record)

    async def get(self, principal: Principal, book_id: str) -> Book:
        """Owner-only read of a single book."""
        book = await self._load(book_id)
        return ensure_owner(book, principal.id, Operation.READ)

    async def list_owned(self, principal: Principal) -> List[Book]:
        records = await self.books.find_many(owner_scope(principal.id))
        return [Book.from_record(record) for record in records]

    async def list_all(self) -> List[Book]:
        records = await self.books.find_many({})
        return [Book.from_record(record) for record in records]

    async def update(self, principal: Principal, book_id: str, changes: Dict[str, Any]) -> Book:
        """
        Partially update a book.

        Args:
            principal: Calling principal, must own the book
            book_id: Book to update
            changes: Supplied fields only; title, author and note are honored

        Returns:
            The updated book

        Raises:
            InvalidInputError: Malformed id, nothing to update, or blank
                title/author
            NotFoundError: If the book does not exist
            AuthorizationError: If the principal does not own the book
        """
        fields = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
        if not fields:
            raise InvalidInputError("No updatable fields supplied")
        for key in ("title", "author"):
            if key in fields and not fields[key]:
                raise InvalidInputError(f"{key.capitalize()} cannot be empty")

        book = ensure_owner(await self._load(book_id), principal.id, Operation.UPDATE)

        fields["last_modified"] = utcnow()
        if not await self.books.save(book.id, fields):
            raise NotFoundError("Book not found")

        logger.info("Book updated", book_id=book.id, fields=sorted(fields))
        return book.model_copy(update=fields)

    async def delete(self, principal: Principal, book_id: str) -> None:
        """
        Delete a book and its stored attachment.

        Raises:
            InvalidInputError: If the id is malformed
            NotFoundError: If the book does not exist
            AuthorizationError: If the principal does not own the book
        """
        book = ensure_owner(await self._load(book_id), principal.id, Operation.DELETE)

        await self.books.delete_by_id(book.id)
        await asyncio.to_thread(self.storage.delete, book.pdf_url)
        logger.info("Book deleted", book_id=book.id, owner=principal.id)

    async def _load(self, book_id: str) -> Optional[Book]:
        if not self.books.is_valid_id(book_id):
            raise InvalidInputError("Invalid book ID")
        record = await self.books.find_by_id(book_id)
        return Book.from_record(record) if record else None


@dataclass(frozen=True)
class LibraryServices:
    """Everything a request handler needs, wired once at startup."""
    accounts: AccountService
    books: BookService
    favorites: FavoritesManager
    auth_gate: AuthGate

    @classmethod
    def build(
        cls,
        users: RecordStore,
        books: RecordStore,
        storage: LocalFileStorage,
        secret_key: str,
        token_lifetime: timedelta,
        bcrypt_rounds: int = 12
    ) -> "LibraryServices":
        """
        Wire the services around the given stores and signing secret.

        Raises:
            ValueError: If the signing secret is empty
        """
        issuer = TokenIssuer(secret_key, lifetime=token_lifetime)
        verifier = TokenVerifier(secret_key)
        return cls(
            accounts=AccountService(users, PasswordHasher(rounds=bcrypt_rounds), issuer),
            books=BookService(books, storage),
            favorites=FavoritesManager(users, books),
            auth_gate=AuthGate(verifier, users),
        )
