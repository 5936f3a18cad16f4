"""
Favorites set management.
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

import structlog

from .errors import (
    AuthenticationError, DuplicateFavoriteError, InvalidInputError,
    NotAFavoriteError, NotFoundError
)
from .models import Book
from .store import RecordStore

logger = structlog.get_logger(__name__)


class FavoritesManager:
    """
    Maintains each principal's set of favorite books.

    Duplicate adds are rejected rather than ignored. Writes for a single
    principal are serialized within this process; concurrent writers in other
    processes still race at the store (last write wins).
    """

    def __init__(self, users: RecordStore, books: RecordStore):
        self.users = users
        self.books = books
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Counter = Counter()

    async def add(self, principal_id: str, book_id: str) -> List[str]:
        """
        Add a book to the principal's favorites.

        Args:
            principal_id: Calling principal
            book_id: Book to add

        Returns:
            The updated favorites list

        Raises:
            InvalidInputError: If book_id is not a well-formed identifier
            AuthenticationError: If the principal no longer exists
            NotFoundError: If the book does not exist
            DuplicateFavoriteError: If the book is already a favorite
        """
        if not book_id or not self.books.is_valid_id(book_id):
            raise InvalidInputError("Invalid book ID")

        async with self._serialized(principal_id):
            favorites = await self._load_favorites(principal_id)

            if await self.books.find_by_id(book_id) is None:
                raise NotFoundError("Book not found")

            if book_id in favorites:
                raise DuplicateFavoriteError("Book already in favorites")

            favorites.append(book_id)
            await self.users.save(principal_id, {"favorites": favorites})

        logger.info("Favorite added", principal_id=principal_id, book_id=book_id)
        return favorites

    async def remove(self, principal_id: str, book_id: str) -> List[str]:
        """
        Remove a book from the principal's favorites.

        Raises:
            AuthenticationError: If the principal no longer exists
            NotAFavoriteError: If the book is not a favorite
        """
        async with self._serialized(principal_id):
            favorites = await self._load_favorites(principal_id)

            if book_id not in favorites:
                raise NotAFavoriteError("Book not found in favorites")

            favorites = [favorite for favorite in favorites if favorite != book_id]
            await self.users.save(principal_id, {"favorites": favorites})

        logger.info("Favorite removed", principal_id=principal_id, book_id=book_id)
        return favorites

    async def list(self, principal_id: str) -> List[Book]:
        """Favorite books of the principal, in store order."""
        favorites = await self._load_favorites(principal_id)
        if not favorites:
            return []
        records = await self.books.find_by_ids(favorites)
        return [Book.from_record(record) for record in records]

    @asynccontextmanager
    async def _serialized(self, principal_id: str) -> AsyncIterator[None]:
        """Hold the principal's lock; forget it once nobody holds or awaits it."""
        lock = self._locks.setdefault(principal_id, asyncio.Lock())
        self._lock_users[principal_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[principal_id] -= 1
            if not self._lock_users[principal_id]:
                del self._lock_users[principal_id]
                del self._locks[principal_id]

    async def _load_favorites(self, principal_id: str) -> List[str]:
        record = await self.users.find_by_id(principal_id)
        if record is None:
            raise AuthenticationError("User not found")
        return list(record.get("favorites", []))
