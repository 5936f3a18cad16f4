"""
Tests for the MongoDB record store.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from api.database import LibraryDatabase, MongoRecordStore
from library.errors import ConflictError, StoreError


class AsyncCursor:
    """Minimal async iterator standing in for a motor cursor."""

    def __init__(self, documents):
        self._documents = list(documents)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._documents:
            raise StopAsyncIteration
        return self._documents.pop(0)


@pytest.fixture
def collection():
    """Mock motor collection."""
    mock = MagicMock()
    mock.name = "users"
    mock.find_one = AsyncMock()
    mock.insert_one = AsyncMock()
    mock.update_one = AsyncMock()
    mock.delete_one = AsyncMock()
    return mock


@pytest.fixture
def store(collection):
    return MongoRecordStore(collection, duplicate_message="User already exists")


class TestMongoRecordStore:
    """Test cases for MongoRecordStore."""

    def test_is_valid_id(self, store):
        assert store.is_valid_id(str(ObjectId()))
        assert not store.is_valid_id("not-an-id")
        assert not store.is_valid_id(None)

    @pytest.mark.asyncio
    async def test_find_by_id_exposes_string_id(self, store, collection):
        object_id = ObjectId()
        collection.find_one.return_value = {"_id": object_id, "email": "ann@x.com"}

        record = await store.find_by_id(str(object_id))

        assert record == {"id": str(object_id), "email": "ann@x.com"}
        collection.find_one.assert_awaited_once_with({"_id": object_id})

    @pytest.mark.asyncio
    async def test_find_by_malformed_id_skips_query(self, store, collection):
        assert await store.find_by_id("not-an-id") is None
        collection.find_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_find_by_field_missing(self, store, collection):
        collection.find_one.return_value = None
        assert await store.find_by_field("email", "nobody@x.com") is None

    @pytest.mark.asyncio
    async def test_find_many(self, store, collection):
        first, second = ObjectId(), ObjectId()
        collection.find.return_value = AsyncCursor([
            {"_id": first, "owner": "u1"},
            {"_id": second, "owner": "u1"},
        ])

        records = await store.find_many({"owner": "u1"})

        assert [record["id"] for record in records] == [str(first), str(second)]
        collection.find.assert_called_once_with({"owner": "u1"})

    @pytest.mark.asyncio
    async def test_find_by_ids_drops_malformed(self, store, collection):
        valid = ObjectId()
        collection.find.return_value = AsyncCursor([{"_id": valid}])

        records = await store.find_by_ids([str(valid), "junk"])

        assert records == [{"id": str(valid)}]
        collection.find.assert_called_once_with({"_id": {"$in": [valid]}})

    @pytest.mark.asyncio
    async def test_find_by_ids_empty(self, store, collection):
        assert await store.find_by_ids(["junk"]) == []
        collection.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_strips_id_and_returns_new_id(self, store, collection):
        inserted = ObjectId()
        collection.insert_one.return_value = MagicMock(inserted_id=inserted)

        record_id = await store.insert({"id": "ignored", "email": "ann@x.com"})

        assert record_id == str(inserted)
        collection.insert_one.assert_awaited_once_with({"email": "ann@x.com"})

    @pytest.mark.asyncio
    async def test_insert_duplicate_is_conflict(self, store, collection):
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(ConflictError) as exc_info:
            await store.insert({"email": "ann@x.com"})

        assert exc_info.value.message == "User already exists"

    @pytest.mark.asyncio
    async def test_driver_failure_is_store_error(self, store, collection):
        collection.find_one.side_effect = PyMongoError("connection reset")

        with pytest.raises(StoreError) as exc_info:
            await store.find_by_field("email", "ann@x.com")

        assert exc_info.value.message == "Internal server error"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_save_and_delete_report_matches(self, store, collection):
        record_id = str(ObjectId())
        collection.update_one.return_value = MagicMock(matched_count=1)
        collection.delete_one.return_value = MagicMock(deleted_count=0)

        assert await store.save(record_id, {"favorites": []}) is True
        assert await store.delete_by_id(record_id) is False
        collection.update_one.assert_awaited_once_with(
            {"_id": ObjectId(record_id)}, {"$set": {"favorites": []}}
        )

    @pytest.mark.asyncio
    async def test_save_malformed_id(self, store, collection):
        assert await store.save("junk", {"title": "x"}) is False
        collection.update_one.assert_not_awaited()


class TestLibraryDatabase:
    """Test cases for LibraryDatabase."""

    @pytest.mark.asyncio
    async def test_health_check_when_not_connected(self):
        database = LibraryDatabase("mongodb://localhost:27017", "test")

        health = await database.health_check()

        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_health_check_reports_counts(self):
        database = LibraryDatabase("mongodb://localhost:27017", "test")
        database.database = MagicMock()
        database.database.command = AsyncMock(return_value={"ok": 1})
        database.database.users.count_documents = AsyncMock(return_value=2)
        database.database.books.count_documents = AsyncMock(return_value=5)

        health = await database.health_check()

        assert health == {"status": "healthy", "users_count": 2, "books_count": 5}
