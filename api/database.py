"""
MongoDB persistence for the library API.
Handles connection, indexing and record CRUD for users and books.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from library.errors import ConflictError, StoreError

logger = structlog.get_logger(__name__)


class MongoRecordStore:
    """
    Record store backed by one MongoDB collection.

    Exposes ``_id`` as the string field ``id`` and accepts string ids on
    every lookup.
    """

    def __init__(self, collection: AsyncIOMotorCollection, duplicate_message: str = "Record already exists"):
        self.collection = collection
        self.duplicate_message = duplicate_message

    def is_valid_id(self, record_id: str) -> bool:
        return isinstance(record_id, str) and ObjectId.is_valid(record_id)

    async def find_by_field(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        try:
            document = await self.collection.find_one({field: value})
        except PyMongoError as e:
            raise self._failure("find_by_field", e) from e
        return self._to_record(document) if document else None

    async def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        if not self.is_valid_id(record_id):
            return None
        try:
            document = await self.collection.find_one({"_id": ObjectId(record_id)})
        except PyMongoError as e:
            raise self._failure("find_by_id", e) from e
        return self._to_record(document) if document else None

    async def find_by_ids(self, record_ids: Iterable[str]) -> List[Dict[str, Any]]:
        object_ids = [ObjectId(record_id) for record_id in record_ids if self.is_valid_id(record_id)]
        if not object_ids:
            return []
        return await self.find_many({"_id": {"$in": object_ids}})

    async def find_many(self, filter_query: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find(filter_query)
            return [self._to_record(document) async for document in cursor]
        except PyMongoError as e:
            raise self._failure("find_many", e) from e

    async def insert(self, record: Dict[str, Any]) -> str:
        """
        Insert a new record.

        Args:
            record: Record fields, without an id

        Returns:
            The generated record id

        Raises:
            ConflictError: If a unique index rejects the record
        """
        document = {key: value for key, value in record.items() if key != "id"}
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            logger.warning("Duplicate record rejected", collection=self.collection.name)
            raise ConflictError(self.duplicate_message)
        except PyMongoError as e:
            raise self._failure("insert", e) from e
        return str(result.inserted_id)

    async def save(self, record_id: str, fields: Dict[str, Any]) -> bool:
        if not self.is_valid_id(record_id):
            return False
        try:
            result = await self.collection.update_one({"_id": ObjectId(record_id)}, {"$set": fields})
        except PyMongoError as e:
            raise self._failure("save", e) from e
        return result.matched_count > 0

    async def delete_by_id(self, record_id: str) -> bool:
        if not self.is_valid_id(record_id):
            return False
        try:
            result = await self.collection.delete_one({"_id": ObjectId(record_id)})
        except PyMongoError as e:
            raise self._failure("delete_by_id", e) from e
        return result.deleted_count > 0

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(document)
        record["id"] = str(record.pop("_id"))
        return record

    def _failure(self, operation: str, error: Exception) -> StoreError:
        logger.error("Database operation failed",
                     operation=operation,
                     collection=self.collection.name,
                     error=str(error))
        return StoreError("Internal server error")


class LibraryDatabase:
    """
    Owns the MongoDB client and the users/books record stores.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize the database handle.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.users: Optional[MongoRecordStore] = None
        self.books: Optional[MongoRecordStore] = None

    async def connect(self) -> None:
        """Establish the connection and make sure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

        self.users = MongoRecordStore(self.database.users, duplicate_message="User already exists")
        self.books = MongoRecordStore(self.database.books)
        await self._create_indexes()

    async def disconnect(self) -> None:
        """Close the MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        try:
            # Email uniqueness is enforced here, not only in the service
            await self.database.users.create_index("email", unique=True)

            # Index on owner for "my books" listings
            await self.database.books.create_index("owner")

            logger.info("Successfully created MongoDB indexes")

        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        if self.database is None:
            return {"status": "unhealthy", "error": "not connected"}
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "users_count": await self.database.users.count_documents({}),
                "books_count": await self.database.books.count_documents({}),
            }
        except PyMongoError as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
