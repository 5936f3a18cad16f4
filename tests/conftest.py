"""
Pytest configuration and shared fixtures.
"""

import asyncio
import copy
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app
from library.errors import ConflictError
from library.security import PasswordHasher, TokenIssuer, TokenVerifier
from library.services import LibraryServices
from utilities.storage import LocalFileStorage

TEST_SECRET = "test-signing-secret"


class InMemoryRecordStore:
    """
    Dict-backed stand-in for a MongoDB collection, insertion ordered.

    Every call yields to the event loop once before touching the records, so
    concurrent callers interleave the way they do against a real driver.
    """

    def __init__(self, unique_fields: Iterable[str] = ()):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.unique_fields = tuple(unique_fields)
        self.save_calls = 0

    def is_valid_id(self, record_id: str) -> bool:
        return isinstance(record_id, str) and ObjectId.is_valid(record_id)

    async def find_by_field(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        for record in self.records.values():
            if record.get(field) == value:
                return copy.deepcopy(record)
        return None

    async def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        record = self.records.get(record_id)
        return copy.deepcopy(record) if record else None

    async def find_by_ids(self, record_ids: Iterable[str]) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        wanted = set(record_ids)
        return [copy.deepcopy(record) for key, record in self.records.items() if key in wanted]

    async def find_many(self, filter_query: Dict[str, Any]) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return [
            copy.deepcopy(record) for record in self.records.values()
            if all(record.get(key) == value for key, value in filter_query.items())
        ]

    async def insert(self, record: Dict[str, Any]) -> str:
        await asyncio.sleep(0)
        for field in self.unique_fields:
            if any(existing.get(field) == record.get(field) for existing in self.records.values()):
                raise ConflictError("User already exists")
        record_id = str(ObjectId())
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        self.records[record_id] = stored
        return record_id

    async def save(self, record_id: str, fields: Dict[str, Any]) -> bool:
        await asyncio.sleep(0)
        self.save_calls += 1
        if record_id not in self.records:
            return False
        self.records[record_id].update(copy.deepcopy(fields))
        return True

    async def delete_by_id(self, record_id: str) -> bool:
        await asyncio.sleep(0)
        return self.records.pop(record_id, None) is not None


@pytest.fixture
def users_store():
    """Users store with a unique email constraint."""
    return InMemoryRecordStore(unique_fields=("email",))


@pytest.fixture
def books_store():
    """Books store."""
    return InMemoryRecordStore()


@pytest.fixture
def file_storage(tmp_path):
    """Local file storage rooted in a temporary directory."""
    return LocalFileStorage(str(tmp_path / "uploads"))


@pytest.fixture
def hasher():
    """Fast bcrypt hasher for tests."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer():
    return TokenIssuer(TEST_SECRET)


@pytest.fixture
def verifier():
    return TokenVerifier(TEST_SECRET)


@pytest.fixture
def services(users_store, books_store, file_storage):
    """Fully wired services over in-memory stores."""
    return LibraryServices.build(
        users=users_store,
        books=books_store,
        storage=file_storage,
        secret_key=TEST_SECRET,
        token_lifetime=timedelta(days=30),
        bcrypt_rounds=4
    )


@pytest.fixture
def api_config(tmp_path):
    """API configuration for tests."""
    return APIConfig(
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "uploads"),
        log_format="console",
        log_level="WARNING"
    )


@pytest.fixture
def app(api_config, users_store, books_store):
    """Application wired to in-memory stores."""
    return create_app(api_config, users=users_store, books=books_store)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def sample_user_record():
    """A stored user without a real password hash."""
    return {
        "name": "Ann",
        "email": "ann@x.com",
        "password_hash": "not-a-real-hash",
        "favorites": [],
    }


@pytest.fixture
def sample_book_record():
    """A stored book, owner filled in by the test."""
    return {
        "title": "1984",
        "author": "George Orwell",
        "note": "Dystopian classic",
        "pdf_url": "/uploads/1984.pdf",
    }


@pytest.fixture
def secret():
    """Token signing secret shared by the fixtures above."""
    return TEST_SECRET
