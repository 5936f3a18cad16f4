"""
Domain models for principals, books and request authentication state.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class Principal(BaseModel):
    """Public view of a registered user. Never carries the password hash."""
    id: str = Field(..., description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Unique email address")
    created_at: datetime = Field(default_factory=utcnow, description="Registration time")
    favorites: List[str] = Field(default_factory=list, description="Favorite book identifiers")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Principal":
        return cls(
            id=record["id"],
            name=record["name"],
            email=record["email"],
            created_at=record.get("created_at") or utcnow(),
            favorites=list(record.get("favorites", [])),
        )


class Book(BaseModel):
    """A stored document reference owned by exactly one principal."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    note: Optional[str] = Field(None, description="Free-form note")
    pdf_url: str = Field(..., description="URL of the stored attachment")
    last_modified: datetime = Field(default_factory=utcnow, description="Last modification time")
    owner: str = Field(..., description="Identifier of the owning principal")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Book":
        return cls(**{key: record[key] for key in cls.model_fields if key in record})


class AuthFailure(str, Enum):
    """Why a request could not be authenticated."""
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"


@dataclass(frozen=True)
class Unauthenticated:
    reason: AuthFailure


@dataclass(frozen=True)
class Authenticated:
    principal: Principal


AuthState = Union[Unauthenticated, Authenticated]
