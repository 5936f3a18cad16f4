"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from library.models import Book, Principal


class RegisterRequest(BaseModel):
    """Registration body. Fields are checked by the service so a missing one yields a 400."""
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    password: Optional[str] = Field(None, description="Plaintext password")


class LoginRequest(BaseModel):
    """Login body."""
    email: Optional[str] = Field(None, description="Email address")
    password: Optional[str] = Field(None, description="Plaintext password")


class PrincipalResponse(BaseModel):
    """Public fields of a user, plus a bearer token."""
    id: str = Field(..., description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    created_at: datetime = Field(..., description="Registration time")
    token: str = Field(..., description="Bearer token for protected endpoints")

    @classmethod
    def build(cls, principal: Principal, token: str) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            name=principal.name,
            email=principal.email,
            created_at=principal.created_at,
            token=token
        )


class BookResponse(BaseModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    note: Optional[str] = Field(None, description="Free-form note")
    pdf_url: str = Field(..., description="URL of the stored PDF")
    last_modified: datetime = Field(..., description="Last modification time")
    owner: str = Field(..., description="Owning user identifier")

    @classmethod
    def from_book(cls, book: Book) -> "BookResponse":
        return cls(**book.model_dump())


class BookUpdateRequest(BaseModel):
    """Partial update; only the supplied fields change."""
    title: Optional[str] = Field(None, description="New title")
    author: Optional[str] = Field(None, description="New author")
    note: Optional[str] = Field(None, description="New note")


class FavoriteRequest(BaseModel):
    """Body of the favorites add/remove endpoints."""
    bookId: Optional[str] = Field(None, description="Book identifier")


class FavoritesResponse(BaseModel):
    """Result of a favorites mutation."""
    message: str = Field(..., description="Outcome")
    favorites: List[str] = Field(..., description="Favorite book identifiers after the change")


class MessageResponse(BaseModel):
    """Plain message response; also the shape of every error body."""
    message: str = Field(..., description="Human-readable message")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
