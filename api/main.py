"""
FastAPI application for the Personal Library API.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import get_services, require_principal
from api.config import APIConfig, get_config
from api.database import LibraryDatabase
from api.models import (
    BookResponse, BookUpdateRequest, FavoriteRequest, FavoritesResponse,
    HealthResponse, LoginRequest, MessageResponse, PrincipalResponse,
    RegisterRequest
)
from library.errors import AuthenticationError, InternalError, LibraryError
from library.models import Principal
from library.services import LibraryServices
from library.store import RecordStore
from utilities.logger import bind_request_context, setup_logging
from utilities.storage import LocalFileStorage

logger = structlog.get_logger(__name__)


def _build_services(config: APIConfig, users: RecordStore, books: RecordStore, storage: LocalFileStorage) -> LibraryServices:
    return LibraryServices.build(
        users=users,
        books=books,
        storage=storage,
        secret_key=config.jwt_secret,
        token_lifetime=timedelta(days=config.token_expire_days),
        bcrypt_rounds=config.bcrypt_rounds,
    )


def _error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=MessageResponse(message=message).model_dump(),
        headers=headers
    )


def create_app(
    config: Optional[APIConfig] = None,
    users: Optional[RecordStore] = None,
    books: Optional[RecordStore] = None
) -> FastAPI:
    """
    Create the API application.

    Args:
        config: Settings; loaded from the environment when omitted, which
            fails if JWT_SECRET is not set
        users: Users store; when both stores are given MongoDB is not used
        books: Books store

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    setup_logging(log_level=config.log_level, log_format=config.log_format, log_file=config.log_file, debug=config.debug)

    storage = LocalFileStorage(config.upload_dir, base_url=config.upload_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Personal Library API")

        database = None
        if app.state.services is None:
            database = LibraryDatabase(config.mongodb_url, config.mongodb_database)
            await database.connect()
            app.state.database = database
            app.state.services = _build_services(config, database.users, database.books, storage)

        yield

        logger.info("Shutting down Personal Library API")
        if database:
            await database.disconnect()

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.database = None
    app.state.services = None
    if users is not None and books is not None:
        app.state.services = _build_services(config, users, books, storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        bind_request_context(request_id=uuid.uuid4().hex, method=request.method, path=request.url.path)
        return await call_next(request)

    app.mount(config.upload_url, StaticFiles(directory=config.upload_dir), name="uploads")

    _register_exception_handlers(app, config)
    _register_routes(app)
    return app


def _register_exception_handlers(app: FastAPI, config: APIConfig) -> None:

    @app.exception_handler(LibraryError)
    async def library_error_handler(request: Request, exc: LibraryError):
        """Render domain errors as {message}."""
        if isinstance(exc, InternalError):
            logger.error("Internal error", error=exc.message, path=request.url.path)
            return _error_response(exc.status_code, "Internal server error")

        logger.info("Request rejected", status_code=exc.status_code, error=exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are plain 400s."""
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=config.debug)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def _register_routes(app: FastAPI) -> None:

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        database = request.app.state.database
        db_status = "not_configured"
        if database:
            health_info = await database.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="degraded" if db_status == "unhealthy" else "healthy",
            timestamp=datetime.now(timezone.utc),
            version=request.app.version,
            database_status=db_status
        )

    # Account endpoints
    @app.post("/register", response_model=PrincipalResponse, status_code=status.HTTP_201_CREATED, tags=["Users"])
    async def register(body: RegisterRequest, services: LibraryServices = Depends(get_services)):
        """
        Register a new user.

        - **name**, **email**, **password**: all required
        """
        principal, token = await services.accounts.register(body.name, body.email, body.password)
        return PrincipalResponse.build(principal, token)

    @app.post("/login", response_model=PrincipalResponse, tags=["Users"])
    async def login(body: LoginRequest, services: LibraryServices = Depends(get_services)):
        """Log in with email and password and receive a bearer token."""
        principal, token = await services.accounts.login(body.email, body.password)
        return PrincipalResponse.build(principal, token)

    # Book endpoints
    @app.get("/documents", response_model=List[BookResponse], tags=["Books"])
    async def list_my_books(
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Books owned by the caller."""
        books = await services.books.list_owned(principal)
        return [BookResponse.from_book(book) for book in books]

    @app.get("/documents/all", response_model=List[BookResponse], tags=["Books"])
    async def list_all_books(services: LibraryServices = Depends(get_services)):
        """Every stored book (public)."""
        books = await services.books.list_all()
        return [BookResponse.from_book(book) for book in books]

    @app.get("/documents/{book_id}", response_model=BookResponse, tags=["Books"])
    async def get_book(
        book_id: str,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """
        Get a single book owned by the caller.

        - **book_id**: Book identifier
        """
        book = await services.books.get(principal, book_id)
        return BookResponse.from_book(book)

    @app.post("/documents", response_model=BookResponse, status_code=status.HTTP_201_CREATED, tags=["Books"])
    async def create_book(
        title: Optional[str] = Form(None),
        author: Optional[str] = Form(None),
        note: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """
        Upload a book (multipart form).

        - **title**, **author**: required
        - **note**: optional
        - **file**: the PDF, required
        """
        content = await file.read() if file else None
        book = await services.books.create(
            principal,
            title=title,
            author=author,
            note=note,
            filename=file.filename if file else None,
            content=content
        )
        return BookResponse.from_book(book)

    @app.put("/documents/{book_id}", response_model=BookResponse, tags=["Books"])
    async def update_book(
        book_id: str,
        body: BookUpdateRequest,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Update title, author or note of an owned book. Omitted fields stay unchanged."""
        book = await services.books.update(principal, book_id, body.model_dump(exclude_unset=True))
        return BookResponse.from_book(book)

    @app.delete("/documents/{book_id}", response_model=MessageResponse, tags=["Books"])
    async def delete_book(
        book_id: str,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Delete an owned book."""
        await services.books.delete(principal, book_id)
        return MessageResponse(message="Book deleted successfully")

    # Favorites endpoints
    @app.get("/favorites", response_model=List[BookResponse], tags=["Favorites"])
    async def list_favorites(
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """The caller's favorite books."""
        books = await services.favorites.list(principal.id)
        return [BookResponse.from_book(book) for book in books]

    async def _add_favorite(principal: Principal, services: LibraryServices, book_id: Optional[str]) -> FavoritesResponse:
        favorites = await services.favorites.add(principal.id, book_id or "")
        return FavoritesResponse(message="Book added to favorites", favorites=favorites)

    async def _remove_favorite(principal: Principal, services: LibraryServices, book_id: Optional[str]) -> FavoritesResponse:
        favorites = await services.favorites.remove(principal.id, book_id or "")
        return FavoritesResponse(message="Book removed from favorites", favorites=favorites)

    @app.post("/favorites/add", response_model=FavoritesResponse, tags=["Favorites"])
    async def add_favorite(
        body: FavoriteRequest,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Add the book given as ``bookId`` in the body to favorites."""
        return await _add_favorite(principal, services, body.bookId)

    @app.put("/favorites/add/{book_id}", response_model=FavoritesResponse, tags=["Favorites"])
    async def add_favorite_by_path(
        book_id: str,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Add the book given in the path to favorites."""
        return await _add_favorite(principal, services, book_id)

    @app.post("/favorites/remove", response_model=FavoritesResponse, tags=["Favorites"])
    async def remove_favorite(
        body: FavoriteRequest,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Remove the book given as ``bookId`` in the body from favorites."""
        return await _remove_favorite(principal, services, body.bookId)

    @app.put("/favorites/remove/{book_id}", response_model=FavoritesResponse, tags=["Favorites"])
    async def remove_favorite_by_path(
        book_id: str,
        principal: Principal = Depends(require_principal),
        services: LibraryServices = Depends(get_services)
    ):
        """Remove the book given in the path from favorites."""
        return await _remove_favorite(principal, services, book_id)
