"""
Authentication dependencies for the FastAPI API.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from library.auth_gate import require_authenticated
from library.models import AuthState, Principal
from library.services import LibraryServices

# Security scheme; missing or non-bearer headers are reported by us, not FastAPI
security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> LibraryServices:
    """Services wired at startup and attached to the application state."""
    return request.app.state.services


async def get_auth_state(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: LibraryServices = Depends(get_services)
) -> AuthState:
    """
    Resolve the Authorization header of the current request.

    Args:
        credentials: Bearer credentials, None when absent or not bearer

    Returns:
        Authenticated or Unauthenticated state
    """
    token = credentials.credentials if credentials else None
    return await services.auth_gate.resolve(token)


async def require_principal(state: AuthState = Depends(get_auth_state)) -> Principal:
    """
    Require an authenticated principal.

    Raises:
        AuthenticationError: If no bearer token was sent
        InvalidTokenError: If the token is invalid or its user is gone
    """
    return require_authenticated(state)
