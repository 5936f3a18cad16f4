"""
Request authentication: turns a presented bearer token into an AuthState.
"""

from typing import Optional

import structlog

from .errors import AuthenticationError, InvalidTokenError
from .models import (
    AuthFailure, AuthState, Authenticated, Principal, Unauthenticated
)
from .security import TokenVerifier
from .store import RecordStore

logger = structlog.get_logger(__name__)


class AuthGate:
    """
    Resolves the calling principal for a request.

    The principal is re-read from the store on every request so that a
    deleted user is locked out immediately, whatever the token says.
    """

    def __init__(self, verifier: TokenVerifier, users: RecordStore):
        self.verifier = verifier
        self.users = users

    async def resolve(self, token: Optional[str]) -> AuthState:
        """
        Resolve a raw bearer token.

        Args:
            token: Token taken from a ``Bearer`` Authorization header, or
                None when the header is absent or uses another scheme

        Returns:
            Authenticated with the public principal, or Unauthenticated
            with the failure reason
        """
        if not token:
            return Unauthenticated(AuthFailure.MISSING_TOKEN)

        try:
            principal_id = self.verifier.verify(token)
        except InvalidTokenError:
            return Unauthenticated(AuthFailure.INVALID_TOKEN)

        record = await self.users.find_by_id(principal_id)
        if record is None:
            logger.info("Token references unknown principal", principal_id=principal_id)
            return Unauthenticated(AuthFailure.INVALID_TOKEN)

        return Authenticated(Principal.from_record(record))


def require_authenticated(state: AuthState) -> Principal:
    """Unwrap an AuthState, raising the matching error when unauthenticated."""
    if isinstance(state, Authenticated):
        return state.principal
    if state.reason is AuthFailure.MISSING_TOKEN:
        raise AuthenticationError("Not authorized, no token provided")
    raise InvalidTokenError("Not authorized, invalid token")
