"""
Password hashing and bearer token issuance/verification.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
import jwt
import structlog

from .errors import InvalidTokenError
from .models import utcnow

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

# bcrypt only looks at the first 72 bytes of a secret
MAX_SECRET_BYTES = 72
DEFAULT_TOKEN_LIFETIME = timedelta(days=30)
TOKEN_ALGORITHM = "HS256"


class PasswordHasher:
    """Salted one-way hashing of secrets at rest."""

    def __init__(self, rounds: int = 12):
        """
        Initialize the hasher.

        Args:
            rounds: bcrypt work factor (log2 of iterations)
        """
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        """
        Hash a plaintext secret with a fresh random salt.

        Args:
            secret: Plaintext secret, at most 72 UTF-8 bytes

        Returns:
            bcrypt hash with the salt embedded
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        """
        Check a plaintext secret against a stored hash.

        Returns False for malformed hashes instead of raising.
        """
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            logger.warning("Malformed password hash encountered")
            return False


class TokenIssuer:
    """Mints signed, time-bounded credentials for principals."""

    def __init__(
        self,
        secret_key: str,
        lifetime: timedelta = DEFAULT_TOKEN_LIFETIME,
        clock: Optional[Clock] = None
    ):
        if not secret_key:
            raise ValueError("Token signing secret cannot be empty")
        self._secret_key = secret_key
        self._lifetime = lifetime
        self._clock = clock or utcnow

    def issue(self, principal_id: str) -> str:
        """
        Create a token asserting the given principal identity.

        Args:
            principal_id: Identifier of the principal

        Returns:
            Encoded JWT carrying id, iat and exp claims
        """
        issued_at = self._clock()
        payload = {
            "id": principal_id,
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
        }
        return jwt.encode(payload, self._secret_key, algorithm=TOKEN_ALGORITHM)


class TokenVerifier:
    """Validates signature and expiry of presented credentials."""

    def __init__(self, secret_key: str, clock: Optional[Clock] = None):
        if not secret_key:
            raise ValueError("Token signing secret cannot be empty")
        self._secret_key = secret_key
        self._clock = clock or utcnow

    def verify(self, token: str) -> str:
        """
        Verify a token and extract the principal identifier.

        Args:
            token: Encoded JWT

        Returns:
            Principal identifier embedded in the token

        Raises:
            InvalidTokenError: For any malformed, forged or expired token.
                The message never says which check failed.
        """
        try:
            # Expiry is checked against the injected clock below
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[TOKEN_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat"]},
            )
        except jwt.PyJWTError as e:
            logger.info("Token rejected", reason=type(e).__name__)
            raise InvalidTokenError("Not authorized, invalid token") from e

        principal_id = payload.get("id")
        expires_at = payload.get("exp")
        if not isinstance(principal_id, str) or not isinstance(expires_at, (int, float)):
            logger.info("Token rejected", reason="malformed_claims")
            raise InvalidTokenError("Not authorized, invalid token")

        if self._clock().timestamp() >= expires_at:
            logger.info("Token rejected", reason="expired")
            raise InvalidTokenError("Not authorized, invalid token")

        return principal_id
