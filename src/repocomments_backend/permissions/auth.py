"""
Authentication for the realtime service.

Bearer credentials are opaque tokens issued by the login flow (external).
The login flow stores a session record in Redis under the SHA-256 hash of
the token with a TTL, so expired or revoked credentials simply disappear:

    session:<sha256(token)> -> {"user_id": "...", "provider": "github"}

Verification resolves the token to a user id; identity resolution then loads
the user record from the database and builds a Principal.
"""

import json
import logging
from typing import Awaitable, Callable, Optional

from fastapi import Request
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from repocomments_backend.database import SessionLocal
from repocomments_backend.exceptions import (
    InvalidTokenException,
    StoreUnavailableException,
    UnauthorizedException,
    UserNotFoundException,
)
from repocomments_backend.model.auth import User
from repocomments_backend.permissions.principal import Principal
from repocomments_backend.redis_cache import get_redis_client
from repocomments_backend.settings import settings
from repocomments_backend.utils.token_hash import hash_token, extract_bearer_token

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"


class TokenVerifier:
    """Resolves bearer credentials to authenticated principals."""

    def __init__(
        self,
        redis_getter: Callable[[], Awaitable] = get_redis_client,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self._redis_getter = redis_getter
        self._session_factory = session_factory

    async def verify_credential(self, token: Optional[str]) -> str:
        """
        Validate a bearer credential.

        Returns:
            The user id the credential was issued for

        Raises:
            UnauthorizedException: No credential given
            InvalidTokenException: Unknown, expired or malformed credential
            StoreUnavailableException: The credential store did not respond
        """
        if not token:
            raise UnauthorizedException(detail="No token provided")

        token_hash = hash_token(token)
        redis_client = await self._redis_getter()

        try:
            session_data_raw = await redis_client.get(f"{SESSION_PREFIX}{token_hash}")
        except RedisError as e:
            logger.error(f"Credential store lookup failed: {e}")
            raise StoreUnavailableException(detail="Credential store unavailable") from e

        if not session_data_raw:
            logger.warning(f"Auth failed: session not found for token hash {token_hash[:8]}...")
            raise InvalidTokenException()

        try:
            session_data = json.loads(session_data_raw)
        except json.JSONDecodeError:
            logger.error("Auth failed: invalid session data format")
            raise InvalidTokenException(detail="Invalid session data")

        user_id = session_data.get("user_id") if isinstance(session_data, dict) else None
        if not user_id:
            raise InvalidTokenException(detail="Invalid session data")

        # Sliding expiry: active sessions stay valid
        try:
            await redis_client.expire(f"{SESSION_PREFIX}{token_hash}", settings.SESSION_TTL)
        except RedisError as e:
            logger.warning(f"Could not refresh session TTL: {e}")

        return str(user_id)

    async def lookup_user(self, user_id: str) -> Principal:
        """
        Resolve a user id against the user store.

        Raises:
            UserNotFoundException: No such user
            StoreUnavailableException: The database did not respond
        """
        try:
            principal = await run_in_threadpool(self._query_user, user_id)
        except SQLAlchemyError as e:
            logger.error(f"User lookup failed for {user_id}: {e}")
            raise StoreUnavailableException(detail="User store unavailable") from e

        if principal is None:
            logger.warning(f"Auth failed: credential references unknown user {user_id}")
            raise UserNotFoundException()

        return principal

    def _query_user(self, user_id: str) -> Optional[Principal]:
        with self._session_factory() as db:
            row = (
                db.query(User.id, User.email, User.name, User.provider)
                .filter(User.id == user_id)
                .first()
            )
        if row is None:
            return None
        return Principal(user_id=row.id, email=row.email, name=row.name, provider=row.provider)

    async def authenticate(self, token: Optional[str]) -> Principal:
        """Verify a credential and resolve its identity in one step."""
        user_id = await self.verify_credential(token)
        return await self.lookup_user(user_id)


async def get_current_principal(request: Request) -> Principal:
    """
    FastAPI dependency for HTTP endpoints.

    Reads the credential from the ``Authorization: Bearer`` header, falling
    back to the ``token`` cookie set by the login flow.
    """
    token = extract_bearer_token(request.headers.get("authorization")) or request.cookies.get("token")
    if not token:
        raise UnauthorizedException(headers={"WWW-Authenticate": "Bearer"})

    verifier: TokenVerifier = request.app.state.realtime.verifier
    return await verifier.authenticate(token)
