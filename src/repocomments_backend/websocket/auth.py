"""
WebSocket authentication module.

The credential is taken from the handshake only: the ``Authorization: Bearer``
header, or the ``token`` query parameter for browser clients that cannot set
headers on a WebSocket upgrade. It is never read from the message stream.
"""

import logging
from typing import Optional

from fastapi import WebSocket

from repocomments_backend.exceptions import StoreUnavailableException, UnauthorizedException
from repocomments_backend.permissions.auth import TokenVerifier
from repocomments_backend.permissions.principal import Principal
from repocomments_backend.utils.token_hash import extract_bearer_token

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4001


class WebSocketAuthError(Exception):
    """Exception raised when WebSocket authentication fails."""

    def __init__(self, code: int, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(reason)


def extract_handshake_token(websocket: WebSocket) -> Optional[str]:
    """Return the bearer credential of the upgrade request, if any."""
    token = extract_bearer_token(websocket.headers.get("authorization"))
    if token:
        return token
    return websocket.query_params.get("token") or None


async def authenticate_websocket_token(verifier: TokenVerifier, token: Optional[str]) -> Principal:
    """
    Authenticate a WebSocket connection using a token.

    Raises:
        WebSocketAuthError: If authentication fails
    """
    if not token:
        raise WebSocketAuthError(AUTH_FAILED_CLOSE_CODE, "No token provided")

    try:
        principal = await verifier.authenticate(token)
    except UnauthorizedException as e:
        raise WebSocketAuthError(AUTH_FAILED_CLOSE_CODE, e.message) from e
    except StoreUnavailableException as e:
        logger.error(f"WebSocket authentication error: {e}")
        raise WebSocketAuthError(AUTH_FAILED_CLOSE_CODE, "Authentication failed") from e

    logger.info(f"WebSocket authentication successful for user {principal.user_id}")
    return principal
