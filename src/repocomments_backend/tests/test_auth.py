"""Tests for credential verification and identity resolution."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from repocomments_backend.exceptions import (
    InvalidTokenException,
    StoreUnavailableException,
    UnauthorizedException,
    UserNotFoundException,
)
from repocomments_backend.permissions.auth import TokenVerifier
from repocomments_backend.tests.conftest import make_user
from repocomments_backend.utils.token_hash import extract_bearer_token, hash_token
from repocomments_backend.websocket.auth import WebSocketAuthError, authenticate_websocket_token


def _verifier_with_redis(redis_mock, session_factory):
    async def redis_getter():
        return redis_mock
    return TokenVerifier(redis_getter=redis_getter, session_factory=session_factory)


class TestTokenHelpers:

    @pytest.mark.unit
    def test_hash_token(self):
        digest = hash_token("secret")
        assert len(digest) == 64
        assert digest == hash_token("secret")
        assert digest != hash_token("other")

    @pytest.mark.unit
    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
        ("Bearer   abc  ", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_extract_bearer_token(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestTokenVerifier:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_authenticate(self, db, fake_redis, verifier):
        alice = make_user(db, "Alice")
        fake_redis.issue("tok-alice", alice.id)

        principal = await verifier.authenticate("tok-alice")

        assert principal.user_id == alice.id
        assert principal.name == "Alice"
        assert principal.provider == "github"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_session_key_uses_token_hash(self, session_factory):
        redis_mock = MagicMock()
        redis_mock.get = AsyncMock(return_value=json.dumps({"user_id": "u1"}))
        redis_mock.expire = AsyncMock(return_value=True)
        verifier = _verifier_with_redis(redis_mock, session_factory)

        assert await verifier.verify_credential("tok") == "u1"

        redis_mock.get.assert_awaited_once_with(f"session:{hash_token('tok')}")
        redis_mock.expire.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_token(self, verifier):
        with pytest.raises(UnauthorizedException):
            await verifier.verify_credential(None)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_token(self, verifier):
        with pytest.raises(InvalidTokenException) as exc_info:
            await verifier.verify_credential("nope")

        assert exc_info.value.message == "Invalid or expired token"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored", ["not json", json.dumps({"provider": "github"}), json.dumps(["u1"])])
    async def test_malformed_session(self, session_factory, stored):
        redis_mock = MagicMock()
        redis_mock.get = AsyncMock(return_value=stored)
        verifier = _verifier_with_redis(redis_mock, session_factory)

        with pytest.raises(InvalidTokenException) as exc_info:
            await verifier.verify_credential("tok")

        assert exc_info.value.message == "Invalid session data"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redis_failure(self, session_factory):
        redis_mock = MagicMock()
        redis_mock.get = AsyncMock(side_effect=RedisConnectionError("down"))
        verifier = _verifier_with_redis(redis_mock, session_factory)

        with pytest.raises(StoreUnavailableException):
            await verifier.verify_credential("tok")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_user(self, fake_redis, verifier):
        fake_redis.issue("tok-ghost", "ghost")

        with pytest.raises(UserNotFoundException) as exc_info:
            await verifier.authenticate("tok-ghost")

        assert exc_info.value.status_code == 401


class TestWebSocketAuthentication:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_token(self, verifier):
        with pytest.raises(WebSocketAuthError) as exc_info:
            await authenticate_websocket_token(verifier, None)

        assert exc_info.value.code == 4001
        assert exc_info.value.reason == "No token provided"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_token_reason(self, verifier):
        with pytest.raises(WebSocketAuthError) as exc_info:
            await authenticate_websocket_token(verifier, "nope")

        assert exc_info.value.code == 4001
        assert exc_info.value.reason == "Invalid or expired token"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_store_unavailable_is_auth_failure(self, session_factory):
        redis_mock = MagicMock()
        redis_mock.get = AsyncMock(side_effect=RedisConnectionError("down"))
        verifier = _verifier_with_redis(redis_mock, session_factory)

        with pytest.raises(WebSocketAuthError) as exc_info:
            await authenticate_websocket_token(verifier, "tok")

        assert exc_info.value.reason == "Authentication failed"
