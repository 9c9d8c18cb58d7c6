"""Pytest configuration and fixtures for repocomments_backend tests."""

import asyncio
import json
from typing import Dict, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from repocomments_backend.api.repos import repos_router
from repocomments_backend.exceptions import register_exception_handlers
from repocomments_backend.model import Base, Permission, Team, TeamMember, User
from repocomments_backend.permissions.auth import TokenVerifier
from repocomments_backend.permissions.oracle import PermissionOracle
from repocomments_backend.permissions.principal import Principal
from repocomments_backend.utils.token_hash import hash_token
from repocomments_backend.websocket.hub import RealtimeHub
from repocomments_backend.websocket.router import ws_router
from repocomments_types.roles import Role


# ============================================================================
# Fakes
# ============================================================================


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client (session store only)."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.published = []

    async def get(self, key):
        return self.data.get(key)

    async def expire(self, key, ttl):
        return key in self.data

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    def issue(self, token: str, user_id: str):
        self.data[f"session:{hash_token(token)}"] = json.dumps({"user_id": user_id, "provider": "github"})


class FakeOracle:
    """
    Role lookup backed by a dict.

    ``gate`` lets a test hold every lookup until it sets the event, to
    exercise sessions closing while a permission check is in flight.
    """

    def __init__(self, roles: Optional[Dict[tuple, Role]] = None):
        self.roles: Dict[tuple, Role] = dict(roles or {})
        self.calls = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def role_for(self, user_id: str, repo: str) -> Optional[Role]:
        self.calls.append((user_id, repo))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.roles.get((user_id, repo))


class FakeWebSocket:
    """Records frames sent by the connection manager."""

    def __init__(self):
        self.sent = []
        self.closed = None

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000, reason=None):
        self.closed = (code, reason)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


def make_user(db: Session, name: str, email: Optional[str] = None) -> User:
    user = User(name=name, email=email or f"{name.lower()}@example.com", provider="github")
    db.add(user)
    db.commit()
    return user


def make_team(db: Session, name: str, *members: User) -> Team:
    team = Team(name=name)
    db.add(team)
    db.flush()
    for member in members:
        db.add(TeamMember(team_id=team.id, user_id=member.id))
    db.commit()
    return team


def grant(db: Session, repo: str, role: str, user: Optional[User] = None, team: Optional[Team] = None) -> Permission:
    permission = Permission(
        repo=repo,
        role=role,
        user_id=user.id if user else None,
        team_id=team.id if team else None,
    )
    db.add(permission)
    db.commit()
    return permission


# ============================================================================
# Realtime hub and application
# ============================================================================


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def verifier(fake_redis, session_factory):
    async def redis_getter():
        return fake_redis
    return TokenVerifier(redis_getter=redis_getter, session_factory=session_factory)


@pytest.fixture
def oracle(session_factory):
    return PermissionOracle(session_factory=session_factory)


@pytest.fixture
def hub(verifier, oracle):
    return RealtimeHub(
        verifier=verifier,
        oracle=oracle,
        pubsub_enabled=False,
        ping_interval=60,
        ping_timeout=5,
    )


@pytest.fixture
def unit_hub(verifier, fake_oracle):
    """Hub with a dict-backed oracle, for tests driving sessions directly."""
    return RealtimeHub(verifier=verifier, oracle=fake_oracle, pubsub_enabled=False)


def build_app(hub: RealtimeHub) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(ws_router)
    app.include_router(repos_router)
    app.state.realtime = hub
    return app


@pytest.fixture
def app(hub):
    return build_app(hub)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def principal():
    return Principal(user_id="user-u", email="u@example.com", name="U")
