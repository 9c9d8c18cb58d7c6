"""Tests for session lifecycle state and the session registry."""

import pytest

from repocomments_backend.permissions.principal import Principal
from repocomments_backend.websocket.registry import (
    ConnectionLimitError,
    ConnectionState,
    InvalidStateTransition,
    Session,
    SessionClosedError,
    SessionRegistry,
)


def _principal(user_id: str) -> Principal:
    return Principal(user_id=user_id)


class TestSessionState:

    @pytest.mark.unit
    def test_lifecycle(self):
        session = Session(websocket=None, principal=_principal("u1"))
        assert session.state is ConnectionState.CONNECTING

        session.transition(ConnectionState.AUTHENTICATED)
        session.transition(ConnectionState.ACTIVE)
        session.transition(ConnectionState.CLOSED)

        assert session.is_closed

    @pytest.mark.unit
    @pytest.mark.parametrize("path", [
        [ConnectionState.ACTIVE],
        [ConnectionState.AUTHENTICATED, ConnectionState.CONNECTING],
        [ConnectionState.CLOSED, ConnectionState.ACTIVE],
    ])
    def test_illegal_transitions(self, path):
        session = Session(websocket=None, principal=_principal("u1"))

        with pytest.raises(InvalidStateTransition):
            for state in path:
                session.transition(state)

    @pytest.mark.unit
    def test_enqueue_on_closed_session(self):
        session = Session(websocket=None, principal=_principal("u1"))
        session.transition(ConnectionState.CLOSED)

        with pytest.raises(SessionClosedError):
            session.enqueue({"type": "ping"})

    @pytest.mark.unit
    def test_session_ids_are_unique(self):
        a = Session(websocket=None, principal=_principal("u1"))
        b = Session(websocket=None, principal=_principal("u1"))
        assert a.session_id != b.session_id


class TestSessionRegistry:

    @pytest.mark.unit
    def test_register_and_release(self):
        registry = SessionRegistry()
        session = registry.register(_principal("u1"), websocket=object())

        assert session.state is ConnectionState.AUTHENTICATED
        assert session.subscriptions == {}
        assert registry.is_live(session)
        assert registry.get(session.session_id) is session
        assert registry.get_connection_count() == 1

        registry.release(session)

        assert session.is_closed
        assert not registry.is_live(session)
        assert registry.get(session.session_id) is None
        assert registry.get_user_count() == 0

    @pytest.mark.unit
    def test_release_is_idempotent(self):
        released = []
        registry = SessionRegistry()
        registry.on_release(released.append)
        session = registry.register(_principal("u1"), websocket=object())

        registry.release(session)
        registry.release(session)

        assert released == [session]

    @pytest.mark.unit
    def test_same_identity_gets_independent_sessions(self):
        registry = SessionRegistry()
        first = registry.register(_principal("u1"), websocket=object())
        second = registry.register(_principal("u1"), websocket=object())

        assert set(registry.sessions_for_user("u1")) == {first, second}

        registry.release(first)

        assert registry.sessions_for_user("u1") == [second]
        assert registry.is_live(second)

    @pytest.mark.unit
    def test_record_subscription_overwrites_branch(self):
        registry = SessionRegistry()
        session = registry.register(_principal("u1"), websocket=object())

        registry.record_subscription(session, "acme/app", "main")
        registry.record_subscription(session, "acme/app", "dev")
        registry.record_subscription(session, "acme/site", "")

        assert session.subscriptions == {"acme/app": "dev", "acme/site": None}

        registry.record_unsubscription(session, "acme/app")
        registry.record_unsubscription(session, "acme/unknown")

        assert session.subscriptions == {"acme/site": None}

    @pytest.mark.unit
    def test_per_user_limit(self):
        registry = SessionRegistry(max_connections_per_user=2)
        registry.register(_principal("u1"), websocket=object())
        registry.register(_principal("u1"), websocket=object())

        with pytest.raises(ConnectionLimitError) as exc_info:
            registry.register(_principal("u1"), websocket=object())

        assert exc_info.value.code == 4008
        # Other users are unaffected
        registry.register(_principal("u2"), websocket=object())

    @pytest.mark.unit
    def test_total_limit(self):
        registry = SessionRegistry(max_total_connections=1)
        registry.register(_principal("u1"), websocket=object())

        with pytest.raises(ConnectionLimitError):
            registry.register(_principal("u2"), websocket=object())
