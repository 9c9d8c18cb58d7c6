"""Tests for the shared event DTOs."""

import pytest
from pydantic import ValidationError

from repocomments_types.events import DomainEventBase, MessageAdded, ThreadCreated, ThreadUpdated, parse_domain_event
from repocomments_types.websocket import WSBroadcast, WSConnected


class TestDomainEvents:

    @pytest.mark.unit
    @pytest.mark.parametrize("data,cls", [
        ({"kind": "thread:created", "repo": "acme/app", "thread": {"id": "t1"}}, ThreadCreated),
        ({"kind": "thread:updated", "repo": "acme/app", "branch": "main", "thread": {"id": "t1"}}, ThreadUpdated),
        ({"kind": "message:added", "repo": "acme/app", "thread_id": "t1", "message": {"id": "m1"}}, MessageAdded),
    ])
    def test_parse(self, data, cls):
        assert isinstance(parse_domain_event(data), cls)

    @pytest.mark.unit
    def test_repo_is_required(self):
        with pytest.raises(ValidationError):
            ThreadCreated(repo="", thread={})

    @pytest.mark.unit
    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_domain_event({"kind": "thread:deleted", "repo": "acme/app"})

    @pytest.mark.unit
    def test_payloads(self):
        thread = {"id": "t1", "title": "Typo"}
        assert ThreadCreated(repo="acme/app", thread=thread).payload() == thread
        assert MessageAdded(repo="acme/app", thread_id="t1", message={"id": "m1"}).payload() == {
            "threadId": "t1",
            "message": {"id": "m1"},
        }

    @pytest.mark.unit
    def test_base_event_is_abstract(self):
        with pytest.raises(TypeError):
            DomainEventBase(kind="thread:created", repo="acme/app")


class TestServerEvents:

    @pytest.mark.unit
    def test_connected(self):
        assert WSConnected(user_id="u1", session_id="s1").model_dump() == {
            "type": "connected",
            "user_id": "u1",
            "session_id": "s1",
        }

    @pytest.mark.unit
    def test_broadcast_type_is_closed(self):
        with pytest.raises(ValidationError):
            WSBroadcast(type="thread:deleted", data={})
