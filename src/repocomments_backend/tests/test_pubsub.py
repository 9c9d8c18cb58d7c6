"""Tests for the Redis pub/sub relay."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from repocomments_backend.websocket.pubsub import (
    RELAY_CHANNEL,
    RawPubSubMessage,
    RedisEventRelay,
    parse_pubsub_message,
)
from repocomments_types.events import ThreadCreated


def _envelope(origin="other", **event) -> str:
    event.setdefault("kind", "thread:created")
    event.setdefault("repo", "acme/app")
    event.setdefault("thread", {"id": "t1"})
    return json.dumps({"origin": origin, "event": event})


class TestParsePubSubMessage:

    @pytest.mark.unit
    def test_valid_message(self):
        parsed = parse_pubsub_message(RawPubSubMessage(
            channel=RELAY_CHANNEL.encode(), data=_envelope().encode(), message_type="message",
        ))

        assert parsed.origin == "other"
        assert isinstance(parsed.event, ThreadCreated)
        assert parsed.event.repo == "acme/app"

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [
        RawPubSubMessage(channel=RELAY_CHANNEL, data="1", message_type="subscribe"),
        RawPubSubMessage(channel="ws:broadcast:other", data=_envelope(), message_type="message"),
        RawPubSubMessage(channel=RELAY_CHANNEL, data="{not json", message_type="message"),
        RawPubSubMessage(channel=RELAY_CHANNEL, data=json.dumps({"origin": "x"}), message_type="message"),
        RawPubSubMessage(channel=RELAY_CHANNEL, data=_envelope(kind="thread:deleted"), message_type="message"),
        RawPubSubMessage(channel=RELAY_CHANNEL, data=_envelope(repo=""), message_type="message"),
    ])
    def test_skipped_messages(self, raw):
        assert parse_pubsub_message(raw) is None


class TestRedisEventRelay:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_envelope(self):
        redis_mock = MagicMock()
        redis_mock.publish = AsyncMock()

        async def redis_getter():
            return redis_mock

        relay = RedisEventRelay(redis_getter=redis_getter, instance_id="i1")
        await relay.publish(ThreadCreated(repo="acme/app", branch="main", thread={"id": "t1"}))

        channel, message = redis_mock.publish.await_args.args
        assert channel == RELAY_CHANNEL
        payload = json.loads(message)
        assert payload["origin"] == "i1"
        assert payload["event"] == {
            "kind": "thread:created",
            "repo": "acme/app",
            "branch": "main",
            "thread": {"id": "t1"},
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_and_process(self):
        pubsub_mock = MagicMock()
        pubsub_mock.subscribe = AsyncMock()
        pubsub_mock.unsubscribe = AsyncMock()
        pubsub_mock.aclose = AsyncMock()

        async def no_message(**kwargs):
            await asyncio.sleep(0.01)
            return None

        pubsub_mock.get_message = no_message
        redis_mock = MagicMock()
        redis_mock.pubsub.return_value = pubsub_mock

        async def redis_getter():
            return redis_mock

        delivered = []

        def handler(event):
            delivered.append(event)
            return 1

        relay = RedisEventRelay(redis_getter=redis_getter, instance_id="i1")
        await relay.start(handler)
        try:
            pubsub_mock.subscribe.assert_awaited_once_with(RELAY_CHANNEL)

            own = {"type": "message", "channel": RELAY_CHANNEL, "data": _envelope(origin="i1")}
            foreign = {"type": "message", "channel": RELAY_CHANNEL, "data": _envelope(origin="i2")}

            assert relay.process_raw_message(own) == 0
            assert relay.process_raw_message(foreign) == 1
            assert [e.kind for e in delivered] == ["thread:created"]
        finally:
            await relay.stop()

        assert not relay.running
        pubsub_mock.aclose.assert_awaited_once()
