"""
Redis pub/sub relay for multi-instance broadcasting.

Every instance publishes the domain events it broadcasts to one Redis
channel and delivers the events published by other instances to its own
local sessions. Messages carry the id of the publishing instance so an
instance never delivers its own events twice.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from repocomments_backend.redis_cache import get_redis_client
from repocomments_types.events import DomainEventBase, parse_domain_event

logger = logging.getLogger(__name__)

RELAY_CHANNEL = "ws:broadcast:events"


@dataclass
class RawPubSubMessage:
    """Raw message received from Redis pub/sub."""
    channel: str | bytes
    data: bytes | str
    message_type: str  # Redis message type (e.g., "message", "subscribe")


@dataclass
class RelayedEvent:
    """A validated domain event received from the relay channel."""
    origin: str
    event: DomainEventBase


def parse_pubsub_message(raw: RawPubSubMessage) -> Optional[RelayedEvent]:
    """
    Parse and validate a raw pub/sub message.

    Returns:
        RelayedEvent if valid, None if the message should be skipped
    """
    # Only process actual messages (not subscribe/unsubscribe confirmations)
    if raw.message_type != "message":
        return None

    channel = raw.channel
    if isinstance(channel, bytes):
        channel = channel.decode("utf-8")
    if channel != RELAY_CHANNEL:
        return None

    data = raw.data
    if isinstance(data, bytes):
        data = data.decode("utf-8")

    try:
        envelope = json.loads(data)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in pubsub message: {e}")
        return None

    if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), dict):
        logger.error("Pubsub message without event payload")
        return None

    try:
        event = parse_domain_event(envelope["event"])
    except ValidationError as e:
        logger.error(f"Invalid domain event in pubsub message: {e}")
        return None

    return RelayedEvent(origin=str(envelope.get("origin", "")), event=event)


class RedisEventRelay:
    """
    Publishes domain events to Redis and feeds events from other instances
    into a local delivery callback.
    """

    def __init__(
        self,
        redis_getter: Callable[[], Awaitable] = get_redis_client,
        instance_id: Optional[str] = None,
    ):
        self._redis_getter = redis_getter
        self.instance_id = instance_id or uuid.uuid4().hex
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None
        self._handler: Optional[Callable[[DomainEventBase], int]] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, handler: Callable[[DomainEventBase], int]):
        """Subscribe to the relay channel and start the listener task."""
        if self._running:
            logger.warning("Event relay already running")
            return

        redis_client = await self._redis_getter()
        self._pubsub = redis_client.pubsub()
        await self._pubsub.subscribe(RELAY_CHANNEL)
        self._handler = handler
        self._running = True

        self._listener_task = asyncio.create_task(self._listen())
        logger.info(f"Redis event relay started (instance {self.instance_id})")

    async def stop(self):
        """Stop the listener and release the pub/sub connection."""
        logger.info("Stopping Redis event relay...")
        self._running = False

        if self._listener_task:
            self._listener_task.cancel()
            try:
                await asyncio.wait_for(self._listener_task, timeout=2.0)
            except asyncio.CancelledError:
                pass
            except asyncio.TimeoutError:
                logger.warning("Relay listener task did not stop within timeout")
            self._listener_task = None

        if self._pubsub:
            try:
                await asyncio.wait_for(self._pubsub.unsubscribe(), timeout=1.0)
                await asyncio.wait_for(self._pubsub.aclose(), timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning("Relay pubsub shutdown timed out")
            except Exception as e:
                logger.warning(f"Error closing relay pubsub: {e}")
            self._pubsub = None

        self._handler = None
        logger.info("Redis event relay stopped")

    async def publish(self, event: DomainEventBase):
        """Publish ``event`` for the other instances."""
        redis_client = await self._redis_getter()
        message = json.dumps({
            "origin": self.instance_id,
            "event": event.model_dump(mode="json"),
        })
        await redis_client.publish(RELAY_CHANNEL, message)
        logger.debug(f"Relayed {event.kind} for {event.repo}")

    async def _listen(self):
        """
        Background task that listens for relayed events.

        Polls with a short timeout so shutdown is noticed promptly.
        """
        consecutive_errors = 0
        max_consecutive_errors = 10

        try:
            while self._running and self._pubsub:
                try:
                    raw_message = await self._pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=0.5
                    )
                    if raw_message is None:
                        continue

                    self.process_raw_message(raw_message)
                    consecutive_errors = 0

                except asyncio.CancelledError:
                    break
                except Exception as e:
                    consecutive_errors += 1
                    logger.error(f"Relay listener error ({consecutive_errors}/{max_consecutive_errors}): {e}")

                    if consecutive_errors >= max_consecutive_errors:
                        logger.critical("Relay listener exceeded max errors, stopping")
                        break

                    # Exponential backoff: 0.1s, 0.2s, 0.4s, ..., max 5s
                    backoff = min(0.1 * (2 ** (consecutive_errors - 1)), 5.0)
                    await asyncio.sleep(backoff)
        finally:
            logger.info("Relay listener loop ended")

    def process_raw_message(self, raw_message: dict) -> int:
        """
        Deliver one message from Redis to local sessions.

        Returns:
            Number of local sessions the event was queued for
        """
        parsed = parse_pubsub_message(RawPubSubMessage(
            channel=raw_message.get("channel", ""),
            data=raw_message.get("data", ""),
            message_type=raw_message.get("type", ""),
        ))
        if parsed is None or self._handler is None:
            return 0

        if parsed.origin == self.instance_id:
            return 0

        return self._handler(parsed.event)
