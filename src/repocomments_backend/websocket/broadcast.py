"""
Event broadcaster.

Fans domain events out to every session joined to the event's repository
scope or branch scope. Call it after the change has been persisted:

    hub = request.app.state.realtime
    await hub.broadcaster.thread_created(thread)

Delivery never blocks on slow clients: frames are queued per session and
sent by that session's writer task in publish order.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

from repocomments_backend.websocket.metrics import WebSocketMetrics
from repocomments_backend.websocket.pubsub import RedisEventRelay
from repocomments_backend.websocket.registry import SessionClosedError, SessionRegistry
from repocomments_backend.websocket.rooms import RoomRouter, scopes_for
from repocomments_types.events import DomainEventBase, MessageAdded, ThreadCreated, ThreadUpdated
from repocomments_types.websocket import WSBroadcast

logger = logging.getLogger(__name__)


class EventBroadcaster:

    def __init__(
        self,
        registry: SessionRegistry,
        rooms: RoomRouter,
        metrics: Optional[WebSocketMetrics] = None,
        relay: Optional[RedisEventRelay] = None,
    ):
        self._registry = registry
        self._rooms = rooms
        self._metrics = metrics or WebSocketMetrics()
        self._relay = relay

    async def publish(self, event: DomainEventBase) -> int:
        """
        Deliver ``event`` to local subscribers and, with the relay enabled,
        to the other instances.

        Never raises for delivery problems.

        Returns:
            Number of local sessions the event was queued for
        """
        delivered = self.deliver_local(event)

        if self._relay is not None:
            try:
                await self._relay.publish(event)
            except (RedisError, OSError) as e:
                logger.error(f"Failed to relay {event.kind} for {event.repo}: {e}")

        return delivered

    def deliver_local(self, event: DomainEventBase) -> int:
        """Queue ``event`` once for every local session in its scopes."""
        repo_scope, branch_scope = scopes_for(event.repo, event.branch)

        recipients = self._rooms.members(repo_scope)
        if branch_scope:
            recipients |= self._rooms.members(branch_scope)

        if not recipients:
            logger.debug(f"No local subscribers for {event.kind} on {repo_scope}")
            return 0

        frame = WSBroadcast(type=event.kind, data=jsonable_encoder(event.payload())).model_dump()

        delivered = 0
        for session_id in recipients:
            session = self._registry.get(session_id)
            if session is None:
                continue
            try:
                session.enqueue(frame)
                delivered += 1
            except SessionClosedError:
                logger.debug(f"Skipping closed session {session_id} for {event.kind}")
                self._metrics.delivery_dropped()
            except asyncio.QueueFull:
                logger.warning(f"Outbound queue full for user {session.user_id}, dropping {event.kind}")
                self._metrics.delivery_dropped()
            except Exception as e:
                logger.error(f"Failed to queue {event.kind} for session {session_id}: {e}")
                self._metrics.delivery_dropped()

        logger.debug(f"Broadcast {event.kind} on {repo_scope}: {delivered}/{len(recipients)} sessions")
        return delivered

    async def thread_created(self, thread: Dict[str, Any]) -> int:
        return await self.publish(ThreadCreated(
            repo=thread["repo"],
            branch=thread.get("branch"),
            thread=thread,
        ))

    async def thread_updated(self, thread: Dict[str, Any]) -> int:
        return await self.publish(ThreadUpdated(
            repo=thread["repo"],
            branch=thread.get("branch"),
            thread=thread,
        ))

    async def message_added(self, message: Dict[str, Any], thread: Dict[str, Any]) -> int:
        """Broadcast a new message, scoped by the thread it was posted to."""
        return await self.publish(MessageAdded(
            repo=thread["repo"],
            branch=thread.get("branch"),
            thread_id=thread["id"],
            message=message,
        ))
