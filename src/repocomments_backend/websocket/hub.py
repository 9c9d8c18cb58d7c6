"""
Realtime hub: owns all realtime state of one process.

Created by the application lifespan and stored on ``app.state.realtime``.
Components reach each other through the hub instead of module globals, so
tests can build isolated hubs with fake stores.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Request

from repocomments_backend.permissions.auth import TokenVerifier
from repocomments_backend.permissions.oracle import PermissionOracle
from repocomments_backend.settings import settings
from repocomments_backend.websocket.broadcast import EventBroadcaster
from repocomments_backend.websocket.connection_manager import ConnectionManager
from repocomments_backend.websocket.metrics import WebSocketMetrics
from repocomments_backend.websocket.pubsub import RedisEventRelay
from repocomments_backend.websocket.registry import SessionRegistry
from repocomments_backend.websocket.rooms import RoomRouter

logger = logging.getLogger(__name__)


class RealtimeHub:

    def __init__(
        self,
        verifier: Optional[TokenVerifier] = None,
        oracle: Optional[PermissionOracle] = None,
        relay: Optional[RedisEventRelay] = None,
        pubsub_enabled: Optional[bool] = None,
        **connection_options,
    ):
        if pubsub_enabled is None:
            pubsub_enabled = settings.WS_PUBSUB_ENABLED

        self.metrics = WebSocketMetrics()
        self.verifier = verifier or TokenVerifier()
        self.oracle = oracle or PermissionOracle()
        self.registry = SessionRegistry(metrics=self.metrics)
        self.rooms = RoomRouter(self.oracle, self.registry)
        self.relay = relay or (RedisEventRelay() if pubsub_enabled else None)
        self.broadcaster = EventBroadcaster(self.registry, self.rooms, self.metrics, relay=self.relay)
        self.connections = ConnectionManager(
            self.verifier, self.registry, self.rooms, self.metrics, **connection_options
        )
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the relay listener (when enabled)."""
        if self._running:
            return

        if self.relay is not None:
            await self.relay.start(self.broadcaster.deliver_local)

        self._running = True
        logger.info("RealtimeHub started")

    async def stop(self):
        """Stop the relay, close every connection and release all sessions."""
        logger.info("Stopping RealtimeHub...")
        self._running = False

        if self.relay is not None:
            await self.relay.stop()

        sessions = self.registry.all_sessions()
        if sessions:
            try:
                await asyncio.wait_for(
                    asyncio.gather(
                        *(self.connections.close_session(s) for s in sessions),
                        return_exceptions=True,
                    ),
                    timeout=3.0
                )
            except asyncio.TimeoutError:
                logger.warning(f"Timeout closing {len(sessions)} WebSocket connections")

        for session in sessions:
            self.registry.release(session)

        logger.info("RealtimeHub stopped")

    def get_metrics(self) -> dict:
        """
        Get comprehensive WebSocket metrics.

        Returns:
            Dictionary with connection and message metrics
        """
        metrics = self.metrics.get_metrics()
        metrics.update({
            "current_connections": self.registry.get_connection_count(),
            "current_users": self.registry.get_user_count(),
            "active_scopes": self.rooms.scope_count(),
            "pubsub_enabled": self.relay is not None,
        })
        return metrics


def get_realtime(request: Request) -> RealtimeHub:
    """FastAPI dependency returning the application's hub."""
    return request.app.state.realtime
