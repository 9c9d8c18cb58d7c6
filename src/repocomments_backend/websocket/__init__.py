"""
WebSocket package for real-time comment updates.

This package provides:
- Handshake authentication with bearer credentials
- Repository and branch scoped subscriptions gated by repository roles
- Fan-out of thread and message events to subscribed sessions
- Optional Redis pub/sub relay for multi-instance deployments
"""

from repocomments_backend.websocket.broadcast import EventBroadcaster
from repocomments_backend.websocket.connection_manager import ConnectionManager
from repocomments_backend.websocket.hub import RealtimeHub, get_realtime
from repocomments_backend.websocket.registry import Session, SessionRegistry, ConnectionState
from repocomments_backend.websocket.rooms import RoomRouter, scopes_for

__all__ = [
    "EventBroadcaster",
    "ConnectionManager",
    "RealtimeHub",
    "get_realtime",
    "Session",
    "SessionRegistry",
    "ConnectionState",
    "RoomRouter",
    "scopes_for",
]
