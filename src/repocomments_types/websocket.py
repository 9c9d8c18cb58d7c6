"""
WebSocket event DTOs for real-time communication.

This module defines the frames exchanged over the realtime connection.
Every frame is a JSON object with a ``type`` field.

Client -> Server:
- subscribe / unsubscribe: repository (and optional branch) subscriptions
- ping: keep-alive initiated by the client
- pong: answer to a server heartbeat

Server -> Client:
- connected, subscribed, unsubscribed, error, ping, pong
- thread:created, thread:updated, message:added (broadcast events)
"""

from pydantic import BaseModel, Field, ValidationError
from typing import Literal, Optional, Any, Union
from datetime import datetime, timezone


# =============================================================================
# Base Event Types
# =============================================================================

class WSEventBase(BaseModel):
    """Base class for all WebSocket events."""
    type: str


# =============================================================================
# Client -> Server Events
# =============================================================================

class WSSubscribe(WSEventBase):
    """Subscribe to a repository, optionally narrowed to a branch."""
    type: Literal["subscribe"] = "subscribe"
    repo: Optional[str] = Field(None, description="Repository name, e.g. 'acme/app'")
    branch: Optional[str] = Field(None, description="Branch name, e.g. 'main'")


class WSUnsubscribe(WSEventBase):
    """Unsubscribe from a repository (and any branch scope held for it)."""
    type: Literal["unsubscribe"] = "unsubscribe"
    repo: Optional[str] = Field(None, description="Repository name")
    branch: Optional[str] = Field(None, description="Branch name, echoed back in the reply")


class WSPing(WSEventBase):
    """Keep-alive ping. Sent by clients, and by the server as heartbeat."""
    type: Literal["ping"] = "ping"


class WSPong(WSEventBase):
    """Keep-alive pong. Answer to a ping in either direction."""
    type: Literal["pong"] = "pong"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Server -> Client Events
# =============================================================================

class WSConnected(WSEventBase):
    """Connection established confirmation."""
    type: Literal["connected"] = "connected"
    user_id: str = Field(..., description="ID of the authenticated user")
    session_id: str = Field(..., description="ID of this connection's session")


class WSSubscribed(WSEventBase):
    """Confirmation of a successful subscription."""
    type: Literal["subscribed"] = "subscribed"
    repo: str
    branch: Optional[str] = None


class WSUnsubscribed(WSEventBase):
    """Confirmation of an unsubscription."""
    type: Literal["unsubscribed"] = "unsubscribed"
    repo: Optional[str] = None
    branch: Optional[str] = None


class WSError(WSEventBase):
    """General error event."""
    type: Literal["error"] = "error"
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Error code")


class WSBroadcast(WSEventBase):
    """A domain event delivered to subscribers (thread:created, ...)."""
    type: Literal["thread:created", "thread:updated", "message:added"]
    data: Any = Field(..., description="Event payload, delivered unmodified")


# =============================================================================
# Union Types for Parsing
# =============================================================================

# All events that can be sent from client to server
ClientEvent = Union[
    WSSubscribe,
    WSUnsubscribe,
    WSPing,
    WSPong,
]


# =============================================================================
# Event Type Registry (for handler dispatch)
# =============================================================================

CLIENT_EVENT_TYPES = {
    "subscribe": WSSubscribe,
    "unsubscribe": WSUnsubscribe,
    "ping": WSPing,
    "pong": WSPong,
}


def parse_client_event(data: Any) -> Optional[ClientEvent]:
    """
    Parse incoming client event data into typed event object.

    Args:
        data: Raw event data from WebSocket

    Returns:
        Parsed event object or None if invalid
    """
    if not isinstance(data, dict):
        return None

    event_type = data.get("type")
    if not event_type or event_type not in CLIENT_EVENT_TYPES:
        return None

    event_class = CLIENT_EVENT_TYPES[event_type]
    try:
        return event_class.model_validate(data)
    except ValidationError:
        return None
