"""
WebSocket router and endpoint.

Provides the FastAPI WebSocket endpoint for real-time communication.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket

from repocomments_backend.websocket.hub import RealtimeHub, get_realtime

logger = logging.getLogger(__name__)

ws_router = APIRouter()


@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Main WebSocket endpoint for real-time comment updates.

    Authentication:
        Bearer credential in the handshake, either as header
        ``Authorization: Bearer <token>`` or as query parameter
        ``ws://localhost:8000/ws?token=<token>``.
        Failures are reported with ``{"type": "error", "code": "AUTH_FAILED"}``
        followed by close code 4001.

    Connection Flow:
        1. Client connects with token
        2. Server validates token and accepts connection
        3. Server sends connected event with user and session id
        4. Client subscribes to repositories via subscribe
        5. Server checks read access and confirms with subscribed
        6. Server pushes thread and message events of subscribed repositories

    Client -> Server Events:
        - subscribe: {"type": "subscribe", "repo": "acme/app", "branch": "main"}
        - unsubscribe: {"type": "unsubscribe", "repo": "acme/app"}
        - ping: {"type": "ping"}
        - pong: {"type": "pong"} (answer to a server ping)

    Server -> Client Events:
        - connected, subscribed, unsubscribed, error, ping, pong
        - thread:created, thread:updated, message:added

    Keep-Alive:
        The server sends {"type": "ping"} every WS_PING_INTERVAL seconds.
        Any frame received within WS_PING_TIMEOUT seconds keeps the
        connection open; otherwise it is closed with code 4002.
    """
    hub: RealtimeHub = websocket.app.state.realtime
    await hub.connections.serve(websocket)


@ws_router.get("/ws/metrics")
async def websocket_metrics(hub: RealtimeHub = Depends(get_realtime)):
    """Connection and message counters of this instance."""
    return hub.get_metrics()
