"""
WebSocket connection lifecycle.

Every connection runs through CONNECTING -> AUTHENTICATED -> ACTIVE -> CLOSED.
While active, three tasks serve it:

- reader: receives client frames and dispatches them to the handlers
- writer: drains the session queue onto the socket, in order
- heartbeat: pings the client and closes silent connections

The first task to finish ends the connection; the others are cancelled and
the session is released from the registry.
"""

import asyncio
import json
import logging
import time
from typing import Optional, Tuple

from fastapi import WebSocket, WebSocketDisconnect

from repocomments_backend.exceptions import UnauthorizedException
from repocomments_backend.permissions.auth import TokenVerifier
from repocomments_backend.settings import settings
from repocomments_backend.websocket.auth import (
    AUTH_FAILED_CLOSE_CODE,
    WebSocketAuthError,
    authenticate_websocket_token,
    extract_handshake_token,
)
from repocomments_backend.websocket.handlers import handle_client_message, send_to_session
from repocomments_backend.websocket.metrics import WebSocketMetrics
from repocomments_backend.websocket.registry import (
    ConnectionLimitError,
    ConnectionState,
    Session,
    SessionClosedError,
    SessionRegistry,
)
from repocomments_backend.websocket.rooms import RoomRouter
from repocomments_types.websocket import WSConnected, WSError, WSPing

logger = logging.getLogger(__name__)

HEARTBEAT_CLOSE_CODE = 4002

# (close code, reason) requested by the task that ended the connection
CloseRequest = Optional[Tuple[int, str]]


class ConnectionManager:
    """Serves WebSocket connections from handshake to cleanup."""

    def __init__(
        self,
        verifier: TokenVerifier,
        registry: SessionRegistry,
        rooms: RoomRouter,
        metrics: Optional[WebSocketMetrics] = None,
        ping_interval: Optional[float] = None,
        ping_timeout: Optional[float] = None,
        send_timeout: Optional[float] = None,
    ):
        self._verifier = verifier
        self._registry = registry
        self._rooms = rooms
        self._metrics = metrics or WebSocketMetrics()
        self.ping_interval = ping_interval or settings.WS_PING_INTERVAL
        self.ping_timeout = ping_timeout or settings.WS_PING_TIMEOUT
        self.send_timeout = send_timeout or settings.WS_SEND_TIMEOUT

    async def serve(self, websocket: WebSocket) -> None:
        """
        Run one connection to completion.

        Authentication happens before any session exists: a rejected
        connection is accepted only to report the failure and is then closed.
        """
        try:
            principal = await authenticate_websocket_token(
                self._verifier, extract_handshake_token(websocket)
            )
        except WebSocketAuthError as e:
            logger.warning(f"WebSocket auth failed: {e.reason}")
            self._metrics.auth_failed()
            await self._reject(websocket, "AUTH_FAILED", e.code, e.reason)
            return

        try:
            session = self._registry.register(principal, websocket)
        except ConnectionLimitError as e:
            logger.warning(f"WebSocket connection limit: {e.message}")
            await self._reject(websocket, "CONNECTION_LIMIT", e.code, e.message)
            return

        try:
            await websocket.accept()
            session.transition(ConnectionState.ACTIVE)
            send_to_session(session, WSConnected(
                user_id=principal.user_id,
                session_id=session.session_id,
            ))

            close_request = await self._run(session)
            if close_request is not None:
                code, reason = close_request
                await self._close_safe(websocket, code, reason)

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: user={principal.user_id}")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            await self._close_safe(websocket, 1011, "Internal error")
        finally:
            self._registry.release(session)

    async def _run(self, session: Session) -> CloseRequest:
        tasks = [
            asyncio.create_task(self._reader(session), name=f"ws-reader-{session.session_id}"),
            asyncio.create_task(self._writer(session), name=f"ws-writer-{session.session_id}"),
            asyncio.create_task(self._heartbeat(session), name=f"ws-heartbeat-{session.session_id}"),
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        close_request: CloseRequest = None
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is None:
                close_request = close_request or task.result()
            elif not isinstance(exc, WebSocketDisconnect):
                logger.error(f"Connection task {task.get_name()} failed: {exc}")
        return close_request

    async def _reader(self, session: Session) -> CloseRequest:
        websocket = session.websocket
        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected: user={session.user_id}")
                return None

            if message["type"] != "websocket.receive":
                continue

            session.touch()
            self._metrics.message_received()

            text = message.get("text")
            if text is None:
                # Binary frames only count as liveness
                continue

            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning(f"WebSocket invalid JSON from user={session.user_id}: {e}")
                send_to_session(session, WSError(
                    code="INVALID_JSON",
                    message="Message must be valid JSON"
                ))
                continue

            try:
                await handle_client_message(self._rooms, session, data)
            except UnauthorizedException as e:
                logger.warning(f"Closing session {session.session_id}: {e.message}")
                return AUTH_FAILED_CLOSE_CODE, e.message

    async def _writer(self, session: Session) -> CloseRequest:
        websocket = session.websocket
        while True:
            frame = await session.queue.get()
            try:
                await asyncio.wait_for(websocket.send_json(frame), timeout=self.send_timeout)
                self._metrics.message_sent()
            except asyncio.TimeoutError:
                logger.warning(f"Send timeout to user {session.user_id}")
                self._metrics.send_timeout()
                return None
            except WebSocketDisconnect:
                return None
            except Exception as e:
                logger.error(f"Failed to send to user {session.user_id}: {e}")
                self._metrics.send_error()
                return None

    async def _heartbeat(self, session: Session) -> CloseRequest:
        while True:
            await asyncio.sleep(self.ping_interval)

            pinged_at = time.monotonic()
            try:
                session.enqueue(WSPing().model_dump())
            except SessionClosedError:
                return None
            except asyncio.QueueFull:
                logger.warning(f"Outbound queue full for user {session.user_id}, skipping ping")

            await asyncio.sleep(self.ping_timeout)
            if session.last_seen < pinged_at:
                logger.info(f"Heartbeat timeout: user={session.user_id} session={session.session_id}")
                self._metrics.heartbeat_timeout()
                return HEARTBEAT_CLOSE_CODE, "Heartbeat timeout"

    async def _reject(self, websocket: WebSocket, error_code: str, close_code: int, reason: str) -> None:
        """Accept only to report why the connection is refused, then close."""
        try:
            await websocket.accept()
            await websocket.send_json(WSError(code=error_code, message=reason).model_dump())
            await websocket.close(code=close_code, reason=reason)
        except Exception as e:
            logger.debug(f"Could not deliver rejection to client: {e}")

    async def _close_safe(self, websocket: WebSocket, code: int, reason: str) -> None:
        """Close a connection safely with timeout."""
        try:
            await asyncio.wait_for(websocket.close(code=code, reason=reason), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug("Timed out closing WebSocket")
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")

    async def close_session(self, session: Session, code: int = 1001, reason: str = "Server shutting down") -> None:
        """Close a session's socket from outside its own tasks."""
        await self._close_safe(session.websocket, code, reason)
