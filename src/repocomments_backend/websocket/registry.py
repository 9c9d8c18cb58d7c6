"""
Session registry.

Owns every live realtime session of this process. A session is created once
the handshake credential has been verified and is discarded when the
connection ends; nothing else keeps references to session state.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from repocomments_backend.permissions.principal import Principal
from repocomments_backend.settings import settings
from repocomments_backend.websocket.metrics import WebSocketMetrics

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


_ALLOWED_TRANSITIONS = {
    ConnectionState.CONNECTING: {ConnectionState.AUTHENTICATED, ConnectionState.CLOSED},
    ConnectionState.AUTHENTICATED: {ConnectionState.ACTIVE, ConnectionState.CLOSED},
    ConnectionState.ACTIVE: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),
}


class InvalidStateTransition(Exception):
    """Raised when a session is moved to a state it cannot reach."""

    def __init__(self, current: ConnectionState, target: ConnectionState):
        self.current = current
        self.target = target
        super().__init__(f"Invalid session transition {current.value} -> {target.value}")


class SessionClosedError(Exception):
    """Raised when an operation targets a session that is no longer live."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} is closed")


class ConnectionLimitError(Exception):
    """Raised when connection limits are exceeded."""
    def __init__(self, message: str, code: int = 4008):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(eq=False)
class Session:
    """State of one authenticated realtime connection."""
    websocket: Any
    principal: Principal
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ConnectionState = ConnectionState.CONNECTING
    # repo -> branch (None for a repository-wide subscription)
    subscriptions: Dict[str, Optional[str]] = field(default_factory=dict)
    scopes: Set[str] = field(default_factory=set)
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=settings.WS_QUEUE_SIZE))
    last_seen: float = field(default_factory=time.monotonic)

    @property
    def user_id(self) -> str:
        return self.principal.user_id

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def transition(self, target: ConnectionState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(self.state, target)
        self.state = target

    def touch(self) -> None:
        """Record inbound activity for the heartbeat."""
        self.last_seen = time.monotonic()

    def enqueue(self, frame: dict) -> None:
        """
        Queue a frame for the writer task without blocking.

        Raises:
            SessionClosedError: The session was released
            asyncio.QueueFull: The client is not draining its queue
        """
        if self.is_closed:
            raise SessionClosedError(self.session_id)
        self.queue.put_nowait(frame)


class SessionRegistry:
    """
    Tracks live sessions per user and enforces connection limits.

    All mutations run on the event loop without awaiting in between, so
    no locking is needed.
    """

    def __init__(
        self,
        metrics: Optional[WebSocketMetrics] = None,
        max_total_connections: Optional[int] = None,
        max_connections_per_user: Optional[int] = None,
    ):
        self._sessions: Dict[str, Session] = {}  # session_id -> session
        self._by_user: Dict[str, Set[str]] = {}  # user_id -> session_ids
        self._release_hooks: List[Callable[[Session], None]] = []
        self._metrics = metrics or WebSocketMetrics()
        self._max_total = max_total_connections or settings.WS_MAX_TOTAL_CONNECTIONS
        self._max_per_user = max_connections_per_user or settings.WS_MAX_CONNECTIONS_PER_USER

    def on_release(self, hook: Callable[[Session], None]) -> None:
        """Register a callback run synchronously for every released session."""
        self._release_hooks.append(hook)

    def register(self, principal: Principal, websocket: Any) -> Session:
        """
        Create the session of a freshly authenticated connection.

        Raises:
            ConnectionLimitError: If connection limits are exceeded
        """
        user_id = principal.user_id

        total_connections = self.get_connection_count()
        if total_connections >= self._max_total:
            logger.warning(f"Total connection limit reached: {total_connections}/{self._max_total}")
            self._metrics.connection_limit_hit()
            raise ConnectionLimitError("Server connection limit reached")

        user_connections = len(self._by_user.get(user_id, ()))
        if user_connections >= self._max_per_user:
            logger.warning(f"User {user_id} connection limit reached: {user_connections}/{self._max_per_user}")
            self._metrics.connection_limit_hit()
            raise ConnectionLimitError(f"Too many connections (max {self._max_per_user})")

        session = Session(websocket=websocket, principal=principal)
        session.transition(ConnectionState.AUTHENTICATED)

        self._sessions[session.session_id] = session
        self._by_user.setdefault(user_id, set()).add(session.session_id)
        self._metrics.connection_opened()

        logger.info(
            f"Session registered: user={user_id} session={session.session_id} "
            f"user_connections={len(self._by_user[user_id])} total={self.get_connection_count()}"
        )
        return session

    def record_subscription(self, session: Session, repo: str, branch: Optional[str]) -> None:
        """Remember that ``session`` follows ``repo`` (replacing any earlier branch)."""
        session.subscriptions[repo] = branch or None

    def record_unsubscription(self, session: Session, repo: str) -> None:
        session.subscriptions.pop(repo, None)

    def release(self, session: Session) -> None:
        """
        Discard a session: leave all scopes, mark it closed, forget it.

        Safe to call more than once.
        """
        if self._sessions.get(session.session_id) is not session:
            return

        for hook in self._release_hooks:
            hook(session)

        if not session.is_closed:
            session.transition(ConnectionState.CLOSED)
        session.subscriptions.clear()

        del self._sessions[session.session_id]
        user_sessions = self._by_user.get(session.user_id)
        if user_sessions is not None:
            user_sessions.discard(session.session_id)
            if not user_sessions:
                del self._by_user[session.user_id]

        self._metrics.connection_closed()
        logger.info(f"Session released: user={session.user_id} session={session.session_id}")

    def is_live(self, session: Session) -> bool:
        return self._sessions.get(session.session_id) is session and not session.is_closed

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def sessions_for_user(self, user_id: str) -> List[Session]:
        return [self._sessions[sid] for sid in self._by_user.get(user_id, ())]

    def all_sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def get_connection_count(self) -> int:
        """Get total number of live sessions."""
        return len(self._sessions)

    def get_user_count(self) -> int:
        """Get number of unique connected users."""
        return len(self._by_user)
