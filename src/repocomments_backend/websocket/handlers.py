"""
WebSocket event handlers.

Handles incoming client events and dispatches appropriate actions. Replies
go through the session queue so they are ordered with broadcast events.
"""

import asyncio
import logging

from pydantic import BaseModel

from repocomments_backend.exceptions import (
    RepoCommentsException,
    RepoNotSpecifiedException,
    StoreUnavailableException,
    UnauthorizedException,
)
from repocomments_backend.websocket.registry import Session, SessionClosedError
from repocomments_backend.websocket.rooms import RoomRouter
from repocomments_types.websocket import (
    parse_client_event,
    WSSubscribe,
    WSUnsubscribe,
    WSPing,
    WSPong,
    WSSubscribed,
    WSUnsubscribed,
    WSError,
)

logger = logging.getLogger(__name__)

HANDLER_ERROR_MESSAGE = "Internal error while handling event"


def send_to_session(session: Session, event: BaseModel) -> None:
    """Queue a server event for ``session``; a closed or stalled session is skipped."""
    try:
        session.enqueue(event.model_dump(mode="json"))
    except SessionClosedError:
        logger.debug(f"Dropping {event.type} for closed session {session.session_id}")
    except asyncio.QueueFull:
        logger.warning(f"Outbound queue full for user {session.user_id}, dropping {event.type}")


async def handle_client_message(rooms: RoomRouter, session: Session, raw_data) -> None:
    """
    Handle an incoming message from a WebSocket client.

    Application errors are reported to the client as ``error`` events and
    never end the connection. Authentication errors propagate.
    """
    event = parse_client_event(raw_data)

    if event is None:
        event_type = raw_data.get("type", "missing") if isinstance(raw_data, dict) else "missing"
        send_to_session(session, WSError(
            code="INVALID_EVENT",
            message=f"Unknown or invalid event type: {event_type}"
        ))
        return

    try:
        if isinstance(event, WSSubscribe):
            await handle_subscribe(rooms, session, event)

        elif isinstance(event, WSUnsubscribe):
            await handle_unsubscribe(rooms, session, event)

        elif isinstance(event, WSPing):
            await handle_ping(session)

        elif isinstance(event, WSPong):
            # Heartbeat answer; liveness was already recorded on receipt
            pass

    except UnauthorizedException:
        raise
    except SessionClosedError:
        logger.debug(f"Session {session.session_id} closed while handling {event.type}")
    except RepoCommentsException as e:
        send_to_session(session, WSError(message=e.message))
    except Exception as e:
        logger.error(f"Error handling event {event.type}: {e}", exc_info=True)
        send_to_session(session, WSError(
            code="HANDLER_ERROR",
            message=HANDLER_ERROR_MESSAGE
        ))


async def handle_subscribe(rooms: RoomRouter, session: Session, event: WSSubscribe):
    """
    Handle a subscription request.

    Requires read access to the repository. A transient failure of the
    permission store is reported as a generic failure.
    """
    if not event.repo:
        raise RepoNotSpecifiedException()

    try:
        await rooms.join(session, event.repo, event.branch)
    except StoreUnavailableException as e:
        logger.error(f"Subscription of user {session.user_id} to {event.repo} failed: {e}")
        send_to_session(session, WSError(message="Failed to subscribe"))
        return

    logger.info(f"User {session.user_id} subscribed to {event.repo}{f' ({event.branch})' if event.branch else ''}")
    send_to_session(session, WSSubscribed(repo=event.repo, branch=event.branch or None))


async def handle_unsubscribe(rooms: RoomRouter, session: Session, event: WSUnsubscribe):
    """Handle an unsubscription request. Unknown repositories are acknowledged too."""
    if not event.repo:
        raise RepoNotSpecifiedException()

    rooms.leave(session, event.repo)
    send_to_session(session, WSUnsubscribed(repo=event.repo, branch=event.branch))


async def handle_ping(session: Session):
    """Handle a client keep-alive ping."""
    send_to_session(session, WSPong())
