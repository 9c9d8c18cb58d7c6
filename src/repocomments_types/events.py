"""
Domain events handed to the realtime layer after a thread or message change
has been persisted.

The set of events is closed: every event is one of ``ThreadCreated``,
``ThreadUpdated`` or ``MessageAdded``. The ``kind`` discriminator doubles as
the event name sent to WebSocket clients.
"""

from abc import abstractmethod
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class DomainEventBase(BaseModel):
    """Fields shared by every domain event."""
    kind: str
    repo: str = Field(..., min_length=1, description="Repository the change belongs to, e.g. 'acme/app'")
    branch: Optional[str] = Field(None, description="Branch the thread is attached to")

    @abstractmethod
    def payload(self) -> Any:
        """Data sent to subscribers as the frame's ``data``."""


class ThreadCreated(DomainEventBase):
    """A new thread was created."""
    kind: Literal["thread:created"] = "thread:created"
    thread: dict[str, Any] = Field(..., description="Thread data as returned by the persistence layer")

    def payload(self) -> dict[str, Any]:
        return self.thread


class ThreadUpdated(DomainEventBase):
    """An existing thread changed (status, priority, tags, anchor)."""
    kind: Literal["thread:updated"] = "thread:updated"
    thread: dict[str, Any] = Field(..., description="Updated thread data")

    def payload(self) -> dict[str, Any]:
        return self.thread


class MessageAdded(DomainEventBase):
    """A message was posted to a thread."""
    kind: Literal["message:added"] = "message:added"
    thread_id: Union[str, int] = Field(..., description="ID of the thread the message was posted to, as stored")
    message: dict[str, Any] = Field(..., description="Message data as returned by the persistence layer")

    def payload(self) -> dict[str, Any]:
        return {"threadId": self.thread_id, "message": self.message}


DomainEvent = Annotated[
    Union[ThreadCreated, ThreadUpdated, MessageAdded],
    Field(discriminator="kind"),
]

_domain_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_domain_event(data: dict) -> DomainEventBase:
    """
    Validate a serialized domain event (e.g. received from the pub/sub relay).

    Raises:
        pydantic.ValidationError: If the data is not a known event
    """
    return _domain_event_adapter.validate_python(data)
