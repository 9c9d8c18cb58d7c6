"""RepoComments Types - Pydantic DTOs for the repo comments realtime service."""

__version__ = "0.1.0"

from .roles import Role, ROLE_HIERARCHY
from .events import (
    DomainEvent,
    ThreadCreated,
    ThreadUpdated,
    MessageAdded,
)

__all__ = [
    "Role",
    "ROLE_HIERARCHY",
    "DomainEvent",
    "ThreadCreated",
    "ThreadUpdated",
    "MessageAdded",
]
