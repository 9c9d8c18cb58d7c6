from .base import Base, metadata
from .auth import User, Team, TeamMember, Permission

__all__ = [
    "Base",
    "metadata",
    "User",
    "Team",
    "TeamMember",
    "Permission",
]
