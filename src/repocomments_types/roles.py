from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Repository access level granted to a user (directly or via a team)."""
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self.value]

    def satisfies(self, required: "Role") -> bool:
        """True if this role is at least as strong as ``required``."""
        return self.level >= required.level

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Parse a stored role string, returning None for unknown values."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# Role hierarchy: admin > write > read
ROLE_HIERARCHY = {
    "read": 1,
    "write": 2,
    "admin": 3,
}


def highest_role(roles) -> Optional[Role]:
    """Return the strongest role of an iterable of roles (None when empty)."""
    best: Optional[Role] = None
    for role in roles:
        if role is None:
            continue
        if best is None or role.level > best.level:
            best = role
    return best
