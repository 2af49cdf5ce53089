"""Role capabilities for broadcast features.

Endpoints ask one question, `has_capability(role, capability)`, instead of
comparing role strings inline.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Union


class Role(str, Enum):
    APPLICANT = "applicant"
    REJECTED = "rejected"
    HOST = "host"
    PRODUCER = "producer"
    TALENT = "talent"
    FINANCE = "finance"
    HR = "hr"
    ADMIN = "admin"
    OWNER = "owner"


class Capability(str, Enum):
    RECEIVE_BROADCASTS = "receive_broadcasts"
    VIEW_MESSAGES = "view_messages"
    MANAGE_BROADCASTS = "manage_broadcasts"


ACTIVE_ROLES: FrozenSet[Role] = frozenset(
    {
        Role.HOST,
        Role.PRODUCER,
        Role.TALENT,
        Role.FINANCE,
        Role.HR,
        Role.ADMIN,
        Role.OWNER,
    }
)

ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.OWNER, Role.TALENT})

CAPABILITIES: Dict[Capability, FrozenSet[Role]] = {
    Capability.RECEIVE_BROADCASTS: ACTIVE_ROLES,
    Capability.VIEW_MESSAGES: ACTIVE_ROLES,
    Capability.MANAGE_BROADCASTS: ADMIN_ROLES,
}


def parse_role(role: Optional[Union[str, Role]]) -> Optional[Role]:
    """Return the Role for a raw value, or None when it is not a known role."""
    if role is None:
        return None
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).lower())
    except ValueError:
        return None


def has_capability(
    role: Optional[Union[str, Role]], capability: Capability
) -> bool:
    """Check whether a role holds a capability.

    Unknown or missing roles hold no capability.
    """
    parsed = parse_role(role)
    if parsed is None:
        return False
    return parsed in CAPABILITIES.get(capability, frozenset())
