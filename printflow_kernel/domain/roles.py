"""
Role domain types (``printflow_kernel.domain.roles``).

Responsibility
--------------
Pure value objects for identity as seen by the workflow engine: the fixed
role vocabulary, the acting ``Actor`` (user id + *set* of granted roles),
and the ``RoleAuthority`` protocol through which callers resolve roles.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Identity is always a set of granted roles; permission checks are
  membership tests, never "the" role of a user.
* Legacy labels are normalized through an explicit alias map; unknown
  labels raise ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """Roles granted by the identity oracle."""

    ADMIN = "ADMIN"
    COMMERCIAL = "COMMERCIAL"
    DESIGNER = "DESIGNER"
    IMPRIMEUR = "IMPRIMEUR"
    LOGISTIQUE = "LOGISTIQUE"


# Labels used by older clients of the identity service.
DEFAULT_ROLE_ALIASES: dict[str, Role] = {
    "ADMINISTRATEUR": Role.ADMIN,
    "PRINTER": Role.IMPRIMEUR,
    "DRIVER": Role.LOGISTIQUE,
}

# Roles allowed to create orders.
ORDER_CREATOR_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.COMMERCIAL})


def parse_role(label: str | Role, aliases: Mapping[str, Role] | None = None) -> Role:
    """Normalize a role label (canonical name or alias) to a ``Role``."""
    if isinstance(label, Role):
        return label
    key = str(label).strip().upper()
    try:
        return Role(key)
    except ValueError:
        pass
    table = DEFAULT_ROLE_ALIASES if aliases is None else aliases
    if key in table:
        return table[key]
    raise ValueError(f"Unknown role label: {label!r}")


def parse_roles(
    labels: Iterable[str | Role],
    aliases: Mapping[str, Role] | None = None,
) -> frozenset[Role]:
    """Normalize a collection of labels into a role set."""
    return frozenset(parse_role(label, aliases) for label in labels)


@dataclass(frozen=True)
class Actor:
    """The user performing a request, with every role they hold."""

    user_id: int
    roles: frozenset[Role] = field(default_factory=frozenset)

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        return not self.roles.isdisjoint(roles)


class RoleAuthority(Protocol):
    """Pluggable identity oracle: user id -> granted roles."""

    def roles_of(self, user_id: int) -> frozenset[Role]:
        """Return all roles granted to the user.

        Raises ``UserNotFoundError`` for unknown users.
        """
        ...
