from typing import Iterable

import structlog

from ..errors import UnknownUsableRoleError

logger = structlog.get_logger(__name__)


class UsableSet:
    """Roles that carry meaningful permissions.

    An empty set means any successfully assumed role is good enough.
    """

    def __init__(self, usable: Iterable[str], pool_roles: Iterable[str]):
        known = set(pool_roles)
        roles = []
        for role in usable:
            if role not in known:
                logger.error("Usable role is missing from roles list", role=role)
                raise UnknownUsableRoleError(role)
            roles.append(role)

        self._roles = frozenset(roles)

    def contains(self, role: str) -> bool:
        return role in self._roles

    def is_empty(self) -> bool:
        return not self._roles

    def __contains__(self, role: object) -> bool:
        return role in self._roles

    def __len__(self) -> int:
        return len(self._roles)
