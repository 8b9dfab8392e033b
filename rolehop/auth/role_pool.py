"""Circular pool of IAM role ARNs."""

from typing import Sequence

import structlog

from ..errors import MinRolesError

logger = structlog.get_logger(__name__)

MIN_ROLES = 2


class RolePool:
    """Fixed-size ring of role ARNs with a single cursor.

    The pool size is fixed at construction. ``advance`` hands out the role at
    the cursor and moves the cursor forward, wrapping around at the end.
    """

    def __init__(self, roles: Sequence[str]):
        if len(roles) < MIN_ROLES:
            raise MinRolesError(len(roles))

        self._roles = tuple(roles)
        self._cursor = 0

    @property
    def roles(self) -> tuple[str, ...]:
        return self._roles

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._roles)

    def advance(self) -> str:
        """Return the role at the cursor and move the cursor to the next slot."""
        role = self._roles[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._roles)

        logger.debug("Next role", role=role, cursor=self._cursor)

        return role
