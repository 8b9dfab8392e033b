"""Assume-until-usable traversal of the role pool."""

import structlog

from ..models import Credential
from .authority_chain import AuthorityChain
from .role_pool import RolePool
from .usable_set import UsableSet

logger = structlog.get_logger(__name__)


class RoleSelector:
    """Walks the pool through the authority chain until a usable role is assumed.

    A pass starts wherever the pool cursor was left by the previous pass. Any
    assumption failure aborts the pass; the cursor and the chain's authority
    are not rolled back. When the usable set is non-empty the pass keeps going
    around the ring until it lands on a usable role or a call fails.
    """

    def __init__(self, pool: RolePool, usable: UsableSet, chain: AuthorityChain):
        self.pool = pool
        self.usable = usable
        self.chain = chain

    def select_next(self) -> Credential:
        """Run one pass and return the credential of the last role assumed.

        Raises:
            AssumeRoleError: If any assumption in the pass fails
        """
        while True:
            role = self.pool.advance()

            logger.info("Trying to assume role", role=role)

            credential = self.chain.assume(role)

            if self.usable.is_empty():
                logger.debug("All roles have meaningful permissions")
                break

            if self.usable.contains(role):
                logger.debug("Found role with meaningful permissions", role=role)
                break

            logger.debug("Role is lacking meaningful permissions", role=role)

        return credential
