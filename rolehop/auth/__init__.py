"""Role pool traversal and chained STS role assumption."""

from .authority_chain import AuthorityChain
from .role_pool import RolePool
from .role_selector import RoleSelector
from .usable_set import UsableSet

__all__ = ["AuthorityChain", "RolePool", "RoleSelector", "UsableSet"]
