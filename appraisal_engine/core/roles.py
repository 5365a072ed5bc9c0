"""
Role table for appraisal visibility.

Every AccountRole maps to exactly one VisibilityScope. The table is built
once from configuration and handed to the components that need it, so tests
can swap in their own.
"""
import enum
from types import MappingProxyType
from typing import Iterable, Mapping

from appraisal_engine.core.config import settings
from appraisal_engine.models.account import AccountRole


class VisibilityScope(str, enum.Enum):
    ALL = "all"          # every appraisal in the store
    RELATED = "related"  # only records the actor supervises or reviews


class RoleTable:
    __slots__ = ("_scopes",)

    def __init__(self, scopes: Mapping[AccountRole, VisibilityScope]):
        missing = [role.value for role in AccountRole if role not in scopes]
        if missing:
            raise ValueError(f"Role table has no visibility scope for: {', '.join(missing)}")
        self._scopes = MappingProxyType(dict(scopes))

    @classmethod
    def from_privileged(cls, privileged: Iterable[str]) -> "RoleTable":
        """Build a table where the named roles see everything and the rest are scoped."""
        names = set()
        for name in privileged:
            try:
                names.add(AccountRole(name.strip().upper()))
            except ValueError:
                raise ValueError(f"Unknown role in HR privileged list: {name!r}") from None
        return cls({
            role: VisibilityScope.ALL if role in names else VisibilityScope.RELATED
            for role in AccountRole
        })

    def scope_for(self, role: AccountRole) -> VisibilityScope:
        return self._scopes[AccountRole(role)]

    def is_hr_privileged(self, role: AccountRole) -> bool:
        return self.scope_for(role) is VisibilityScope.ALL

    @property
    def privileged_roles(self) -> frozenset:
        return frozenset(r for r, s in self._scopes.items() if s is VisibilityScope.ALL)


def load_role_table() -> RoleTable:
    return RoleTable.from_privileged(settings.hr_privileged_roles)
