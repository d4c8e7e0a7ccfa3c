from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Query


@dataclass(frozen=True)
class TenantScope:
    """Organization filter threaded through every admin-side query.

    ``organization_id=None`` is the unrestricted administrator view and must be
    requested explicitly through :meth:`all`.
    """

    organization_id: Optional[str]

    @classmethod
    def all(cls) -> "TenantScope":
        return cls(organization_id=None)

    @classmethod
    def for_organization(cls, organization_id: str) -> "TenantScope":
        return cls(organization_id=organization_id)

    @property
    def is_unrestricted(self) -> bool:
        return self.organization_id is None

    def apply(self, query: Query, column) -> Query:
        if self.is_unrestricted:
            return query
        return query.filter(column == self.organization_id)

    def allows(self, organization_id: Optional[str]) -> bool:
        if self.is_unrestricted:
            return True
        return organization_id == self.organization_id
