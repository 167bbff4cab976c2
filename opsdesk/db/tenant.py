"""Tenant-scoped data access.

Every organization-owned table carries ``organization_id``; a ``TenantContext``
is the only way routers read those tables, so each query is filtered to the
caller's organization.
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from opsdesk.core.errors import NotFound
from opsdesk.models.models import Organization, User


@dataclass
class TenantContext:
    db: Session
    user: User
    organization: Organization

    @property
    def org_id(self) -> str:
        return self.organization.id

    @property
    def currency(self) -> str:
        return self.organization.currency

    def query(self, model):
        return self.db.query(model).filter(model.organization_id == self.org_id)

    def get(self, model, obj_id: str | None):
        if not obj_id:
            return None
        return self.query(model).filter(model.id == obj_id).first()

    def get_or_404(self, model, obj_id: str | None, label: str | None = None):
        obj = self.get(model, obj_id)
        if obj is None:
            raise NotFound(f"{label or model.__name__} not found")
        return obj
