from __future__ import annotations

import logging

from ..repository import TenantRepository
from ..tenancy.context import TenantContext
from .errors import RecordNotFoundError
from .identity import Tenant

logger = logging.getLogger(__name__)


class TenantService:
    """Read and administer the tenant bound to the current request."""

    def __init__(self, tenants: TenantRepository) -> None:
        self._tenants = tenants

    def current_tenant(self, context: TenantContext) -> Tenant:
        tenant = self._tenants.get_tenant(context.require())
        if tenant is None:
            raise RecordNotFoundError("tenant")
        return tenant

    def deactivate_tenant(self, context: TenantContext) -> Tenant:
        """Switch the tenant off; its data is kept and its tokens stop working."""
        tenant_id = context.require()
        if not self._tenants.set_active(tenant_id, False):
            raise RecordNotFoundError("tenant")
        logger.warning("tenant %s deactivated", tenant_id)
        return self.current_tenant(context)
