"""Per-request tenant binding."""

from __future__ import annotations

from ..domain.errors import MissingTenantContextError, TenantConflictError


class TenantContext:
    """Holds the tenant a single unit of work is scoped to.

    One instance is created for every inbound request and handed down the
    call chain explicitly; it is never shared between requests. The value can
    be written once: re-binding the same tenant is a no-op, binding a
    different tenant raises :class:`TenantConflictError`.
    """

    __slots__ = ("_tenant_id",)

    def __init__(self) -> None:
        self._tenant_id: str | None = None

    def set(self, tenant_id: str) -> None:
        if not tenant_id:
            raise ValueError("tenant_id must be a non-empty string")
        if self._tenant_id is not None and self._tenant_id != tenant_id:
            raise TenantConflictError()
        self._tenant_id = tenant_id

    def get(self) -> str | None:
        return self._tenant_id

    def require(self) -> str:
        """Return the bound tenant id or raise :class:`MissingTenantContextError`."""
        if self._tenant_id is None:
            raise MissingTenantContextError()
        return self._tenant_id

    @property
    def is_bound(self) -> bool:
        return self._tenant_id is not None

    def __repr__(self) -> str:
        return f"TenantContext(tenant_id={self._tenant_id!r})"
