"""Single data-access choke point for tenant-scoped records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Generic, Protocol, Sequence, TypeVar

from ..domain.errors import RecordNotFoundError
from .context import TenantContext
from .filters import Condition, TenantFilter
from .stamping import stamp_created, stamp_updated

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RecordBackend(Protocol[R]):
    """Storage primitives for one tenant-scoped table.

    Every method takes the :class:`TenantFilter` for the current unit of work;
    there is deliberately no variant without it.
    """

    def insert(self, scope: TenantFilter, record: R) -> R: ...

    def update(self, scope: TenantFilter, record: R) -> R | None: ...

    def fetch(self, scope: TenantFilter, record_id: str) -> R | None: ...

    def select(
        self,
        scope: TenantFilter,
        conditions: Sequence[Condition],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[R]: ...

    def count(self, scope: TenantFilter, conditions: Sequence[Condition]) -> int: ...

    def delete(self, scope: TenantFilter, record_id: str) -> bool: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScopedStore(Generic[R]):
    """Tenant-scoped reads and writes for one record type.

    Reads are narrowed to the context's tenant; a record owned by another
    tenant is reported exactly like a missing one. Writes go through
    :func:`stamp_created` / :func:`stamp_updated` before reaching the backend.
    """

    def __init__(
        self,
        backend: RecordBackend[R],
        *,
        kind: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._kind = kind
        self._clock = clock

    @property
    def kind(self) -> str:
        return self._kind

    def create_scoped(self, context: TenantContext, record: R) -> R:
        """Insert ``record`` under the active tenant, overriding any caller tenant id."""
        stamped = stamp_created(record, context, self._clock())
        scope = TenantFilter.for_context(context)
        created = self._backend.insert(scope, stamped)
        logger.debug("created %s %s for tenant %s", self._kind, created.id, scope.tenant_id)  # type: ignore[attr-defined]
        return created

    def update_scoped(self, context: TenantContext, record: R) -> R:
        """Persist changes to an existing record visible to the active tenant."""
        scope = TenantFilter.for_context(context)
        existing = self._backend.fetch(scope, record.id)  # type: ignore[attr-defined]
        if existing is None:
            raise RecordNotFoundError(self._kind)
        stamped = stamp_updated(record, existing, self._clock())
        updated = self._backend.update(scope, stamped)
        if updated is None:
            raise RecordNotFoundError(self._kind)
        return updated

    def get_scoped(self, context: TenantContext, record_id: str) -> R | None:
        return self._backend.fetch(TenantFilter.for_context(context), record_id)

    def require_scoped(self, context: TenantContext, record_id: str) -> R:
        record = self.get_scoped(context, record_id)
        if record is None:
            raise RecordNotFoundError(self._kind)
        return record

    def list_scoped(
        self,
        context: TenantContext,
        *conditions: Condition,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[R]:
        if limit is not None and limit < 1:
            raise ValueError("limit must be at least 1")
        scope = TenantFilter.for_context(context)
        if scope.matches_nothing:
            return []
        return self._backend.select(scope, conditions, order_by, descending, limit)

    def count_scoped(self, context: TenantContext, *conditions: Condition) -> int:
        scope = TenantFilter.for_context(context)
        if scope.matches_nothing:
            return 0
        return self._backend.count(scope, conditions)

    def exists_scoped(self, context: TenantContext, *conditions: Condition) -> bool:
        return self.count_scoped(context, *conditions) > 0

    def delete_scoped(self, context: TenantContext, record_id: str) -> None:
        if not self._backend.delete(TenantFilter.for_context(context), record_id):
            raise RecordNotFoundError(self._kind)
