"""Force system-controlled fields on tenant-scoped writes."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import TypeVar

from .context import TenantContext

R = TypeVar("R")


def stamp_created(record: R, context: TenantContext, now: datetime) -> R:
    """Return a copy of ``record`` owned by the active tenant.

    Whatever ``tenant_id`` the caller put on the record is overwritten.
    Raises :class:`MissingTenantContextError` when no tenant is bound.
    """
    tenant_id = context.require()
    return replace(record, tenant_id=tenant_id, created_at=now, updated_at=now)


def stamp_updated(record: R, existing: R, now: datetime) -> R:
    """Return a copy of ``record`` carrying the stored owner and creation time."""
    return replace(
        record,
        tenant_id=existing.tenant_id,  # type: ignore[attr-defined]
        created_at=existing.created_at,  # type: ignore[attr-defined]
        updated_at=now,
    )
