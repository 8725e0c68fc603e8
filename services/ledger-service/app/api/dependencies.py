"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request, status

from ..container import Services
from ..domain.errors import InvalidAssertionError, MissingTenantContextError, PermissionDeniedError
from ..domain.identity import Principal, Role
from ..security.rate_limiter import AttemptLimiter
from ..tenancy.context import TenantContext


def get_services(request: Request) -> Services:
    """Resolve the service container stored on the FastAPI application state."""
    services: Services = request.app.state.services
    return services


def get_tenant_context(request: Request) -> TenantContext:
    """Return the per-request context created by the tenant gateway."""
    context = getattr(request.state, "tenant_context", None)
    if context is None:
        raise MissingTenantContextError("tenant gateway is not installed")
    return context


def require_principal(
    request: Request,
    context: TenantContext = Depends(get_tenant_context),
    services: Services = Depends(get_services),
) -> Principal:
    """Authenticate the request from the identity verified by the gateway."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise InvalidAssertionError(getattr(request.state, "auth_error", None) or "not authenticated")
    return services.auth.authenticate(context, identity)


def require_role(minimum: Role) -> Callable[..., Principal]:
    """Build a dependency admitting principals whose current role is ``minimum`` or higher."""

    def dependency(principal: Principal = Depends(require_principal)) -> Principal:
        if not principal.role.at_least(minimum):
            raise PermissionDeniedError(f"{minimum.value} role required")
        return principal

    return dependency


def throttle(request: Request, key: str) -> None:
    """Reject the call with 429 once ``key`` exhausts its attempt window."""
    limiter: AttemptLimiter = request.app.state.rate_limiter
    if not limiter.allow(key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")
