"""Resolve the caller's tenant from its bearer token before any route runs."""

from __future__ import annotations

import logging
from datetime import datetime

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ..domain.errors import InvalidAssertionError
from ..domain.identity import IdentityClaims
from ..security.tokens import TokenIssuer
from ..tenancy.context import TenantContext

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def resolve_tenant(
    authorization: str | None,
    issuer: TokenIssuer,
    context: TenantContext,
    now: datetime | None = None,
) -> IdentityClaims | None:
    """Bind ``context`` to the tenant claim of a valid bearer token.

    Returns ``None`` and leaves the context unbound when no token was sent.
    A token that fails verification raises :class:`InvalidAssertionError`
    without touching the context.
    """
    if not authorization:
        return None
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise InvalidAssertionError("unsupported authorization scheme")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise InvalidAssertionError()
    claims = issuer.verify(token, now)
    context.set(claims.tenant_id)
    return claims


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    """Give every request a fresh :class:`TenantContext` on ``request.state``.

    Tenant ids from headers, query strings or bodies are never consulted; the
    verified token claim is the only source. Rejected tokens leave the
    context unbound and the reason on ``request.state.auth_error`` for the
    authentication dependency to report.
    """

    def __init__(self, app: ASGIApp, *, issuer: TokenIssuer) -> None:
        super().__init__(app)
        self._issuer = issuer

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = TenantContext()
        request.state.tenant_context = context
        request.state.identity = None
        request.state.auth_error = None
        try:
            request.state.identity = resolve_tenant(request.headers.get("authorization"), self._issuer, context)
        except InvalidAssertionError as exc:
            request.state.auth_error = str(exc)
            logger.debug("bearer token rejected for %s %s: %s", request.method, request.url.path, exc)
        return await call_next(request)
