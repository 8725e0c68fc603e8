"""Tenant registration, login and per-request session checks."""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable

from prometheus_client import Counter

from ..repository import IdentityRepository, LoginCandidate, TenantRepository
from ..security.passwords import CredentialHasher
from ..security.tokens import TokenIssuer
from ..tenancy.context import TenantContext
from ..tenancy.store import ScopedStore, utcnow
from .contracts import AuthResult, LoginInput, RegisterTenantInput
from .errors import (
    DuplicateSubdomainError,
    InactiveAccountError,
    InvalidAssertionError,
    InvalidCredentialError,
    PasswordMismatchError,
    SessionActiveError,
)
from .identity import IdentityClaims, Principal, Role, User
from .records import Category

logger = logging.getLogger(__name__)

LOGIN_ATTEMPTS = Counter(
    "ledger_login_attempts_total",
    "Login attempts grouped by outcome.",
    ["outcome"],
)
TENANT_REGISTRATIONS = Counter(
    "ledger_tenant_registrations_total",
    "Tenants created through self-registration.",
)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Travel", "#3B82F6"),
    ("Food", "#10B981"),
    ("Office Supplies", "#F59E0B"),
    ("Software", "#8B5CF6"),
    ("Other", "#6B7280"),
)


class AuthService:
    """Credential workflows: the only paths that run before a tenant is bound."""

    def __init__(
        self,
        *,
        tenants: TenantRepository,
        identities: IdentityRepository,
        users: ScopedStore[User],
        categories: ScopedStore[Category],
        hasher: CredentialHasher,
        issuer: TokenIssuer,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tenants = tenants
        self._identities = identities
        self._users = users
        self._categories = categories
        self._hasher = hasher
        self._issuer = issuer
        self._clock = clock
        # verified against when no account matches so misses cost the same as wrong passwords
        self._decoy_artifact = hasher.hash(secrets.token_urlsafe(16))

    def register_tenant(self, context: TenantContext, payload: RegisterTenantInput) -> AuthResult:
        """Create a tenant, its owner and default categories, then sign the owner in."""
        if context.is_bound:
            raise SessionActiveError("sign out before registering a new tenant")

        subdomain = payload.subdomain.strip().lower()
        email = payload.owner_email.strip().lower()
        if self._tenants.subdomain_exists(subdomain):
            raise DuplicateSubdomainError()

        password_hash = self._hasher.hash(payload.password)
        tenant = self._tenants.create_tenant(
            name=payload.company_name.strip(),
            subdomain=subdomain,
            contact_email=email,
        )
        context.set(tenant.tenant_id)

        owner_id = str(uuid.uuid4())
        category_ids: list[str] = []
        try:
            owner = self._users.create_scoped(
                context,
                User(
                    id=owner_id,
                    tenant_id=tenant.tenant_id,
                    email=email,
                    password_hash=password_hash,
                    first_name=payload.owner_first_name.strip(),
                    last_name=payload.owner_last_name.strip(),
                    role=Role.owner,
                ),
            )
            for name, color in DEFAULT_CATEGORIES:
                category_id = str(uuid.uuid4())
                self._categories.create_scoped(
                    context,
                    Category(id=category_id, tenant_id=tenant.tenant_id, name=name, color_code=color),
                )
                category_ids.append(category_id)
        except Exception:
            logger.exception("registration of %s failed, removing partial tenant %s", subdomain, tenant.tenant_id)
            self._discard_registration(context, tenant.tenant_id, owner_id, category_ids)
            raise

        TENANT_REGISTRATIONS.inc()
        logger.info("registered tenant %s (%s) with owner %s", tenant.tenant_id, subdomain, owner.id)
        issued = self._issuer.issue(owner.id, tenant.tenant_id, owner.role)
        return AuthResult(access_token=issued.access_token, expires_in=issued.expires_in, user=owner, tenant=tenant)

    def _discard_registration(
        self,
        context: TenantContext,
        tenant_id: str,
        owner_id: str,
        category_ids: list[str],
    ) -> None:
        """Remove the rows a failed registration managed to write so the subdomain is free again."""
        for category_id in category_ids:
            self._categories.delete_scoped(context, category_id)
        if self._users.get_scoped(context, owner_id) is not None:
            self._users.delete_scoped(context, owner_id)
        self._tenants.delete_tenant(tenant_id)

    def login(self, context: TenantContext, payload: LoginInput) -> AuthResult:
        """Verify an email/password pair and issue an assertion for its tenant.

        Unknown emails and wrong passwords raise the same
        :class:`InvalidCredentialError`. Inactive tenants or users are only
        reported once the password has been verified.
        """
        email = payload.email.strip().lower()
        subdomain = payload.subdomain.strip().lower() if payload.subdomain else None
        candidates = self._identities.find_login_candidates(email, subdomain)

        match = self._match_credential(candidates, payload.password)
        if match is None:
            LOGIN_ATTEMPTS.labels(outcome="invalid_credential").inc()
            logger.info("login rejected: invalid credential")
            raise InvalidCredentialError()

        if not match.tenant.is_active:
            LOGIN_ATTEMPTS.labels(outcome="inactive").inc()
            raise InactiveAccountError("tenant account is inactive")
        if not match.user.is_active:
            LOGIN_ATTEMPTS.labels(outcome="inactive").inc()
            raise InactiveAccountError("user account is inactive")

        if context.is_bound and context.get() != match.user.tenant_id:
            raise SessionActiveError()
        context.set(match.user.tenant_id)

        user = self._users.update_scoped(context, replace(match.user, last_login_at=self._clock()))
        LOGIN_ATTEMPTS.labels(outcome="success").inc()
        logger.info("user %s signed in to tenant %s", user.id, user.tenant_id)
        issued = self._issuer.issue(user.id, user.tenant_id, user.role)
        return AuthResult(access_token=issued.access_token, expires_in=issued.expires_in, user=user, tenant=match.tenant)

    def _match_credential(self, candidates: list[LoginCandidate], password: str) -> LoginCandidate | None:
        if not candidates:
            self._hasher.verify(password, self._decoy_artifact)
            return None
        # active memberships first so a dormant tenant does not shadow a live one
        ordered = sorted(candidates, key=lambda c: not (c.tenant.is_active and c.user.is_active))
        for candidate in ordered:
            if self._hasher.verify(password, candidate.user.password_hash):
                return candidate
        return None

    def authenticate(self, context: TenantContext, claims: IdentityClaims) -> Principal:
        """Confirm the asserted tenant and user still exist and are active."""
        if context.get() != claims.tenant_id:
            raise InvalidAssertionError()
        tenant = self._tenants.get_tenant(claims.tenant_id)
        if tenant is None:
            raise InvalidAssertionError()
        if not tenant.is_active:
            raise InactiveAccountError("tenant account is inactive")
        user = self._users.get_scoped(context, claims.subject)
        if user is None:
            raise InvalidAssertionError()
        if not user.is_active:
            raise InactiveAccountError("user account is inactive")
        return Principal(user_id=user.id, tenant_id=user.tenant_id, role=user.role, email=user.email)

    def change_password(
        self,
        context: TenantContext,
        principal: Principal,
        current_password: str,
        new_password: str,
    ) -> None:
        user = self._users.require_scoped(context, principal.user_id)
        if not self._hasher.verify(current_password, user.password_hash):
            raise PasswordMismatchError()
        self._users.update_scoped(context, replace(user, password_hash=self._hasher.hash(new_password)))
        logger.info("password changed for user %s", user.id)
