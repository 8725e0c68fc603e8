from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import bookkeeping, routes
from app.api.errors import install_error_handlers
from app.api.gateway import TenantResolutionMiddleware
from app.container import Services, build_services
from app.domain.errors import DuplicateRecordError, DuplicateSubdomainError
from app.domain.identity import Tenant, User
from app.repository import LoginCandidate
from app.security.rate_limiter import SlidingWindowRateLimiter
from app.security.tokens import TokenIssuer
from app.tenancy.filters import Condition, TenantFilter

TEST_SECRET = "test-signing-secret-with-at-least-32-bytes"
TEST_ISSUER = "ledger.test"


class InMemoryRecordBackend:
    """Dict-backed stand-in for PostgresRecordBackend honouring the tenant filter."""

    def __init__(self) -> None:
        self.rows: dict[str, Any] = {}

    def insert(self, scope: TenantFilter, record: Any) -> Any:
        if not scope.matches(record.tenant_id):
            raise ValueError("record tenant does not match the active tenant")
        if record.id in self.rows:
            raise DuplicateRecordError()
        self.rows[record.id] = replace(record)
        return replace(record)

    def update(self, scope: TenantFilter, record: Any) -> Any | None:
        current = self.rows.get(record.id)
        if current is None or not scope.matches(current.tenant_id):
            return None
        self.rows[record.id] = replace(record)
        return replace(record)

    def fetch(self, scope: TenantFilter, record_id: str) -> Any | None:
        current = self.rows.get(record_id)
        if current is None or not scope.matches(current.tenant_id):
            return None
        return replace(current)

    def select(
        self,
        scope: TenantFilter,
        conditions: Sequence[Condition],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Any]:
        rows = [
            replace(row)
            for row in self.rows.values()
            if scope.matches(row.tenant_id) and all(condition.test(row) for condition in conditions)
        ]
        if order_by:
            rows.sort(key=lambda row: (getattr(row, order_by), row.id), reverse=descending)
        return rows[:limit] if limit is not None else rows

    def count(self, scope: TenantFilter, conditions: Sequence[Condition]) -> int:
        return len(self.select(scope, conditions, None, False, None))

    def delete(self, scope: TenantFilter, record_id: str) -> bool:
        current = self.rows.get(record_id)
        if current is None or not scope.matches(current.tenant_id):
            return False
        del self.rows[record_id]
        return True


class FakeTenantRepository:
    def __init__(self) -> None:
        self.tenants: dict[str, Tenant] = {}

    def subdomain_exists(self, subdomain: str) -> bool:
        return any(tenant.subdomain == subdomain for tenant in self.tenants.values())

    def create_tenant(self, *, name: str, subdomain: str, contact_email: str) -> Tenant:
        if self.subdomain_exists(subdomain):
            raise DuplicateSubdomainError()
        tenant = Tenant(
            tenant_id=str(uuid.uuid4()),
            name=name,
            subdomain=subdomain,
            contact_email=contact_email,
            created_at=datetime.now(timezone.utc),
        )
        self.tenants[tenant.tenant_id] = tenant
        return replace(tenant)

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        tenant = self.tenants.get(tenant_id)
        return replace(tenant) if tenant else None

    def delete_tenant(self, tenant_id: str) -> bool:
        return self.tenants.pop(tenant_id, None) is not None

    def set_active(self, tenant_id: str, active: bool) -> bool:
        tenant = self.tenants.get(tenant_id)
        if tenant is None:
            return False
        tenant.is_active = active
        return True


class FakeIdentityRepository:
    """Cross-tenant email lookup over the in-memory users table."""

    def __init__(self, tenants: FakeTenantRepository, users: InMemoryRecordBackend) -> None:
        self._tenants = tenants
        self._users = users

    def find_login_candidates(self, email: str, subdomain: str | None = None) -> list[LoginCandidate]:
        candidates = []
        for user in self._users.rows.values():
            tenant = self._tenants.tenants.get(user.tenant_id)
            if tenant is None or user.email.lower() != email.lower():
                continue
            if subdomain and tenant.subdomain != subdomain:
                continue
            candidates.append(LoginCandidate(user=replace(user), tenant=replace(tenant)))
        candidates.sort(key=lambda c: (c.tenant.created_at, c.user.id))
        return candidates


@dataclass
class LedgerHarness:
    services: Services
    tenants: FakeTenantRepository
    users: InMemoryRecordBackend
    categories: InMemoryRecordBackend
    expenses: InMemoryRecordBackend
    issuer: TokenIssuer


@pytest.fixture()
def memory_backend() -> InMemoryRecordBackend:
    return InMemoryRecordBackend()


@pytest.fixture()
def issuer() -> TokenIssuer:
    return TokenIssuer(secret=TEST_SECRET, issuer=TEST_ISSUER, ttl_seconds=3600)


@pytest.fixture()
def ledger(issuer: TokenIssuer) -> LedgerHarness:
    """Fully wired services over in-memory storage."""
    tenants = FakeTenantRepository()
    users = InMemoryRecordBackend()
    categories = InMemoryRecordBackend()
    expenses = InMemoryRecordBackend()
    services = build_services(
        tenants=tenants,  # type: ignore[arg-type]
        identities=FakeIdentityRepository(tenants, users),  # type: ignore[arg-type]
        user_backend=users,
        category_backend=categories,
        expense_backend=expenses,
        issuer=issuer,
    )
    return LedgerHarness(
        services=services,
        tenants=tenants,
        users=users,
        categories=categories,
        expenses=expenses,
        issuer=issuer,
    )


def build_app(harness: LedgerHarness, rate_limiter: SlidingWindowRateLimiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TenantResolutionMiddleware, issuer=harness.issuer)
    install_error_handlers(app)
    app.include_router(routes.router)
    app.include_router(bookkeeping.router)
    app.state.services = harness.services
    app.state.rate_limiter = rate_limiter
    return app


@pytest.fixture()
def make_client(ledger: LedgerHarness):
    """Build test clients over the shared harness with a chosen attempt limit."""
    clients: list[TestClient] = []

    def factory(max_requests: int = 50) -> TestClient:
        app = build_app(ledger, SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=60))
        client = TestClient(app)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture()
def api_client(make_client, ledger: LedgerHarness):
    """Provide a FastAPI test client with isolated state."""
    return make_client(), ledger
