"""Assemble domain services from persistence backends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .domain.auth import AuthService
from .domain.bookkeeping import CategoryService, ExpenseService
from .domain.identity import User
from .domain.records import Category, Expense
from .domain.tenants import TenantService
from .domain.users import UserService
from .repository import IdentityRepository, TenantRepository
from .security.passwords import CredentialHasher
from .security.tokens import TokenIssuer
from .tenancy.store import RecordBackend, ScopedStore, utcnow


@dataclass(slots=True)
class Services:
    """Service instances shared by every request, stored on ``app.state``."""

    auth: AuthService
    users: UserService
    tenants: TenantService
    categories: CategoryService
    expenses: ExpenseService


def build_services(
    *,
    tenants: TenantRepository,
    identities: IdentityRepository,
    user_backend: RecordBackend[User],
    category_backend: RecordBackend[Category],
    expense_backend: RecordBackend[Expense],
    issuer: TokenIssuer,
    hasher: CredentialHasher | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    hasher = hasher or CredentialHasher()
    users = ScopedStore(user_backend, kind="user", clock=clock)
    categories = ScopedStore(category_backend, kind="category", clock=clock)
    expenses = ScopedStore(expense_backend, kind="expense", clock=clock)
    return Services(
        auth=AuthService(
            tenants=tenants,
            identities=identities,
            users=users,
            categories=categories,
            hasher=hasher,
            issuer=issuer,
            clock=clock,
        ),
        users=UserService(users=users, tenants=tenants, hasher=hasher),
        tenants=TenantService(tenants),
        categories=CategoryService(categories=categories, expenses=expenses),
        expenses=ExpenseService(expenses=expenses, categories=categories),
    )
