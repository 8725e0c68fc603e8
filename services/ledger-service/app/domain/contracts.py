"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .identity import Role, Tenant, User
from .records import ExpenseStatus


@dataclass(slots=True)
class RegisterTenantInput:
    """Everything needed to create a tenant together with its owner."""

    company_name: str
    subdomain: str
    owner_email: str
    owner_first_name: str
    owner_last_name: str
    password: str


@dataclass(slots=True)
class LoginInput:
    email: str
    password: str
    subdomain: str | None = None


@dataclass(slots=True)
class InviteUserInput:
    email: str
    password: str
    first_name: str
    last_name: str
    role: Role = Role.user


@dataclass(slots=True)
class CategoryInput:
    name: str
    description: str | None = None
    color_code: str | None = None


@dataclass(slots=True)
class CategoryChanges:
    name: str | None = None
    description: str | None = None
    color_code: str | None = None


@dataclass(slots=True)
class ExpenseInput:
    title: str
    amount: Decimal
    category_id: str
    expense_date: datetime
    currency: str = "USD"
    description: str | None = None
    receipt_url: str | None = None


@dataclass(slots=True)
class ExpenseChanges:
    title: str | None = None
    description: str | None = None
    amount: Decimal | None = None
    category_id: str | None = None
    expense_date: datetime | None = None


@dataclass(slots=True)
class ExpenseQuery:
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: ExpenseStatus | None = None


@dataclass(slots=True)
class AuthResult:
    """Outcome of a successful registration or login."""

    access_token: str
    expires_in: int
    user: User
    tenant: Tenant
