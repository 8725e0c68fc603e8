from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Ordered privilege levels; comparisons follow declaration order."""

    user = "user"
    manager = "manager"
    admin = "admin"
    owner = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


_ROLE_ORDER = list(Role)


class SubscriptionPlan(str, Enum):
    free = "free"
    basic = "basic"
    pro = "pro"
    enterprise = "enterprise"


@dataclass(slots=True)
class Tenant:
    """Partition root: every tenant-scoped record hangs off a tenant id."""

    tenant_id: str
    name: str
    subdomain: str
    contact_email: str
    created_at: datetime
    is_active: bool = True
    plan: SubscriptionPlan = SubscriptionPlan.free
    max_users: int = 5
    subscription_expires_at: datetime | None = None


@dataclass(slots=True)
class User:
    """Tenant-scoped login identity.

    ``password_hash`` holds the credential artifact produced by
    :class:`app.security.passwords.CredentialHasher`, never plaintext.
    """

    id: str
    tenant_id: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: Role = Role.user
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class IdentityClaims:
    """Verified contents of an identity assertion."""

    subject: str
    tenant_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity for one request, with the role as currently stored."""

    user_id: str
    tenant_id: str
    role: Role
    email: str
