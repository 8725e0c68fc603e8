"""Tenant and user DTOs shared across services."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr


class TenantSummary(BaseModel):
    tenant_id: str
    name: str
    subdomain: str
    plan: str
    max_users: int
    is_active: bool


class UserSummary(BaseModel):
    user_id: str
    tenant_id: str
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class AuthSession(BaseModel):
    """Bearer credential handed out after registration or login."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    tenant_id: str
    user: UserSummary
