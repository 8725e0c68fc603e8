"""HTTP routes for registration, login, the current tenant and its users."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field

from schemas import AuthSession, TenantSummary, UserSummary

from ..container import Services
from ..domain.contracts import AuthResult, InviteUserInput, LoginInput, RegisterTenantInput
from ..domain.identity import Principal, Role, Tenant, User
from ..tenancy.context import TenantContext
from .dependencies import get_services, get_tenant_context, require_principal, require_role, throttle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

SUBDOMAIN_PATTERN = r"^[A-Za-z0-9](?:[A-Za-z0-9-]{1,98}[A-Za-z0-9])?$"


class RegisterTenantRequest(BaseModel):
    """Self-registration payload; creates the tenant and its owner."""

    company_name: str = Field(..., min_length=1, max_length=200)
    subdomain: str = Field(..., min_length=3, max_length=100, pattern=SUBDOMAIN_PATTERN)
    owner_email: EmailStr
    owner_first_name: str = Field(..., min_length=1, max_length=100)
    owner_last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=256)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)
    subdomain: str | None = Field(default=None, max_length=100)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=256)


class InviteUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.user


class UpdateRoleRequest(BaseModel):
    role: Role


def tenant_summary(tenant: Tenant) -> TenantSummary:
    return TenantSummary(
        tenant_id=tenant.tenant_id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        plan=tenant.plan.value,
        max_users=tenant.max_users,
        is_active=tenant.is_active,
    )


def user_summary(user: User) -> UserSummary:
    return UserSummary(
        user_id=user.id,
        tenant_id=user.tenant_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.value,
        is_active=user.is_active,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


def _session(result: AuthResult) -> AuthSession:
    return AuthSession(
        access_token=result.access_token,
        expires_in=result.expires_in,
        tenant_id=result.tenant.tenant_id,
        user=user_summary(result.user),
    )


@router.post("/auth/register", response_model=AuthSession, status_code=status.HTTP_201_CREATED)
def register_tenant(
    request: Request,
    payload: RegisterTenantRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: Services = Depends(get_services),
) -> AuthSession:
    """Create a tenant with its owner account and return the owner's token."""
    throttle(request, f"register:{request.client.host if request.client else 'unknown'}")
    result = services.auth.register_tenant(
        context,
        RegisterTenantInput(
            company_name=payload.company_name,
            subdomain=payload.subdomain,
            owner_email=payload.owner_email,
            owner_first_name=payload.owner_first_name,
            owner_last_name=payload.owner_last_name,
            password=payload.password,
        ),
    )
    return _session(result)


@router.post("/auth/login", response_model=AuthSession)
def login(
    request: Request,
    payload: LoginRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: Services = Depends(get_services),
) -> AuthSession:
    """Exchange an email/password pair for a bearer token."""
    rate_key = f"login:{payload.email.lower()}"
    throttle(request, rate_key)
    result = services.auth.login(
        context,
        LoginInput(email=payload.email, password=payload.password, subdomain=payload.subdomain),
    )
    request.app.state.rate_limiter.reset(rate_key)
    return _session(result)


@router.put("/auth/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: ChangePasswordRequest,
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> None:
    services.auth.change_password(context, principal, payload.current_password, payload.new_password)


@router.get("/tenant", response_model=TenantSummary)
def get_tenant(
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> TenantSummary:
    return tenant_summary(services.tenants.current_tenant(context))


@router.post("/tenant/deactivate", response_model=TenantSummary)
def deactivate_tenant(
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_role(Role.owner)),
    services: Services = Depends(get_services),
) -> TenantSummary:
    """Deactivate the caller's tenant. Data is retained; sign-ins stop working."""
    logger.info("tenant deactivation requested by %s", principal.user_id)
    return tenant_summary(services.tenants.deactivate_tenant(context))


@router.get("/users", response_model=list[UserSummary])
def list_users(
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> list[UserSummary]:
    return [user_summary(user) for user in services.users.list_users(context)]


@router.get("/users/me", response_model=UserSummary)
def get_current_user(
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> UserSummary:
    return user_summary(services.users.get_user(context, principal.user_id))


@router.post("/users/invite", response_model=UserSummary, status_code=status.HTTP_201_CREATED)
def invite_user(
    payload: InviteUserRequest,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> UserSummary:
    user = services.users.invite_user(
        context,
        InviteUserInput(
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
        ),
    )
    return user_summary(user)


@router.put("/users/{user_id}/role", response_model=UserSummary)
def update_user_role(
    user_id: str,
    payload: UpdateRoleRequest,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.owner)),
    services: Services = Depends(get_services),
) -> UserSummary:
    return user_summary(services.users.change_role(context, user_id, payload.role))


@router.put("/users/{user_id}/deactivate", response_model=UserSummary)
def deactivate_user(
    user_id: str,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> UserSummary:
    return user_summary(services.users.deactivate_user(context, user_id))
