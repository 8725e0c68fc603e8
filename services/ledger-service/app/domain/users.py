"""User administration inside the caller's tenant."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from ..repository import TenantRepository
from ..security.passwords import CredentialHasher
from ..tenancy.context import TenantContext
from ..tenancy.filters import eq, ieq
from ..tenancy.store import ScopedStore
from .contracts import InviteUserInput
from .errors import (
    DuplicateEmailError,
    MissingTenantContextError,
    OwnerProtectedError,
    UserQuotaExceededError,
)
from .identity import Role, User

logger = logging.getLogger(__name__)


class UserService:
    """Role-gated user management.

    The registered Owner is fixed: it cannot be demoted or deactivated, and
    the Owner role cannot be handed out, so every tenant keeps exactly one.
    """

    def __init__(self, *, users: ScopedStore[User], tenants: TenantRepository, hasher: CredentialHasher) -> None:
        self._users = users
        self._tenants = tenants
        self._hasher = hasher

    def list_users(self, context: TenantContext) -> list[User]:
        return self._users.list_scoped(context, order_by="created_at")

    def get_user(self, context: TenantContext, user_id: str) -> User:
        return self._users.require_scoped(context, user_id)

    def invite_user(self, context: TenantContext, payload: InviteUserInput) -> User:
        if payload.role is Role.owner:
            raise OwnerProtectedError("the owner role cannot be granted")
        email = payload.email.strip().lower()
        if self._users.exists_scoped(context, ieq("email", email)):
            raise DuplicateEmailError()

        tenant = self._tenants.get_tenant(context.require())
        if tenant is None:
            raise MissingTenantContextError()
        active_users = self._users.count_scoped(context, eq("is_active", True))
        if active_users >= tenant.max_users:
            raise UserQuotaExceededError(f"tenant user limit of {tenant.max_users} reached")

        user = self._users.create_scoped(
            context,
            User(
                id=str(uuid.uuid4()),
                tenant_id=tenant.tenant_id,
                email=email,
                password_hash=self._hasher.hash(payload.password),
                first_name=payload.first_name.strip(),
                last_name=payload.last_name.strip(),
                role=payload.role,
            ),
        )
        logger.info("invited user %s as %s in tenant %s", user.id, user.role.value, user.tenant_id)
        return user

    def change_role(self, context: TenantContext, user_id: str, role: Role) -> User:
        user = self._users.require_scoped(context, user_id)
        if user.role is Role.owner:
            raise OwnerProtectedError("cannot change the owner role")
        if role is Role.owner:
            raise OwnerProtectedError("the owner role cannot be granted")
        return self._users.update_scoped(context, replace(user, role=role))

    def deactivate_user(self, context: TenantContext, user_id: str) -> User:
        user = self._users.require_scoped(context, user_id)
        if user.role is Role.owner:
            raise OwnerProtectedError("cannot deactivate the owner")
        logger.info("deactivating user %s in tenant %s", user.id, user.tenant_id)
        return self._users.update_scoped(context, replace(user, is_active=False))
