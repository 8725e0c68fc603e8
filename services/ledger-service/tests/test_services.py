from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.domain.contracts import ExpenseInput, ExpenseQuery, InviteUserInput, LoginInput, RegisterTenantInput
from app.domain.errors import (
    DuplicateRecordError,
    InvalidAssertionError,
    InvalidCredentialError,
    SessionActiveError,
    TenantConflictError,
)
from app.domain.identity import IdentityClaims, Principal, Role
from app.tenancy.context import TenantContext

PASSWORD = "correct-horse-battery"


def register(ledger, subdomain: str, email: str):
    return ledger.services.auth.register_tenant(
        TenantContext(),
        RegisterTenantInput(
            company_name=f"{subdomain.title()} Corp",
            subdomain=subdomain,
            owner_email=email,
            owner_first_name="Ada",
            owner_last_name="Owner",
            password=PASSWORD,
        ),
    )


def claims_for(result) -> IdentityClaims:
    return IdentityClaims(
        subject=result.user.id,
        tenant_id=result.tenant.tenant_id,
        role=result.user.role,
        issued_at=datetime.now(timezone.utc),
        expires_at=datetime.now(timezone.utc),
    )


def bound(tenant_id: str) -> TenantContext:
    context = TenantContext()
    context.set(tenant_id)
    return context


def test_register_binds_context_and_stamps_owner(ledger):
    context = TenantContext()
    result = ledger.services.auth.register_tenant(
        context,
        RegisterTenantInput(
            company_name="  Acme Corp ",
            subdomain="Acme",
            owner_email="Owner@Acme.io",
            owner_first_name="Ada",
            owner_last_name="Owner",
            password=PASSWORD,
        ),
    )
    assert context.get() == result.tenant.tenant_id
    assert result.tenant.subdomain == "acme"
    assert result.user.email == "owner@acme.io"
    assert result.user.tenant_id == result.tenant.tenant_id
    assert len(ledger.categories.rows) == 5
    assert ledger.issuer.verify(result.access_token).tenant_id == result.tenant.tenant_id


def test_login_prefers_active_membership(ledger):
    dormant = register(ledger, "dormant", "shared@acme.io")
    live = register(ledger, "live", "shared@acme.io")
    ledger.tenants.set_active(dormant.tenant.tenant_id, False)

    result = ledger.services.auth.login(TenantContext(), LoginInput(email="shared@acme.io", password=PASSWORD))
    assert result.tenant.tenant_id == live.tenant.tenant_id


def test_login_unknown_email_raises_invalid_credential(ledger):
    with pytest.raises(InvalidCredentialError):
        ledger.services.auth.login(TenantContext(), LoginInput(email="ghost@acme.io", password=PASSWORD))


def test_login_into_other_tenant_on_bound_request_is_rejected(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    register(ledger, "globex", "owner@globex.io")

    context = bound(acme.tenant.tenant_id)
    with pytest.raises(SessionActiveError):
        ledger.services.auth.login(context, LoginInput(email="owner@globex.io", password=PASSWORD))
    assert context.get() == acme.tenant.tenant_id


def test_authenticate_uses_stored_role(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    context = bound(acme.tenant.tenant_id)
    member = ledger.services.users.invite_user(
        context, InviteUserInput(email="member@acme.io", password=PASSWORD, first_name="Sam", last_name="Member")
    )
    ledger.services.users.change_role(context, member.id, Role.manager)

    stale = IdentityClaims(
        subject=member.id,
        tenant_id=acme.tenant.tenant_id,
        role=Role.user,
        issued_at=datetime.now(timezone.utc),
        expires_at=datetime.now(timezone.utc),
    )
    principal = ledger.services.auth.authenticate(context, stale)
    assert principal.role is Role.manager


def test_authenticate_rejects_claims_for_another_context(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    globex = register(ledger, "globex", "owner@globex.io")

    with pytest.raises(InvalidAssertionError):
        ledger.services.auth.authenticate(bound(globex.tenant.tenant_id), claims_for(acme))


def test_authenticate_rejects_user_from_other_tenant(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    globex = register(ledger, "globex", "owner@globex.io")
    forged = IdentityClaims(
        subject=acme.user.id,
        tenant_id=globex.tenant.tenant_id,
        role=Role.owner,
        issued_at=datetime.now(timezone.utc),
        expires_at=datetime.now(timezone.utc),
    )
    with pytest.raises(InvalidAssertionError):
        ledger.services.auth.authenticate(bound(globex.tenant.tenant_id), forged)


def test_expense_date_range_filter(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    context = bound(acme.tenant.tenant_id)
    principal = Principal(user_id=acme.user.id, tenant_id=acme.tenant.tenant_id, role=Role.owner, email="owner@acme.io")
    category_id = ledger.services.categories.list_categories(context)[0].id

    for day in (1, 10, 20):
        ledger.services.expenses.create_expense(
            context,
            principal,
            ExpenseInput(
                title=f"Day {day}",
                amount=Decimal("5.00"),
                category_id=category_id,
                expense_date=datetime(2024, 3, day, tzinfo=timezone.utc),
            ),
        )

    window = ledger.services.expenses.list_expenses(
        context,
        ExpenseQuery(
            start_date=datetime(2024, 3, 5, tzinfo=timezone.utc),
            end_date=datetime(2024, 3, 20, tzinfo=timezone.utc),
        ),
    )
    assert [expense.title for expense in window] == ["Day 20", "Day 10"]


def test_context_cannot_be_rebound_by_registration(ledger):
    acme = register(ledger, "acme", "owner@acme.io")
    context = bound(acme.tenant.tenant_id)
    with pytest.raises(TenantConflictError):
        context.set("globex")
    with pytest.raises(SessionActiveError):
        ledger.services.auth.register_tenant(
            context,
            RegisterTenantInput(
                company_name="Globex",
                subdomain="globex",
                owner_email="owner@globex.io",
                owner_first_name="Ada",
                owner_last_name="Owner",
                password=PASSWORD,
            ),
        )


def test_failed_registration_releases_subdomain(ledger, monkeypatch):
    original_insert = ledger.categories.insert
    calls = []

    def failing_insert(scope, record):
        calls.append(record.name)
        if len(calls) == 3:
            raise DuplicateRecordError("category with this name already exists")
        return original_insert(scope, record)

    monkeypatch.setattr(ledger.categories, "insert", failing_insert)
    with pytest.raises(DuplicateRecordError):
        register(ledger, "acme", "owner@acme.io")

    assert ledger.tenants.tenants == {}
    assert ledger.users.rows == {}
    assert ledger.categories.rows == {}

    monkeypatch.setattr(ledger.categories, "insert", original_insert)
    result = register(ledger, "acme", "owner@acme.io")
    assert result.tenant.subdomain == "acme"
    assert len(ledger.categories.rows) == 5
