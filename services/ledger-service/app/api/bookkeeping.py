"""HTTP routes for tenant-scoped categories and expenses."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Query, Response, status
from pydantic import BaseModel, Field

from schemas import CategorySummary, ExpenseSummary

from ..container import Services
from ..domain.contracts import CategoryChanges, CategoryInput, ExpenseChanges, ExpenseInput, ExpenseQuery
from ..domain.identity import Principal, Role
from ..domain.records import Category, Expense, ExpenseStatus
from ..tenancy.context import TenantContext
from .dependencies import get_services, get_tenant_context, require_principal, require_role

router = APIRouter(prefix="/v1")

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color_code: str | None = Field(default=None, pattern=COLOR_PATTERN)


class UpdateCategoryRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color_code: str | None = Field(default=None, pattern=COLOR_PATTERN)


class CreateExpenseRequest(BaseModel):
    """Expense payload. Ownership fields are assigned by the server."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category_id: str
    expense_date: datetime
    receipt_url: str | None = Field(default=None, max_length=500)


class UpdateExpenseRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    amount: Decimal | None = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    category_id: str | None = None
    expense_date: datetime | None = None


def category_summary(category: Category, expense_count: int = 0) -> CategorySummary:
    return CategorySummary(
        category_id=category.id,
        name=category.name,
        description=category.description,
        color_code=category.color_code,
        is_active=category.is_active,
        expense_count=expense_count,
    )


def expense_summary(expense: Expense) -> ExpenseSummary:
    return ExpenseSummary(
        expense_id=expense.id,
        user_id=expense.user_id,
        category_id=expense.category_id,
        title=expense.title,
        description=expense.description,
        amount=expense.amount,
        currency=expense.currency,
        expense_date=expense.expense_date,
        status=expense.status.value,
        receipt_url=expense.receipt_url,
        created_at=expense.created_at,
        updated_at=expense.updated_at,
    )


@router.get("/categories", response_model=list[CategorySummary])
def list_categories(
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> list[CategorySummary]:
    return [
        category_summary(category, services.categories.expense_count(context, category.id))
        for category in services.categories.list_categories(context)
    ]


@router.get("/categories/{category_id}", response_model=CategorySummary)
def get_category(
    category_id: str,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> CategorySummary:
    category = services.categories.get_category(context, category_id)
    return category_summary(category, services.categories.expense_count(context, category.id))


@router.post("/categories", response_model=CategorySummary, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CreateCategoryRequest,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> CategorySummary:
    category = services.categories.create_category(
        context,
        CategoryInput(name=payload.name, description=payload.description, color_code=payload.color_code),
    )
    return category_summary(category)


@router.put("/categories/{category_id}", response_model=CategorySummary)
def update_category(
    category_id: str,
    payload: UpdateCategoryRequest,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> CategorySummary:
    category = services.categories.update_category(
        context,
        category_id,
        CategoryChanges(name=payload.name, description=payload.description, color_code=payload.color_code),
    )
    return category_summary(category, services.categories.expense_count(context, category.id))


@router.delete("/categories/{category_id}", response_model=None)
def delete_category(
    category_id: str,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.admin)),
    services: Services = Depends(get_services),
) -> Response | dict[str, str]:
    """Delete a category, or deactivate it when expenses still reference it."""
    deactivated = services.categories.delete_category(context, category_id)
    if deactivated is not None:
        return {"message": "category deactivated because it has expenses"}
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/expenses", response_model=list[ExpenseSummary])
def list_expenses(
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    expense_status: ExpenseStatus | None = Query(default=None, alias="status"),
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> list[ExpenseSummary]:
    expenses = services.expenses.list_expenses(
        context,
        ExpenseQuery(start_date=start_date, end_date=end_date, status=expense_status),
    )
    return [expense_summary(expense) for expense in expenses]


@router.get("/expenses/{expense_id}", response_model=ExpenseSummary)
def get_expense(
    expense_id: str,
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> ExpenseSummary:
    return expense_summary(services.expenses.get_expense(context, expense_id))


@router.post("/expenses", response_model=ExpenseSummary, status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: CreateExpenseRequest,
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> ExpenseSummary:
    expense = services.expenses.create_expense(
        context,
        principal,
        ExpenseInput(
            title=payload.title,
            amount=payload.amount,
            category_id=payload.category_id,
            expense_date=payload.expense_date,
            currency=payload.currency,
            description=payload.description,
            receipt_url=payload.receipt_url,
        ),
    )
    return expense_summary(expense)


@router.put("/expenses/{expense_id}", response_model=ExpenseSummary)
def update_expense(
    expense_id: str,
    payload: UpdateExpenseRequest,
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> ExpenseSummary:
    expense = services.expenses.update_expense(
        context,
        principal,
        expense_id,
        ExpenseChanges(
            title=payload.title,
            description=payload.description,
            amount=payload.amount,
            category_id=payload.category_id,
            expense_date=payload.expense_date,
        ),
    )
    return expense_summary(expense)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: str,
    context: TenantContext = Depends(get_tenant_context),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> None:
    services.expenses.delete_expense(context, principal, expense_id)


@router.patch("/expenses/{expense_id}/status", response_model=ExpenseSummary)
def update_expense_status(
    expense_id: str,
    new_status: ExpenseStatus = Body(..., embed=True, alias="status"),
    context: TenantContext = Depends(get_tenant_context),
    _: Principal = Depends(require_role(Role.manager)),
    services: Services = Depends(get_services),
) -> ExpenseSummary:
    return expense_summary(services.expenses.set_status(context, expense_id, new_status))
