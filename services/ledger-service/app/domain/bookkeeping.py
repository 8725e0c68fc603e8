"""Category and expense workflows built on the tenant-scoped store."""

from __future__ import annotations

import uuid
from dataclasses import replace

from ..tenancy.context import TenantContext
from ..tenancy.filters import Condition, eq, ge, ieq, le
from ..tenancy.store import ScopedStore
from .contracts import CategoryChanges, CategoryInput, ExpenseChanges, ExpenseInput, ExpenseQuery
from .errors import DuplicateRecordError, PermissionDeniedError, ValidationFailedError
from .identity import Principal, Role
from .records import Category, Expense, ExpenseStatus


class CategoryService:
    def __init__(self, *, categories: ScopedStore[Category], expenses: ScopedStore[Expense]) -> None:
        self._categories = categories
        self._expenses = expenses

    def list_categories(self, context: TenantContext) -> list[Category]:
        return self._categories.list_scoped(context, eq("is_active", True), order_by="name")

    def get_category(self, context: TenantContext, category_id: str) -> Category:
        return self._categories.require_scoped(context, category_id)

    def expense_count(self, context: TenantContext, category_id: str) -> int:
        return self._expenses.count_scoped(context, eq("category_id", category_id))

    def create_category(self, context: TenantContext, payload: CategoryInput) -> Category:
        name = payload.name.strip()
        self._ensure_unique_name(context, name)
        return self._categories.create_scoped(
            context,
            Category(
                id=str(uuid.uuid4()),
                tenant_id=context.require(),
                name=name,
                description=payload.description,
                color_code=payload.color_code or "#000000",
            ),
        )

    def update_category(self, context: TenantContext, category_id: str, changes: CategoryChanges) -> Category:
        category = self._categories.require_scoped(context, category_id)
        if changes.name and changes.name.strip().lower() != category.name.lower():
            self._ensure_unique_name(context, changes.name.strip(), exclude_id=category.id)
            category = replace(category, name=changes.name.strip())
        if changes.description is not None:
            category = replace(category, description=changes.description)
        if changes.color_code:
            category = replace(category, color_code=changes.color_code)
        return self._categories.update_scoped(context, category)

    def delete_category(self, context: TenantContext, category_id: str) -> Category | None:
        """Delete an unused category, or deactivate it when expenses reference it.

        Returns the deactivated category, or ``None`` when it was removed.
        """
        category = self._categories.require_scoped(context, category_id)
        if self.expense_count(context, category.id):
            return self._categories.update_scoped(context, replace(category, is_active=False))
        self._categories.delete_scoped(context, category.id)
        return None

    def _ensure_unique_name(self, context: TenantContext, name: str, exclude_id: str | None = None) -> None:
        clashes = self._categories.list_scoped(context, ieq("name", name))
        if any(existing.id != exclude_id for existing in clashes):
            raise DuplicateRecordError("category with this name already exists")


class ExpenseService:
    def __init__(self, *, expenses: ScopedStore[Expense], categories: ScopedStore[Category]) -> None:
        self._expenses = expenses
        self._categories = categories

    def list_expenses(self, context: TenantContext, query: ExpenseQuery) -> list[Expense]:
        conditions: list[Condition] = []
        if query.start_date:
            conditions.append(ge("expense_date", query.start_date))
        if query.end_date:
            conditions.append(le("expense_date", query.end_date))
        if query.status:
            conditions.append(eq("status", query.status))
        return self._expenses.list_scoped(context, *conditions, order_by="expense_date", descending=True)

    def get_expense(self, context: TenantContext, expense_id: str) -> Expense:
        return self._expenses.require_scoped(context, expense_id)

    def create_expense(self, context: TenantContext, principal: Principal, payload: ExpenseInput) -> Expense:
        self._require_category(context, payload.category_id)
        return self._expenses.create_scoped(
            context,
            Expense(
                id=str(uuid.uuid4()),
                tenant_id=context.require(),
                user_id=principal.user_id,
                category_id=payload.category_id,
                title=payload.title.strip(),
                description=payload.description,
                amount=payload.amount,
                currency=payload.currency.upper(),
                expense_date=payload.expense_date,
                receipt_url=payload.receipt_url,
            ),
        )

    def update_expense(
        self,
        context: TenantContext,
        principal: Principal,
        expense_id: str,
        changes: ExpenseChanges,
    ) -> Expense:
        expense = self._expenses.require_scoped(context, expense_id)
        self._require_author_or(principal, expense, Role.manager)
        if changes.title:
            expense = replace(expense, title=changes.title.strip())
        if changes.description is not None:
            expense = replace(expense, description=changes.description)
        if changes.amount is not None:
            expense = replace(expense, amount=changes.amount)
        if changes.category_id:
            self._require_category(context, changes.category_id)
            expense = replace(expense, category_id=changes.category_id)
        if changes.expense_date is not None:
            expense = replace(expense, expense_date=changes.expense_date)
        return self._expenses.update_scoped(context, expense)

    def delete_expense(self, context: TenantContext, principal: Principal, expense_id: str) -> None:
        expense = self._expenses.require_scoped(context, expense_id)
        self._require_author_or(principal, expense, Role.admin)
        self._expenses.delete_scoped(context, expense.id)

    def set_status(self, context: TenantContext, expense_id: str, status: ExpenseStatus) -> Expense:
        expense = self._expenses.require_scoped(context, expense_id)
        return self._expenses.update_scoped(context, replace(expense, status=status))

    def _require_category(self, context: TenantContext, category_id: str) -> Category:
        category = self._categories.get_scoped(context, category_id)
        if category is None:
            raise ValidationFailedError("category not found")
        return category

    @staticmethod
    def _require_author_or(principal: Principal, expense: Expense, minimum: Role) -> None:
        if expense.user_id != principal.user_id and not principal.role.at_least(minimum):
            raise PermissionDeniedError()
