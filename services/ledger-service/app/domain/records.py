"""Tenant-scoped bookkeeping records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ExpenseStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    reimbursed = "reimbursed"


@dataclass(slots=True)
class Category:
    id: str
    tenant_id: str
    name: str
    description: str | None = None
    color_code: str = "#000000"
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class Expense:
    id: str
    tenant_id: str
    user_id: str
    category_id: str
    title: str
    amount: Decimal
    expense_date: datetime
    currency: str = "USD"
    description: str | None = None
    status: ExpenseStatus = ExpenseStatus.pending
    receipt_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
