"""Bookkeeping record DTOs."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class CategorySummary(BaseModel):
    category_id: str
    name: str
    description: str | None = None
    color_code: str
    is_active: bool
    expense_count: int = 0


class ExpenseSummary(BaseModel):
    expense_id: str
    user_id: str
    category_id: str
    title: str
    description: str | None = None
    amount: Decimal
    currency: str
    expense_date: datetime
    status: str
    receipt_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
