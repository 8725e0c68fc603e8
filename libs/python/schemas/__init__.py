"""Shared schema exports."""

from .identity import AuthSession, TenantSummary, UserSummary
from .records import CategorySummary, ExpenseSummary

__all__ = [
    "AuthSession",
    "TenantSummary",
    "UserSummary",
    "CategorySummary",
    "ExpenseSummary",
]
