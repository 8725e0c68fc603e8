"""Tenant predicate composed into every read of a tenant-scoped table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .context import TenantContext

TENANT_COLUMN = "tenant_id"


@dataclass(frozen=True, slots=True)
class TenantFilter:
    """Row predicate ``tenant_id == <active tenant>``.

    An unbound context yields a filter that matches nothing; a missing tenant
    is never widened to "all tenants".
    """

    tenant_id: str | None

    @classmethod
    def for_context(cls, context: TenantContext) -> "TenantFilter":
        return cls(context.get())

    @property
    def matches_nothing(self) -> bool:
        return self.tenant_id is None

    def matches(self, tenant_id: str | None) -> bool:
        return self.tenant_id is not None and tenant_id == self.tenant_id

    def to_sql(self, column: str = TENANT_COLUMN) -> tuple[str, list[Any]]:
        if self.tenant_id is None:
            return "FALSE", []
        return f"{column} = %s", [self.tenant_id]


_OPERATORS = {
    "eq": "{field} = %s",
    "ieq": "lower({field}) = lower(%s)",
    "ge": "{field} >= %s",
    "le": "{field} <= %s",
}


@dataclass(frozen=True, slots=True)
class Condition:
    """Caller-supplied filter narrowing a scoped query further."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"unsupported operator {self.op!r}")
        if self.field == TENANT_COLUMN:
            raise ValueError("tenant_id is applied by the tenant filter, not by callers")

    def to_sql(self) -> tuple[str, Any]:
        return _OPERATORS[self.op].format(field=self.field), self.value

    def test(self, record: Any) -> bool:
        """Evaluate the condition against an in-memory record."""
        current = getattr(record, self.field)
        if self.op == "eq":
            return current == self.value
        if self.op == "ieq":
            return current is not None and str(current).lower() == str(self.value).lower()
        if current is None:
            return False
        if self.op == "ge":
            return current >= self.value
        return current <= self.value


def eq(field: str, value: Any) -> Condition:
    return Condition(field, "eq", value)


def ieq(field: str, value: str) -> Condition:
    return Condition(field, "ieq", value)


def ge(field: str, value: Any) -> Condition:
    return Condition(field, "ge", value)


def le(field: str, value: Any) -> Condition:
    return Condition(field, "le", value)


def compose_where(scope: TenantFilter, conditions: Iterable[Condition] = ()) -> tuple[str, list[Any]]:
    """Render ``<tenant predicate> AND <conditions...>`` with positional params.

    The tenant predicate always comes first so no caller condition can stand
    on its own.
    """
    clause, params = scope.to_sql()
    clauses = [clause]
    for condition in conditions:
        sql, value = condition.to_sql()
        clauses.append(sql)
        params.append(value.value if isinstance(value, Enum) else value)
    return " AND ".join(clauses), params
