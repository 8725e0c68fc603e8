"""Postgres persistence for tenants, users and tenant-scoped records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.errors import DuplicateRecordError, DuplicateSubdomainError
from .domain.identity import Role, SubscriptionPlan, Tenant, User
from .domain.records import Category, Expense, ExpenseStatus
from .tenancy.filters import TENANT_COLUMN, Condition, TenantFilter, compose_where

IMMUTABLE_COLUMNS = frozenset({"id", TENANT_COLUMN, "created_at"})


@dataclass(frozen=True, slots=True)
class TableSpec:
    """Maps a record dataclass onto a table whose columns mirror its fields."""

    name: str
    record_type: type
    columns: tuple[str, ...]
    decoders: Mapping[str, Callable[[Any], Any]]

    @classmethod
    def for_dataclass(
        cls,
        name: str,
        record_type: type,
        decoders: Mapping[str, Callable[[Any], Any]] | None = None,
    ) -> "TableSpec":
        return cls(
            name=name,
            record_type=record_type,
            columns=tuple(f.name for f in fields(record_type)),
            decoders=dict(decoders or {}),
        )

    @property
    def mutable_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in IMMUTABLE_COLUMNS)

    def check_column(self, column: str) -> str:
        if column not in self.columns:
            raise ValueError(f"unknown column {column!r} for table {self.name}")
        return column

    def to_row(self, record: Any, columns: Sequence[str] | None = None) -> tuple[Any, ...]:
        return tuple(_encode(getattr(record, c)) for c in (columns or self.columns))

    def from_row(self, row: Sequence[Any]) -> Any:
        values = {
            column: self.decoders[column](value) if column in self.decoders and value is not None else value
            for column, value in zip(self.columns, row)
        }
        return self.record_type(**values)


def _encode(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


TENANTS = TableSpec.for_dataclass("tenants", Tenant, {"plan": SubscriptionPlan})
USERS = TableSpec.for_dataclass("users", User, {"role": Role})
CATEGORIES = TableSpec.for_dataclass("categories", Category)
EXPENSES = TableSpec.for_dataclass("expenses", Expense, {"status": ExpenseStatus})


class PostgresRecordBackend:
    """Tenant-scoped table access; every statement carries the tenant predicate.

    ``app.tenant_id`` is also set per transaction so row-level security
    policies on the table see the same tenant as the WHERE clause.
    """

    def __init__(self, pool: ConnectionPool, table: TableSpec) -> None:
        self._pool = pool
        self._table = table

    def _bind_scope(self, cur: Any, scope: TenantFilter) -> None:
        cur.execute("SELECT set_config('app.tenant_id', %s, true)", (scope.tenant_id or "",))

    def _where(self, scope: TenantFilter, conditions: Sequence[Condition] = ()) -> tuple[str, list[Any]]:
        for condition in conditions:
            self._table.check_column(condition.field)
        return compose_where(scope, conditions)

    def insert(self, scope: TenantFilter, record: Any) -> Any:
        if not scope.matches(record.tenant_id):
            raise ValueError("record tenant does not match the active tenant")
        columns = ", ".join(self._table.columns)
        placeholders = ", ".join(["%s"] * len(self._table.columns))
        query = (
            f"INSERT INTO {self._table.name} ({columns}) VALUES ({placeholders}) "
            f"RETURNING {columns}"
        )
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                self._bind_scope(cur, scope)
                try:
                    cur.execute(query, self._table.to_row(record))
                except pg_errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateRecordError(f"{self._table.name} record already exists") from exc
                row = cur.fetchone()
                conn.commit()
        return self._table.from_row(row)

    def update(self, scope: TenantFilter, record: Any) -> Any | None:
        mutable = self._table.mutable_columns
        assignments = ", ".join(f"{column} = %s" for column in mutable)
        where_sql, params = self._where(scope)
        query = (
            f"UPDATE {self._table.name} SET {assignments} "
            f"WHERE id = %s AND {where_sql} "
            f"RETURNING {', '.join(self._table.columns)}"
        )
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                self._bind_scope(cur, scope)
                try:
                    cur.execute(query, [*self._table.to_row(record, mutable), record.id, *params])
                except pg_errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateRecordError(f"{self._table.name} record already exists") from exc
                row = cur.fetchone()
                conn.commit()
        return self._table.from_row(row) if row else None

    def fetch(self, scope: TenantFilter, record_id: str) -> Any | None:
        where_sql, params = self._where(scope)
        query = (
            f"SELECT {', '.join(self._table.columns)} FROM {self._table.name} "
            f"WHERE id = %s AND {where_sql}"
        )
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                self._bind_scope(cur, scope)
                cur.execute(query, [record_id, *params])
                row = cur.fetchone()
        return self._table.from_row(row) if row else None

    def select(
        self,
        scope: TenantFilter,
        conditions: Sequence[Condition],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Any]:
        where_sql, params = self._where(scope, conditions)
        query = f"SELECT {', '.join(self._table.columns)} FROM {self._table.name} WHERE {where_sql}"
        if order_by:
            direction = "DESC" if descending else "ASC"
            query += f" ORDER BY {self._table.check_column(order_by)} {direction}, id {direction}"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                self._bind_scope(cur, scope)
                cur.execute(query, params)
                rows = cur.fetchall()
        return [self._table.from_row(row) for row in rows]

    def count(self, scope: TenantFilter, conditions: Sequence[Condition]) -> int:
        where_sql, params = self._where(scope, conditions)
        query = f"SELECT count(*) FROM {self._table.name} WHERE {where_sql}"
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                self._bind_scope(cur, scope)
                cur.execute(query, params)
                row = cur.fetchone()
        return int(row[0]) if row else 0

    def delete(self, scope: TenantFilter, record_id: str) -> bool:
        where_sql, params = self._where(scope)
        query = f"DELETE FROM {self._table.name} WHERE id = %s AND {where_sql}"
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                self._bind_scope(cur, scope)
                cur.execute(query, [record_id, *params])
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted


class TenantRepository:
    """Persistence for the tenants table, the root of every partition."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def subdomain_exists(self, subdomain: str) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT 1 FROM tenants WHERE subdomain = %s", (subdomain,))
                return cur.fetchone() is not None

    def create_tenant(self, *, name: str, subdomain: str, contact_email: str) -> Tenant:
        """Insert a new active tenant on the free plan."""
        tenant = Tenant(
            tenant_id=str(uuid.uuid4()),
            name=name,
            subdomain=subdomain,
            contact_email=contact_email,
            created_at=datetime.now(timezone.utc),
        )
        columns = ", ".join(TENANTS.columns)
        placeholders = ", ".join(["%s"] * len(TENANTS.columns))
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    cur.execute(
                        f"INSERT INTO tenants ({columns}) VALUES ({placeholders})",
                        TENANTS.to_row(tenant),
                    )
                except pg_errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateSubdomainError() from exc
                conn.commit()
        return tenant

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {', '.join(TENANTS.columns)} FROM tenants WHERE tenant_id = %s",
                    (tenant_id,),
                )
                row = cur.fetchone()
        return TENANTS.from_row(row) if row else None

    def delete_tenant(self, tenant_id: str) -> bool:
        """Hard-delete a tenant row; only used to undo a registration that failed midway."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM tenants WHERE tenant_id = %s", (tenant_id,))
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    def set_active(self, tenant_id: str, active: bool) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE tenants SET is_active = %s WHERE tenant_id = %s",
                    (active, tenant_id),
                )
                changed = cur.rowcount > 0
                conn.commit()
        return changed


@dataclass(slots=True)
class LoginCandidate:
    """A user matching a login email, together with the tenant it belongs to."""

    user: User
    tenant: Tenant


class IdentityRepository:
    """Cross-tenant user lookup used only to authenticate a login.

    Before a caller has authenticated there is no tenant to scope by, so this
    is the one read of ``users`` that is not narrowed by a tenant filter. It
    returns credential candidates only; everything after login goes through
    the scoped store.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_login_candidates(self, email: str, subdomain: str | None = None) -> list[LoginCandidate]:
        user_columns = ", ".join(f"u.{c}" for c in USERS.columns)
        tenant_columns = ", ".join(f"t.{c}" for c in TENANTS.columns)
        clauses = ["lower(u.email) = lower(%s)"]
        params: list[Any] = [email]
        if subdomain:
            clauses.append("t.subdomain = %s")
            params.append(subdomain)
        query = f"""
            SELECT {user_columns}, {tenant_columns}
            FROM users u
            JOIN tenants t ON t.tenant_id = u.tenant_id
            WHERE {" AND ".join(clauses)}
            ORDER BY t.created_at ASC, u.id ASC
        """
        width = len(USERS.columns)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [
            LoginCandidate(user=USERS.from_row(row[:width]), tenant=TENANTS.from_row(row[width:]))
            for row in rows
        ]
