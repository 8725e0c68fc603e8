"""SQL composition of the Postgres backends, checked against a recording pool."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from app.domain.identity import Role
from app.domain.records import Category
from app.repository import CATEGORIES, USERS, IdentityRepository, PostgresRecordBackend
from app.tenancy.filters import Condition, TenantFilter, eq, ieq

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingCursor:
    def __init__(self, rows, rowcount: int = 1) -> None:
        self.statements: list[tuple[str, object]] = []
        self._rows = rows
        self.rowcount = rowcount

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.statements.append((" ".join(query.split()), params))

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)


class RecordingConnection:
    def __init__(self, cursor: RecordingCursor) -> None:
        self._cursor = cursor
        self.commits = 0

    def cursor(self, row_factory=None):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass


class RecordingPool:
    def __init__(self, rows=(), rowcount: int = 1) -> None:
        self.cursor = RecordingCursor(list(rows), rowcount)
        self.connection_obj = RecordingConnection(self.cursor)

    @contextmanager
    def connection(self):
        yield self.connection_obj

    @property
    def statements(self):
        return self.cursor.statements


def category_row(tenant_id: str = "acme", name: str = "Travel"):
    return ("c1", tenant_id, name, None, "#000000", True, CREATED, CREATED)


def test_every_statement_sets_the_session_tenant():
    pool = RecordingPool(rows=[category_row()])
    PostgresRecordBackend(pool, CATEGORIES).fetch(TenantFilter("acme"), "c1")

    (bind_sql, bind_params), (query, params) = pool.statements
    assert bind_sql == "SELECT set_config('app.tenant_id', %s, true)"
    assert bind_params == ("acme",)
    assert query.endswith("FROM categories WHERE id = %s AND tenant_id = %s")
    assert params == ["c1", "acme"]


def test_unbound_scope_renders_false():
    pool = RecordingPool(rows=[])
    rows = PostgresRecordBackend(pool, CATEGORIES).select(TenantFilter(None), [], None, False, None)

    assert rows == []
    assert pool.statements[0][1] == ("",)
    assert pool.statements[1][0].endswith("FROM categories WHERE FALSE")


def test_select_composes_conditions_after_tenant_predicate():
    pool = RecordingPool(rows=[category_row()])
    backend = PostgresRecordBackend(pool, CATEGORIES)

    rows = backend.select(TenantFilter("acme"), [ieq("name", "travel"), eq("is_active", True)], "name", True, 10)

    query, params = pool.statements[1]
    assert "WHERE tenant_id = %s AND lower(name) = lower(%s) AND is_active = %s" in query
    assert query.endswith("ORDER BY name DESC, id DESC LIMIT %s")
    assert params == ["acme", "travel", True, 10]
    assert rows == [Category(id="c1", tenant_id="acme", name="Travel", created_at=CREATED, updated_at=CREATED)]


def test_unknown_columns_are_refused():
    backend = PostgresRecordBackend(RecordingPool(), CATEGORIES)
    with pytest.raises(ValueError):
        backend.select(TenantFilter("acme"), [Condition("name; DROP TABLE x", "eq", 1)], None, False, None)
    with pytest.raises(ValueError):
        backend.select(TenantFilter("acme"), [], "password", False, None)


def test_update_never_assigns_tenant_or_creation_time():
    pool = RecordingPool(rows=[category_row(name="Trips")])
    record = Category(id="c1", tenant_id="acme", name="Trips", created_at=CREATED, updated_at=CREATED)

    updated = PostgresRecordBackend(pool, CATEGORIES).update(TenantFilter("acme"), record)

    query, params = pool.statements[1]
    assignments = query.split(" SET ", 1)[1].split(" WHERE ", 1)[0]
    assigned = {part.split(" = ")[0] for part in assignments.split(", ")}
    assert assigned == {"name", "description", "color_code", "is_active", "updated_at"}
    assert "WHERE id = %s AND tenant_id = %s" in query
    assert params[-2:] == ["c1", "acme"]
    assert updated.name == "Trips"
    assert pool.connection_obj.commits == 1


def test_insert_rejects_record_for_another_tenant():
    pool = RecordingPool()
    record = Category(id="c1", tenant_id="globex", name="Travel", created_at=CREATED, updated_at=CREATED)
    with pytest.raises(ValueError):
        PostgresRecordBackend(pool, CATEGORIES).insert(TenantFilter("acme"), record)
    assert pool.statements == []


def test_delete_reports_whether_a_row_was_removed():
    missing = RecordingPool(rowcount=0)
    assert not PostgresRecordBackend(missing, CATEGORIES).delete(TenantFilter("acme"), "c1")
    assert missing.statements[1][0] == "DELETE FROM categories WHERE id = %s AND tenant_id = %s"

    present = RecordingPool(rowcount=1)
    assert PostgresRecordBackend(present, CATEGORIES).delete(TenantFilter("acme"), "c1")


def test_enum_columns_are_decoded():
    row = ("u1", "acme", "a@acme.io", "salt.hash", "Ada", "Admin", "admin", True, CREATED, CREATED, None)
    pool = RecordingPool(rows=[row])
    user = PostgresRecordBackend(pool, USERS).fetch(TenantFilter("acme"), "u1")
    assert user.role is Role.admin


def test_login_lookup_matches_email_case_insensitively():
    pool = RecordingPool(rows=[])
    IdentityRepository(pool).find_login_candidates("Owner@Acme.io", "acme")

    (query, params), = pool.statements
    assert "lower(u.email) = lower(%s) AND t.subdomain = %s" in query
    assert params == ["Owner@Acme.io", "acme"]
