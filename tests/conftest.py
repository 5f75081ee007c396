"""Shared fixtures: an in-memory stand-in for the Supabase table API."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytest
from postgrest.exceptions import APIError

from ssp_fx import create_app
from ssp_fx.config import Settings

CREATED_AT_EPOCH = datetime(2024, 1, 1)


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Records builder calls and evaluates them against ``FakeDatabase`` rows."""

    def __init__(self, db: "FakeDatabase", table: str) -> None:
        self.db = db
        self.table = table
        self.action = "select"
        self.columns: List[str] = []
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self.offset = 0
        self.row_limit: Optional[int] = None
        self.payload: List[Dict[str, Any]] = []
        self.on_conflict = ""

    def select(self, *columns: str, count: Optional[str] = None) -> "FakeQuery":
        self.action = "select"
        self.columns = [
            name.strip() for spec in columns for name in spec.split(",") if name.strip()
        ]
        return self

    def upsert(self, payload, on_conflict: str = "", **kwargs) -> "FakeQuery":
        self.action = "upsert"
        self.payload = payload if isinstance(payload, list) else [payload]
        self.on_conflict = on_conflict
        return self

    def delete(self, **kwargs) -> "FakeQuery":
        self.action = "delete"
        return self

    def _filter(self, predicate) -> "FakeQuery":
        self.filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._filter(lambda row: row.get(column) == value)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._filter(lambda row: row.get(column) is not None and row[column] < value)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._filter(lambda row: row.get(column) is not None and row[column] <= value)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._filter(lambda row: row.get(column) is not None and row[column] >= value)

    def in_(self, column: str, values) -> "FakeQuery":
        allowed = set(values)
        return self._filter(lambda row: row.get(column) in allowed)

    def or_(self, filters: str) -> "FakeQuery":
        clauses = []
        for clause in filters.split(","):
            column, operator, pattern = clause.split(".", 2)
            assert operator == "ilike"
            clauses.append((column, pattern.strip("%").lower()))
        return self._filter(
            lambda row: any(
                term in str(row.get(column, "")).lower() for column, term in clauses
            )
        )

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, size: int) -> "FakeQuery":
        self.row_limit = size
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.offset = start
        self.row_limit = end - start + 1
        return self

    def _matching(self, rows):
        return [row for row in rows if all(check(row) for check in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.executed.append((self.table, self.action))
        if self.db.fail_message:
            raise APIError({"message": self.db.fail_message, "code": "XX000"})

        rows = self.db.tables.setdefault(self.table, [])

        if self.action == "upsert":
            keys = [key for key in self.on_conflict.split(",") if key]
            for record in self.payload:
                existing = next(
                    (
                        row
                        for row in rows
                        if keys and all(row.get(key) == record.get(key) for key in keys)
                    ),
                    None,
                )
                if existing is not None:
                    existing.update(record)
                else:
                    self.db.insert(self.table, dict(record))
            return FakeResponse([dict(record) for record in self.payload])

        if self.action == "delete":
            removed = self._matching(rows)
            self.db.tables[self.table] = [row for row in rows if row not in removed]
            return FakeResponse(removed)

        matched = self._matching(rows)
        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row: str(row.get(column) or ""), reverse=desc)
        end = None if self.row_limit is None else self.offset + self.row_limit
        matched = matched[self.offset:end]
        if self.db.max_rows is not None:
            matched = matched[: self.db.max_rows]
        if self.columns and self.columns != ["*"]:
            matched = [{name: row.get(name) for name in self.columns} for row in matched]
        else:
            matched = [dict(row) for row in matched]
        return FakeResponse(matched, count=len(matched))


class FakeDatabase:
    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.executed: List[tuple] = []
        self.fail_message: Optional[str] = None
        # PostgREST max-rows: responses are cut to this many rows whatever the range
        self.max_rows: Optional[int] = None
        self._sequence = 0

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._sequence += 1
        row.setdefault("id", self._sequence)
        row.setdefault(
            "created_at", (CREATED_AT_EPOCH + timedelta(seconds=self._sequence)).isoformat()
        )
        self.tables.setdefault(table, []).append(row)
        return row

    def add_rates(
        self,
        quote: str,
        mids: List[float],
        start: date = date(2024, 1, 1),
        base: str = "SSP",
        table: str = "fx_daily_rates",
    ) -> None:
        for offset, mid in enumerate(mids):
            self.insert(
                table,
                {
                    "as_of_date": (start + timedelta(days=offset)).isoformat(),
                    "base_currency": base,
                    "quote_currency": quote,
                    "rate_mid": mid,
                    "is_official": True,
                    "is_manual_override": False,
                    "source_id": 1,
                },
            )


class FakeSupabaseClient:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, name)


@pytest.fixture
def fake_db() -> FakeDatabase:
    db = FakeDatabase()
    db.insert("fx_sources", {"id": 1, "code": "SAVVY_FEED"})
    db.insert("fx_sources", {"id": 2, "code": "CBSS"})
    db.insert("currencies", {"code": "USD", "name": "US Dollar", "symbol": "$", "decimals": 2})
    db.insert("currencies", {"code": "EUR", "name": "Euro", "symbol": "€", "decimals": 2})
    db.insert(
        "currencies",
        {"code": "SSP", "name": "South Sudanese Pound", "symbol": "SSP", "decimals": 2},
    )
    return db


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="test-service-key",
        admin_secret="letmein",
        internal_admin_token="feed-token",
        secret_key="test-secret",
        fetch_chunk_size=5,
    )


@pytest.fixture
def app(settings, fake_db):
    app = create_app(settings, supabase_client=FakeSupabaseClient(fake_db))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/login", json={"password": "letmein"})
    assert response.status_code == 200
    return client
