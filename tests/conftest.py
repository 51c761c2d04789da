"""
Test fixtures.

The store is replaced by `FakeDB`, monkeypatched over `core.db`: every
statement is recorded as (method, sql, args) and answered by the first
registered handler whose SQL fragment matches. Transactions run against a
small in-memory table map so rollback behaviour can be asserted.
"""

import copy
import re
from contextlib import asynccontextmanager
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from core import db

INSTITUTION_ID = "0b6c2d1e-4f5a-4b7c-9d8e-1f2a3b4c5d6e"
OTHER_INSTITUTION_ID = "7d1e2f3a-5b6c-4d7e-8f9a-0b1c2d3e4f5a"
CATEGORY_ID = "11111111-2222-4333-8444-555555555555"
SUBTYPE_ID = "66666666-7777-4888-9999-aaaaaaaaaaaa"

_DELETE_RE = re.compile(r"DELETE FROM (\w+) WHERE (\w+) = \$1")


class FakeConnection:
    def __init__(self, tables, fail_on=None):
        self.tables = tables
        self.fail_on = fail_on
        self.statements = []

    async def execute(self, sql, *args):
        self.statements.append((sql, args))
        match = _DELETE_RE.search(sql)
        if match is None:
            return "OK"
        table, column = match.groups()
        if self.fail_on == table:
            raise RuntimeError(f"simulated failure deleting from {table}")
        before = len(self.tables.get(table, []))
        self.tables[table] = [row for row in self.tables.get(table, []) if row.get(column) != args[0]]
        return f"DELETE {before - len(self.tables[table])}"


class FakeDB:
    def __init__(self):
        self.calls = []
        self.handlers = []
        self.tables = {}
        self.fail_on = None
        self.committed = False
        self.rolled_back = False
        self.connection = None

    def on(self, fragment, result):
        """
        Answer statements containing `fragment` with `result`
        (a value, an exception instance, or a callable(sql, args)).
        """
        self.handlers.append((fragment, result))
        return self

    def _answer(self, sql, args, default):
        for fragment, result in self.handlers:
            if fragment in sql:
                if isinstance(result, Exception):
                    raise result
                if callable(result):
                    return result(sql, args)
                return copy.deepcopy(result)
        return default

    def sql_for(self, fragment):
        return [(sql, args) for (_, sql, args) in self.calls if fragment in sql]

    async def fetch_one(self, sql, *args):
        self.calls.append(("fetch_one", sql, args))
        return self._answer(sql, args, None)

    async def fetch_all(self, sql, *args):
        self.calls.append(("fetch_all", sql, args))
        return self._answer(sql, args, [])

    async def execute(self, sql, *args):
        self.calls.append(("execute", sql, args))
        return self._answer(sql, args, "OK")

    @asynccontextmanager
    async def transaction(self):
        staged = copy.deepcopy(self.tables)
        self.connection = FakeConnection(staged, fail_on=self.fail_on)
        try:
            yield self.connection
        except Exception:
            self.rolled_back = True
            raise
        self.tables = staged
        self.committed = True


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeDB()
    monkeypatch.setattr(db, "fetch_one", fake.fetch_one)
    monkeypatch.setattr(db, "fetch_all", fake.fetch_all)
    monkeypatch.setattr(db, "execute", fake.execute)
    monkeypatch.setattr(db, "transaction", fake.transaction)
    return fake


@pytest.fixture
def client(fake_db):
    from main import app

    # No `with` block: the lifespan (real pool) is never started.
    return TestClient(app, raise_server_exceptions=False)


def make_institution(**overrides):
    row = {
        "id": INSTITUTION_ID,
        "category_id": CATEGORY_ID,
        "subtype_id": SUBTYPE_ID,
        "name": "Lycée Andohalo",
        "label": None,
        "description": None,
        "lat": -18.9137,
        "lng": 47.5361,
        "capacity": 50,
        "status": "ouvert",
        "email_principal": None,
    }
    row.update(overrides)
    return row


def new_id():
    return str(uuid4())
