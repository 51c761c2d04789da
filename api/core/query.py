"""
Parameterized SQL assembly for asyncpg ($n placeholders).

Values never reach the SQL text: every predicate binds exactly one
positional parameter, numbered in the order predicates were added.
Table and column names come from module-level constants, never from
request data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class Predicate:
    """
    One `column operator value` condition.

    `lookup` is an optional sub-query template with a single `{}` slot for
    the placeholder, e.g. "(SELECT id FROM region WHERE code = {})".
    """

    column: str
    operator: str
    value: Any
    lookup: str | None = None

    def render(self, placeholder: str) -> str:
        rhs = self.lookup.format(placeholder) if self.lookup else placeholder
        return f"{self.column} {self.operator} {rhs}"


@dataclass
class FilterQuery:
    predicates: list[Predicate] = field(default_factory=list)

    def add(self, column: str, operator: str, value: Any, *, lookup: str | None = None) -> FilterQuery:
        self.predicates.append(Predicate(column, operator, value, lookup))
        return self

    @property
    def params(self) -> list[Any]:
        return [p.value for p in self.predicates]

    def where_clause(self, start: int = 1) -> str:
        if not self.predicates:
            return ""
        conditions = [p.render(f"${start + i}") for i, p in enumerate(self.predicates)]
        return "WHERE " + " AND ".join(conditions)

    def compile(
        self,
        select_sql: str,
        *,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[str, list[Any]]:
        """
        Return (sql, params) with LIMIT/OFFSET bound as the last placeholders.
        """
        params = self.params
        parts = [select_sql.strip()]
        where = self.where_clause()
        if where:
            parts.append(where)
        if order_by:
            parts.append(f"ORDER BY {order_by}")
        if limit is not None:
            params.append(int(limit))
            parts.append(f"LIMIT ${len(params)}")
        if offset is not None:
            params.append(int(offset))
            parts.append(f"OFFSET ${len(params)}")
        return "\n".join(parts), params


def insert_sql(
    table: str,
    columns: Sequence[str],
    *,
    server_values: Mapping[str, str] | None = None,
) -> str:
    """
    INSERT binding `columns` to $1..$n; `server_values` maps extra columns
    to SQL expressions evaluated by the store (e.g. {"created_at": "NOW()"}).
    """
    names = list(columns)
    values = [f"${i}" for i in range(1, len(columns) + 1)]
    for name, expression in (server_values or {}).items():
        names.append(name)
        values.append(expression)
    return f"INSERT INTO {table} ({', '.join(names)}) VALUES ({', '.join(values)}) RETURNING *"


def update_sql(
    table: str,
    columns: Sequence[str],
    key_columns: Sequence[str],
    *,
    extra_assignments: Iterable[str] = (),
) -> str:
    """
    UPDATE with SET placeholders first ($1..$k), then WHERE keys.
    """
    assignments = [f"{col} = ${i}" for i, col in enumerate(columns, start=1)]
    assignments.extend(extra_assignments)
    offset = len(columns)
    keys = [f"{col} = ${offset + i}" for i, col in enumerate(key_columns, start=1)]
    return f"UPDATE {table} SET {', '.join(assignments)} WHERE {' AND '.join(keys)} RETURNING *"
