# news_copilot/schema_loader.py
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import psycopg

from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy


# ----------------------------
# Data model
# ----------------------------

@dataclass(frozen=True)
class ForeignKey:
    from_column: str
    ref_table: str
    ref_column: str

@dataclass(frozen=True)
class Column:
    name: str
    type: str
    not_null: bool
    default: Optional[str]
    is_primary_key: bool
    max_length: Optional[int] = None

@dataclass(frozen=True)
class Table:
    schema: str
    name: str
    columns: Tuple[Column, ...]
    primary_key: Tuple[str, ...]
    foreign_keys: Tuple[ForeignKey, ...]
    indexes: Tuple[str, ...] = ()
    row_count: Optional[int] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

@dataclass(frozen=True)
class Schema:
    dialect: str
    tables: Tuple[Table, ...]
    schema_version: str  # stable hash of structure


# ----------------------------
# Loader
# ----------------------------

_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

_COLUMNS_SQL = """
    SELECT column_name, data_type, character_maximum_length, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""

_PRIMARY_KEY_SQL = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = %s AND tc.table_name = %s
"""

_FOREIGN_KEYS_SQL = """
    SELECT kcu.column_name, ccu.table_name, ccu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage ccu
      ON ccu.constraint_name = tc.constraint_name
     AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_schema = %s AND tc.table_name = %s
"""

_INDEXES_SQL = """
    SELECT indexname
    FROM pg_indexes
    WHERE schemaname = %s AND tablename = %s
    ORDER BY indexname
"""

# Planner estimate; avoids a full COUNT(*) scan per table
_ROW_ESTIMATE_SQL = """
    SELECT c.reltuples::bigint
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = %s AND c.relname = %s
"""


def _fetchall(conn: psycopg.Connection, sql: str, params: Tuple[Any, ...] = ()) -> List[Tuple[Any, ...]]:
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchall()


def _table_columns(conn: psycopg.Connection, schema: str, table: str, pk: Tuple[str, ...]) -> List[Column]:
    cols: List[Column] = []
    for (name, dtype, max_len, is_nullable, default) in _fetchall(conn, _COLUMNS_SQL, (schema, table)):
        cols.append(
            Column(
                name=str(name),
                type=str(dtype or "").upper(),
                not_null=is_nullable == "NO",
                default=None if default is None else str(default),
                is_primary_key=name in pk,
                max_length=max_len,
            )
        )
    return cols


def load_table(conn: psycopg.Connection, schema: str, table: str, *, include_row_counts: bool = False) -> Table:
    pk = tuple(sorted(r[0] for r in _fetchall(conn, _PRIMARY_KEY_SQL, (schema, table))))
    fks = [
        ForeignKey(from_column=str(a), ref_table=str(b), ref_column=str(c))
        for (a, b, c) in _fetchall(conn, _FOREIGN_KEYS_SQL, (schema, table))
    ]
    fks.sort(key=lambda fk: (fk.from_column, fk.ref_table, fk.ref_column))
    indexes = tuple(r[0] for r in _fetchall(conn, _INDEXES_SQL, (schema, table)))

    row_count: Optional[int] = None
    if include_row_counts:
        rows = _fetchall(conn, _ROW_ESTIMATE_SQL, (schema, table))
        row_count = int(rows[0][0]) if rows and rows[0][0] is not None else None

    return Table(
        schema=schema,
        name=table,
        columns=tuple(_table_columns(conn, schema, table, pk)),
        primary_key=pk,
        foreign_keys=tuple(fks),
        indexes=indexes,
        row_count=row_count,
    )


def _schema_structure_dict(tables: List[Table]) -> Dict[str, Any]:
    return {
        "dialect": "postgresql",
        "tables": [
            {
                "schema": t.schema,
                "name": t.name,
                "columns": [
                    {
                        "name": c.name,
                        "type": c.type,
                        "not_null": c.not_null,
                        "default": c.default,
                        "is_primary_key": c.is_primary_key,
                    }
                    for c in t.columns
                ],
                "primary_key": list(t.primary_key),
                "foreign_keys": [
                    [fk.from_column, fk.ref_table, fk.ref_column] for fk in t.foreign_keys
                ],
            }
            for t in tables
        ],
    }


def _stable_hash(obj: Any) -> str:
    payload = json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def build_schema(tables: List[Table]) -> Schema:
    tables = sorted(tables, key=lambda t: (t.schema, t.name))
    return Schema(
        dialect="postgresql",
        tables=tuple(tables),
        schema_version=_stable_hash(_schema_structure_dict(tables)),
    )


def load_schema(
    database_url: str,
    *,
    schema_name: str = "public",
    include_row_counts: bool = False,
    connect_timeout_s: int = 30,
) -> Schema:
    with psycopg.connect(database_url, connect_timeout=connect_timeout_s) as conn:
        conn.read_only = True
        names = [r[0] for r in _fetchall(conn, _TABLES_SQL, (schema_name,))]
        tables = [
            load_table(conn, schema_name, n, include_row_counts=include_row_counts)
            for n in names
        ]
    return build_schema(tables)


# ----------------------------
# Prompt serialization
# ----------------------------

def serialize_schema_for_prompt(
    schema: Schema,
    *,
    column_policy: Optional[ColumnPolicy] = None,
    max_chars: int = 6000,
) -> str:
    """
    Compact, deterministic text. The guarded table is flagged and its
    forbidden columns are listed as such rather than with their types.
    """
    column_policy = column_policy or ARTICLES_POLICY

    lines: List[str] = []
    lines.append(f"DIALECT: {schema.dialect}")
    lines.append(f"SCHEMA_VERSION: {schema.schema_version}")
    lines.append("TABLES:")

    for t in schema.tables:
        guarded = t.name.lower() == column_policy.guarded_table.lower()
        header = f"- {t.qualified_name}"
        if t.row_count is not None:
            header += f" ({t.row_count} rows)"
        lines.append(header)

        if guarded:
            lines.append("  RESTRICTED TABLE - long text columns are forbidden")
            lines.append(f"  ALLOWED: {', '.join(column_policy.allowed_columns)}")
        if t.primary_key:
            lines.append(f"  PK: {', '.join(t.primary_key)}")
        if t.foreign_keys:
            fk_parts = [f"{fk.from_column}->{fk.ref_table}.{fk.ref_column}" for fk in t.foreign_keys]
            lines.append(f"  FK: {', '.join(fk_parts)}")

        lines.append("  COLUMNS:")
        for c in t.columns:
            if guarded and column_policy.is_forbidden(c.name):
                lines.append(f"    - {c.name}: [FORBIDDEN - DO NOT SELECT]")
                continue
            flags = []
            if c.not_null:
                flags.append("NOT_NULL")
            if c.is_primary_key:
                flags.append("PK")
            flag_str = f" [{'|'.join(flags)}]" if flags else ""
            dtype = c.type or "UNKNOWN"
            if c.max_length:
                dtype = f"{dtype}({c.max_length})"
            lines.append(f"    - {c.name}: {dtype}{flag_str}")

        if t.indexes:
            lines.append(f"  INDEXES: {', '.join(t.indexes)}")

    text = "\n".join(lines)
    if len(text) <= max_chars:
        return text

    # Indexes are the first thing to go
    pruned = "\n".join(line for line in lines if not line.startswith("  INDEXES:"))
    if len(pruned) <= max_chars:
        return pruned

    return pruned[:max_chars]
