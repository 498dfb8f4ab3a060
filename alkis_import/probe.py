"""
Existence checks against the PostgreSQL catalogs.

Each check is a single scalar query that selects the literal 1 when the object
exists. A query that cannot be answered (connection refused, missing
permission, ...) yields `ProbeResult.FAILED`, which callers must not read as
"does not exist".
"""

from __future__ import annotations

import enum
from typing import Dict, Optional, Tuple

import psycopg2

from .console import warn
from .db import PgSession, error_text, table_ref


class ProbeResult(enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    FAILED = "probe-failed"


class ProbeKind(enum.Enum):
    DATABASE = "database"
    EXTENSION = "extension"
    SCHEMA = "schema"
    TABLE = "table"
    COLUMN = "column"
    NOT_NULL = "not-null-constraint"


_PROBE_SQL: Dict[ProbeKind, Tuple[int, str]] = {
    ProbeKind.DATABASE: (1, "SELECT 1 FROM pg_database WHERE datname = %s"),
    ProbeKind.EXTENSION: (1, "SELECT 1 FROM pg_extension WHERE extname = %s"),
    ProbeKind.SCHEMA: (1, "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s"),
    ProbeKind.TABLE: (
        2,
        "SELECT 1 FROM information_schema.tables WHERE table_schema = %s AND table_name = %s",
    ),
    ProbeKind.COLUMN: (
        3,
        "SELECT 1 FROM information_schema.columns"
        " WHERE table_schema = %s AND table_name = %s AND column_name = %s",
    ),
    ProbeKind.NOT_NULL: (
        3,
        "SELECT 1 FROM information_schema.columns"
        " WHERE table_schema = %s AND table_name = %s AND column_name = %s AND is_nullable = 'NO'",
    ),
}


class Prober:
    def __init__(self, session: PgSession):
        self.session = session

    def exists(self, kind: ProbeKind, *identifiers: str) -> ProbeResult:
        arity, sql = _PROBE_SQL[kind]
        if len(identifiers) != arity:
            raise ValueError(f"{kind.value} probe takes {arity} identifier(s), got {len(identifiers)}")
        try:
            result = self.session.scalar(sql, identifiers)
        except psycopg2.Error as e:
            warn(f"Could not check {kind.value} {'.'.join(identifiers)} in database '{self.session.dbname}': {error_text(e)}")
            return ProbeResult.FAILED
        return ProbeResult.PRESENT if result == "1" else ProbeResult.ABSENT

    def count_tables(self, schema: str) -> Optional[int]:
        """Number of tables and views in `schema`, or None when the count cannot be read."""
        return self._count(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = %s",
            (schema,),
            what=f"tables in schema '{schema}'",
        )

    def count_rows(self, schema: str, table: str) -> Optional[int]:
        return self._count(f"SELECT COUNT(*) FROM {table_ref(schema, table)}", None, what=f"rows in {schema}.{table}")

    def _count(self, sql: str, params, *, what: str) -> Optional[int]:
        try:
            raw = self.session.scalar(sql, params)
        except psycopg2.Error as e:
            warn(f"Could not count {what}: {error_text(e)}")
            return None
        raw = (raw or "").strip()
        if not raw.isdigit():
            warn(f"Unexpected count for {what}: {raw!r}")
            return None
        return int(raw)

