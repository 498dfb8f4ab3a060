"""Shared pytest fixtures: an in-memory stand-in for a PostgreSQL cluster."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import psycopg2
import pytest

from alkis_import import console
from alkis_import.config import parse_config_text
from alkis_import.constraints import DEFAULT_CONSTRAINT_TARGETS
from alkis_import.context import RunContext
from alkis_import.db import Connector
from alkis_import.prompts import ScriptedConfirmer
from alkis_import.settings import Settings

IDENT = r'"([^"]+)"'


@dataclass
class FakeTable:
    columns: Dict[str, bool] = field(default_factory=dict)  # column -> nullable
    rows: int = 0


@dataclass
class FakeDatabase:
    extensions: Set[str] = field(default_factory=set)
    schemas: Dict[str, Dict[str, FakeTable]] = field(default_factory=lambda: {"public": {}})
    grants: List[str] = field(default_factory=list)

    def add_table(self, schema: str, table: str, columns: Optional[Dict[str, bool]] = None, rows: int = 0) -> FakeTable:
        t = FakeTable(columns=dict(columns or {"id": False}), rows=rows)
        self.schemas.setdefault(schema, {})[table] = t
        return t


class FakeCluster:
    def __init__(self) -> None:
        self.databases: Dict[str, FakeDatabase] = {"postgres": FakeDatabase()}
        self.statements: List[Tuple[str, Optional[str], str]] = []
        self.connections: List["FakeConnection"] = []
        self.offline = False
        self._failures: List[Tuple[re.Pattern, Optional[str], Exception]] = []

    def fail(self, pattern: str, exc: Optional[Exception] = None, *, user: Optional[str] = None) -> None:
        """Make statements matching `pattern` raise (optionally only for one login role)."""
        self._failures.append((re.compile(pattern), user, exc or psycopg2.ProgrammingError("permission denied")))

    def connect(self, **kwargs) -> "FakeConnection":
        if self.offline:
            raise psycopg2.OperationalError("could not connect to server: Connection refused")
        dbname = kwargs["dbname"]
        if dbname not in self.databases:
            raise psycopg2.OperationalError(f'FATAL:  database "{dbname}" does not exist')
        conn = FakeConnection(self, dbname, kwargs.get("user"))
        self.connections.append(conn)
        return conn

    def sql(self, dbname: Optional[str] = None) -> List[str]:
        return [s for (db, _user, s) in self.statements if dbname is None or db == dbname]

    def mutations(self, dbname: Optional[str] = None) -> List[str]:
        return [s for s in self.sql(dbname) if not s.startswith("SELECT")]


class FakeConnection:
    def __init__(self, cluster: FakeCluster, dbname: str, user: Optional[str]) -> None:
        self.cluster = cluster
        self.dbname = dbname
        self.user = user
        self.autocommit = False
        self.closed = False

    def cursor(self) -> "FakeCursor":
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self._row: Optional[Tuple] = None

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        pass

    def fetchone(self) -> Optional[Tuple]:
        return self._row

    def execute(self, sql: str, params=None) -> None:
        cluster = self.conn.cluster
        sql = " ".join(sql.split())
        cluster.statements.append((self.conn.dbname, self.conn.user, sql))
        for pattern, user, exc in cluster._failures:
            if pattern.search(sql) and (user is None or user == self.conn.user):
                raise exc
        if cluster.offline:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        self._row = self._dispatch(sql, tuple(params or ()))

    def _dispatch(self, sql: str, params: Tuple) -> Optional[Tuple]:
        cluster = self.conn.cluster
        db = cluster.databases[self.conn.dbname]

        def one(flag: bool) -> Optional[Tuple]:
            return (1,) if flag else None

        if sql.startswith("SELECT 1 FROM pg_database"):
            return one(params[0] in cluster.databases)
        if sql.startswith("SELECT 1 FROM pg_extension"):
            return one(params[0] in db.extensions)
        if sql.startswith("SELECT 1 FROM information_schema.schemata"):
            return one(params[0] in db.schemas)
        if sql.startswith("SELECT 1 FROM information_schema.tables"):
            return one(params[1] in db.schemas.get(params[0], {}))
        if sql.startswith("SELECT 1 FROM information_schema.columns"):
            table = db.schemas.get(params[0], {}).get(params[1])
            if table is None or params[2] not in table.columns:
                return None
            if "is_nullable = 'NO'" in sql:
                return one(not table.columns[params[2]])
            return (1,)
        if sql.startswith("SELECT COUNT(*) FROM information_schema.tables"):
            return (len(db.schemas.get(params[0], {})),)

        m = re.fullmatch(rf"SELECT COUNT\(\*\) FROM {IDENT}\.{IDENT}", sql)
        if m:
            table = db.schemas.get(m.group(1), {}).get(m.group(2))
            if table is None:
                raise psycopg2.ProgrammingError(f'relation "{m.group(1)}.{m.group(2)}" does not exist')
            return (table.rows,)

        m = re.fullmatch(rf"CREATE DATABASE {IDENT}(?: OWNER {IDENT})?", sql)
        if m:
            if m.group(1) in cluster.databases:
                raise psycopg2.ProgrammingError(f'database "{m.group(1)}" already exists')
            cluster.databases[m.group(1)] = FakeDatabase()
            return None

        m = re.fullmatch(rf"CREATE EXTENSION IF NOT EXISTS {IDENT}", sql)
        if m:
            db.extensions.add(m.group(1))
            return None

        m = re.fullmatch(rf"CREATE SCHEMA {IDENT}", sql)
        if m:
            if m.group(1) in db.schemas:
                raise psycopg2.ProgrammingError(f'schema "{m.group(1)}" already exists')
            db.schemas[m.group(1)] = {}
            return None

        m = re.fullmatch(rf"DROP SCHEMA {IDENT} CASCADE", sql)
        if m:
            if db.schemas.pop(m.group(1), None) is None:
                raise psycopg2.ProgrammingError(f'schema "{m.group(1)}" does not exist')
            return None

        if sql.startswith("GRANT ") or sql.startswith("ALTER DEFAULT PRIVILEGES "):
            db.grants.append(sql)
            return None

        m = re.fullmatch(rf"ALTER TABLE {IDENT}\.{IDENT} ALTER COLUMN {IDENT} DROP NOT NULL", sql)
        if m:
            table = db.schemas.get(m.group(1), {}).get(m.group(2))
            if table is None or m.group(3) not in table.columns:
                raise psycopg2.ProgrammingError(f'column "{m.group(3)}" of relation "{m.group(2)}" does not exist')
            table.columns[m.group(3)] = True
            return None

        m = re.match(rf"CREATE TABLE IF NOT EXISTS {IDENT}\.{IDENT} \(", sql)
        if m:
            tables = db.schemas.get(m.group(1))
            if tables is None:
                raise psycopg2.ProgrammingError(f'schema "{m.group(1)}" does not exist')
            tables.setdefault(m.group(2), FakeTable(columns={"filename": True, "datadate": True, "imported_at": True}))
            return None

        raise AssertionError(f"FakeCluster does not understand: {sql}")


DEMO_CONFIG = """\
PG:dbname=alkis user='alkis' password="secret" host=localhost port=5433
schema demo
epsg 25832
create
jobs 2
/data/nas/*.xml.gz
"""


@pytest.fixture(autouse=True)
def reset_console():
    console.set_verbose(False)
    yield
    console.set_verbose(False)
    console.close_log_file()


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def settings() -> Settings:
    return Settings(importer="alkis-import.sh", maintenance_db="postgres", admin_user="postgres", admin_password="adminpw")


@pytest.fixture
def make_context(cluster, settings):
    """Build a RunContext against the fake cluster; remember to close its sessions."""
    opened: List[RunContext] = []

    def _make(answers=(), config_text: str = DEMO_CONFIG, targets=DEFAULT_CONSTRAINT_TARGETS) -> RunContext:
        config = parse_config_text(config_text)
        connector = Connector(config.profile, cluster.connect)
        ctx = RunContext(
            config=config,
            settings=settings,
            connector=connector,
            maintenance=connector.session(settings.maintenance_db),
            target=connector.session(),
            confirmer=ScriptedConfirmer(answers),
            constraint_targets=list(targets),
        )
        opened.append(ctx)
        return ctx

    yield _make
    for ctx in opened:
        ctx.maintenance.close()
        ctx.target.close()


@pytest.fixture
def existing_demo(cluster) -> FakeDatabase:
    """Database `alkis` with PostGIS and a populated `demo` schema (3 tables)."""
    db = FakeDatabase(extensions={"postgis"})
    cluster.databases["alkis"] = db
    db.schemas["demo"] = {}
    db.add_table("demo", "ax_flurstueck", rows=10)
    db.add_table("demo", "ax_anschrift", {"gml_id": False, "ort_post": False}, rows=4)
    db.add_table("demo", "ax_person", {"gml_id": False, "nachnameoderfirma": False}, rows=7)
    return db
