from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import psycopg2

from .config import ConnectionProfile
from .console import debug, die, error, info, warn


def q_ident(ident: str) -> str:
    if not ident or "\x00" in ident:
        die(f"Unsafe identifier: {ident!r}")
    return '"' + ident.replace('"', '""') + '"'


def table_ref(schema: str, table: str) -> str:
    return f"{q_ident(schema)}.{q_ident(table)}"


def role_ref(user: Optional[str]) -> str:
    # no user in the PG: line means libpq connected as the login role
    return q_ident(user) if user else "CURRENT_USER"


class PgSession:
    """
    One database connection for the duration of a `with` block.

    The connection is opened on first use, so a session for a database that
    does not exist yet can be set up before it is created. Statements run in
    autocommit mode: every probe and every DDL statement stands on its own.
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        dbname: Optional[str] = None,
        *,
        user: Optional[str] = None,
        password: Optional[str] = None,
        connect: Optional[Callable[..., Any]] = None,
    ):
        self.profile = profile
        self.dbname = dbname or profile.dbname
        self._user = user
        self._password = password
        self._connect = connect or psycopg2.connect
        self.conn = None

    def __enter__(self) -> "PgSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_conn(self):
        if self.conn is None:
            kwargs = self.profile.connect_kwargs(self.dbname)
            if self._user:
                kwargs["user"] = self._user
            if self._password:
                kwargs["password"] = self._password
            debug(f"Connecting: dbname={self.dbname} user={kwargs.get('user')} host={kwargs.get('host')} port={kwargs.get('port')}")
            conn = self._connect(**kwargs)
            conn.autocommit = True
            self.conn = conn
        return self.conn

    def scalar(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[str]:
        """Run `sql` and return the first column of the first row as text (None when no row)."""
        conn = self._ensure_conn()
        debug(f"[{self.dbname}] {sql.strip()} params={list(params or [])}")
        with conn.cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        result = None if row is None or row[0] is None else str(row[0])
        debug(f"Result: {result!r}")
        return result

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        conn = self._ensure_conn()
        debug(f"[{self.dbname}] {sql.strip()}")
        with conn.cursor() as cur:
            cur.execute(sql, params)

    def close(self) -> None:
        if self.conn is not None:
            try:
                self.conn.close()
            except psycopg2.Error:
                pass
            finally:
                self.conn = None


class Connector:
    """Opens sessions against the cluster described by one connection profile."""

    def __init__(self, profile: ConnectionProfile, connect: Optional[Callable[..., Any]] = None):
        self.profile = profile
        self._connect = connect

    def session(self, dbname: Optional[str] = None, *, user: Optional[str] = None, password: Optional[str] = None) -> PgSession:
        return PgSession(self.profile, dbname, user=user, password=password, connect=self._connect)


def error_text(e: BaseException) -> str:
    text = str(e).strip()
    return text.splitlines()[0] if text else type(e).__name__


def attempt(session: PgSession, sql: str, *, what: str) -> bool:
    """Best-effort statement: report a failure and carry on."""
    try:
        session.execute(sql)
    except psycopg2.Error as e:
        warn(f"{what} failed: {error_text(e)}")
        return False
    return True


def require(session: PgSession, sql: str, *, what: str, hint: Optional[str] = None) -> None:
    """Statement that must succeed; anything else ends the run."""
    try:
        session.execute(sql)
    except psycopg2.Error as e:
        error(f"{what} failed: {error_text(e)}")
        if hint:
            info(f"Try: {hint}")
        raise SystemExit(1)
