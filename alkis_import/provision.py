"""
Database, extension and schema provisioning.

Runs read-then-act over database -> PostGIS -> schema. Nothing here drops
anything; creating a missing database or schema needs the operator's consent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import psycopg2

from .console import debug, die, emit, error, info, success, warn
from .context import RunContext
from .db import PgSession, attempt, error_text, q_ident, require, role_ref, table_ref
from .probe import ProbeKind, ProbeResult, Prober

POSTGIS = "postgis"
IMPORT_LOG_TABLE = "alkis_importe"


@dataclass(frozen=True)
class ProvisionResult:
    database_created: bool
    schema_created: bool


def create_database(ctx: RunContext) -> None:
    name = ctx.profile.dbname
    try:
        ctx.maintenance.execute(f"CREATE DATABASE {q_ident(name)}")
        return
    except psycopg2.Error as e:
        debug(f"CREATE DATABASE as '{ctx.profile.user or 'login role'}' failed ({error_text(e)}), trying admin connection...")

    admin_user = ctx.settings.admin_user
    owner = ""
    if ctx.profile.user and ctx.profile.user != admin_user:
        owner = f" OWNER {q_ident(ctx.profile.user)}"
    with ctx.connector.session(
        ctx.settings.maintenance_db,
        user=admin_user,
        password=ctx.settings.admin_password or ctx.profile.password,
    ) as admin:
        try:
            admin.execute(f"CREATE DATABASE {q_ident(name)}{owner}")
        except psycopg2.Error as e:
            error(f"Failed to create database. You may need superuser privileges. ({error_text(e)})")
            info(f'Try: createdb -h {ctx.profile.host or "localhost"} -U {admin_user} "{name}"')
            raise SystemExit(1)


def enable_extension(session: PgSession, extension: str = POSTGIS) -> None:
    require(
        session,
        f"CREATE EXTENSION IF NOT EXISTS {q_ident(extension)}",
        what=f"Enabling extension {extension}",
        hint=f'psql -U postgres -d "{session.dbname}" -c "CREATE EXTENSION {extension};"',
    )
    success("PostGIS extension enabled" if extension == POSTGIS else f"Extension {extension} enabled")


def ensure_database(ctx: RunContext) -> bool:
    """Make sure the target database exists. Returns True when it was created in this run."""
    name = ctx.profile.dbname
    emit("Checking database...")
    state = Prober(ctx.maintenance).exists(ProbeKind.DATABASE, name)
    if state is ProbeResult.FAILED:
        die(f"Cannot tell whether database '{name}' exists; check host, port and credentials.")
    if state is ProbeResult.PRESENT:
        success(f"Database '{name}' exists")
        return False

    warn(f"Database '{name}' does not exist")
    emit("")
    if not ctx.confirmer.confirm(f"Create database '{name}'?"):
        die("Cannot proceed without database")

    emit("Creating database...")
    create_database(ctx)
    success(f"Database '{name}' created")
    return True


def ensure_extension(ctx: RunContext, extension: str = POSTGIS) -> None:
    state = Prober(ctx.target).exists(ProbeKind.EXTENSION, extension)
    if state is ProbeResult.PRESENT:
        debug(f"{extension} already enabled")
        return
    if state is ProbeResult.ABSENT:
        warn(f"{extension} not enabled, enabling now...")
    else:
        warn(f"Could not check {extension}; issuing CREATE EXTENSION IF NOT EXISTS anyway")
    enable_extension(ctx.target, extension)


def grant_default_privileges(session: PgSession, schema: str, user: Optional[str]) -> None:
    emit("Setting up permissions...")
    role = role_ref(user)
    for sql in (
        f"GRANT ALL ON SCHEMA {q_ident(schema)} TO {role}",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA {q_ident(schema)} GRANT ALL ON TABLES TO {role}",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA {q_ident(schema)} GRANT ALL ON SEQUENCES TO {role}",
    ):
        require(session, sql, what="Granting schema privileges")
    success("Permissions configured")


def grant_blanket_privileges(session: PgSession, schema: str, user: Optional[str], *, strict: bool) -> bool:
    """GRANT ALL on every existing table and sequence; default privileges only cover later objects."""
    role = role_ref(user)
    ok = True
    for kind in ("TABLES", "SEQUENCES"):
        sql = f"GRANT ALL ON ALL {kind} IN SCHEMA {q_ident(schema)} TO {role}"
        if strict:
            require(session, sql, what=f"Granting privileges on all {kind.lower()}")
        else:
            ok = attempt(session, sql, what=f"Granting privileges on all {kind.lower()}") and ok
    return ok


def ensure_import_log_table(session: PgSession, schema: str, *, strict: bool) -> bool:
    if Prober(session).exists(ProbeKind.TABLE, schema, IMPORT_LOG_TABLE) is ProbeResult.PRESENT:
        return True
    emit("Creating import logging table...")
    sql = (
        f"CREATE TABLE IF NOT EXISTS {table_ref(schema, IMPORT_LOG_TABLE)} "
        "(filename text, datadate text, imported_at timestamp DEFAULT now())"
    )
    if strict:
        require(session, sql, what="Creating import logging table")
    elif not attempt(session, sql, what="Creating import logging table"):
        return False
    success("Import logging table created")
    return True


def ensure_schema(ctx: RunContext) -> bool:
    """Make sure the target schema exists. Returns True when it was created in this run."""
    schema = ctx.schema
    emit("")
    emit("Checking schema...")
    state = Prober(ctx.target).exists(ProbeKind.SCHEMA, schema)
    if state is ProbeResult.FAILED:
        die(f"Cannot tell whether schema '{schema}' exists in database '{ctx.profile.dbname}'.")
    if state is ProbeResult.PRESENT:
        success(f"Schema '{schema}' exists")
        return False

    warn(f"Schema '{schema}' does not exist")
    emit("")
    if not ctx.confirmer.confirm(f"Create schema '{schema}'?"):
        die("Cannot proceed without schema")

    emit("Creating schema...")
    require(
        ctx.target,
        f"CREATE SCHEMA {q_ident(schema)}",
        what="Creating schema",
        hint=(
            f'psql -h {ctx.profile.host or "localhost"} -U postgres -d "{ctx.profile.dbname}" '
            f'-c "CREATE SCHEMA {schema} AUTHORIZATION {ctx.profile.user or "<user>"};"'
        ),
    )
    success(f"Schema '{schema}' created")
    grant_default_privileges(ctx.target, schema, ctx.profile.user)
    return True


def provision(ctx: RunContext) -> ProvisionResult:
    database_created = ensure_database(ctx)
    if database_created:
        emit("Enabling PostGIS extension...")
        enable_extension(ctx.target)
    else:
        ensure_extension(ctx)
    schema_created = ensure_schema(ctx)
    return ProvisionResult(database_created=database_created, schema_created=schema_created)
