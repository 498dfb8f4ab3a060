"""
What to do when the target schema already holds tables.

The operator picks one of three options. Dropping the schema additionally
requires typing back a code generated for this run only; there is no flag or
setting that skips it.
"""

from __future__ import annotations

import enum
import secrets

from .console import die, emit, info, success, warn
from .context import RunContext
from .db import q_ident, require
from .probe import Prober
from .provision import grant_default_privileges

CODE_WIDTH = 4

OPTION_CONTINUE = "1"
OPTION_RESET = "2"
OPTION_CANCEL = "3"


class ConflictDecision(enum.Enum):
    CONTINUE = "continue-append"
    RESET = "destructive-reset"
    ABORT = "abort"


def generate_confirmation_code(width: int = CODE_WIDTH) -> str:
    return f"{secrets.randbelow(10 ** width):0{width}d}"


def reset_schema(ctx: RunContext) -> None:
    schema = ctx.schema
    emit("")
    emit("Dropping schema...")
    require(ctx.target, f"DROP SCHEMA {q_ident(schema)} CASCADE", what="Dropping schema")
    success("Schema dropped")

    emit("Recreating schema...")
    require(ctx.target, f"CREATE SCHEMA {q_ident(schema)}", what="Recreating schema")
    success(f"Schema '{schema}' recreated")

    grant_default_privileges(ctx.target, schema, ctx.profile.user)


def resolve_conflict(ctx: RunContext) -> ConflictDecision:
    """
    Decide how to treat an existing schema.

    An empty schema needs no decision and continues. Otherwise the operator
    chooses; an unknown answer or a wrong reset code ends the run with exit 1.
    `ConflictDecision.ABORT` is returned, not raised, so the caller can exit
    cleanly.
    """
    schema = ctx.schema
    table_count = Prober(ctx.target).count_tables(schema)
    if table_count is None:
        die(f"Cannot tell whether schema '{schema}' already contains tables.")
    if table_count == 0:
        return ConflictDecision.CONTINUE

    emit("")
    warn(f"Schema '{schema}' contains {table_count} tables")
    warn("Importing will ADD data to existing tables or FAIL on conflicts")
    emit("")
    emit("Options:")
    emit("  1) Continue anyway (append/update existing data)")
    emit("  2) Drop and recreate schema (DELETE ALL EXISTING DATA)")
    emit("  3) Cancel")
    emit("")

    choice = ctx.confirmer.choose("Choose option (1/2/3): ", (OPTION_CONTINUE, OPTION_RESET, OPTION_CANCEL))
    if choice == OPTION_CONTINUE:
        info("Continuing with existing schema...")
        return ConflictDecision.CONTINUE
    if choice == OPTION_CANCEL:
        info("Import cancelled")
        return ConflictDecision.ABORT
    if choice != OPTION_RESET:
        die("Invalid option")

    emit("")
    warn(f"WARNING: This will permanently delete ALL data in schema '{schema}'")
    code = generate_confirmation_code()
    emit("")
    emit(f"To confirm deletion, enter this code: {code}")
    if not ctx.confirmer.confirm_with_code("Enter code: ", code):
        die("Code does not match. Aborting.")

    reset_schema(ctx)
    return ConflictDecision.RESET
