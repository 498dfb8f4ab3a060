"""
Relaxes NOT NULL constraints the ALKIS schema scripts declare but real NAS
data violates (addresses without a postal town, persons without a surname).

The pass runs before the loader, for tables kept from an earlier import, and
again afterwards, because the loader's `create` step recreates the tables with
the strict definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .console import debug, die, emit, success, warn
from .db import PgSession, attempt, q_ident, require, table_ref
from .probe import ProbeKind, ProbeResult, Prober


@dataclass(frozen=True)
class ConstraintTarget:
    table: str
    column: str
    nullable: bool = True

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


DEFAULT_CONSTRAINT_TARGETS = (
    ConstraintTarget("ax_anschrift", "ort_post"),
    ConstraintTarget("ax_person", "nachnameoderfirma"),
)


def parse_constraint_targets(specs: Iterable[str]) -> List[ConstraintTarget]:
    """Parse `table.column` entries; each entry may itself be a comma-separated list."""
    out: List[ConstraintTarget] = []
    for spec in specs:
        for item in (spec or "").split(","):
            item = item.strip()
            if not item:
                continue
            table, sep, column = item.partition(".")
            if not sep or not table.strip() or not column.strip() or "." in column:
                die(f"Invalid constraint target {item!r}, expected TABLE.COLUMN")
            target = ConstraintTarget(table.strip(), column.strip())
            if target not in out:
                out.append(target)
    return out


def _relax(session: PgSession, schema: str, target: ConstraintTarget, *, strict: bool) -> bool:
    sql = f"ALTER TABLE {table_ref(schema, target.table)} ALTER COLUMN {q_ident(target.column)} DROP NOT NULL"
    what = f"Relaxing constraint on {target}"
    if strict:
        require(session, sql, what=what)
        return True
    return attempt(session, sql, what=what)


def reconcile_constraints(
    session: PgSession,
    schema: str,
    targets: Sequence[ConstraintTarget],
    *,
    strict: bool,
) -> List[ConstraintTarget]:
    """
    Drop NOT NULL from every target column that currently has it.

    With `strict`, a check or ALTER that fails ends the run. Otherwise
    failures are reported and the remaining targets are still processed.
    Returns the targets that were relaxed in this call.
    """
    prober = Prober(session)
    relaxed: List[ConstraintTarget] = []

    for target in targets:
        if not target.nullable:
            continue

        table_state = prober.exists(ProbeKind.TABLE, schema, target.table)
        if table_state is ProbeResult.FAILED:
            if strict:
                die(f"Cannot check table {schema}.{target.table}")
            continue
        if table_state is ProbeResult.ABSENT:
            debug(f"{schema}.{target.table} not present, nothing to relax")
            continue

        not_null = prober.exists(ProbeKind.NOT_NULL, schema, target.table, target.column)
        if not_null is ProbeResult.ABSENT:
            if prober.exists(ProbeKind.COLUMN, schema, target.table, target.column) is ProbeResult.ABSENT:
                warn(f"Column {schema}.{target} not found; check the constraint target list")
            continue
        if not_null is ProbeResult.FAILED and strict:
            die(f"Cannot check constraint on {schema}.{target}")

        # a failed check in best-effort mode still tries the ALTER; DROP NOT NULL is idempotent
        emit(f"Relaxing constraint on {target}...")
        if _relax(session, schema, target, strict=strict):
            success("Constraint relaxed")
            relaxed.append(target)

    return relaxed
