from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from .console import banner, emit, success
from .constraints import reconcile_constraints
from .context import RunContext
from .probe import ProbeKind, ProbeResult, Prober
from .provision import ensure_import_log_table, grant_blanket_privileges

KEY_TABLES = (
    "ax_flurstueck",
    "ax_gebaeude",
    "ax_person",
    "ax_anschrift",
    "ax_buchungsblatt",
    "ax_gemarkung",
    "ax_gemeinde",
)


@dataclass
class ImportOutcome:
    loader_exit_code: int
    table_count: Optional[int] = None
    row_counts: Dict[str, int] = field(default_factory=dict)


def reconcile_and_report(ctx: RunContext, loader_exit_code: int) -> ImportOutcome:
    """
    Post-import pass. Runs whatever the loader's exit status was; every step
    is best-effort so a broken import still gets its summary.
    """
    emit("")
    emit("Applying post-import constraint fixes...")
    reconcile_constraints(ctx.target, ctx.schema, ctx.constraint_targets, strict=False)
    ensure_import_log_table(ctx.target, ctx.schema, strict=False)
    grant_blanket_privileges(ctx.target, ctx.schema, ctx.profile.user, strict=False)
    success("Post-import fixes applied")

    outcome = ImportOutcome(loader_exit_code=loader_exit_code)
    prober = Prober(ctx.target)

    emit("")
    banner("Import Summary")
    outcome.table_count = prober.count_tables(ctx.schema)
    emit(f"Tables in schema '{ctx.schema}': {outcome.table_count if outcome.table_count is not None else '?'}")

    emit("")
    emit("Row counts for key tables:")
    for table in KEY_TABLES:
        if prober.exists(ProbeKind.TABLE, ctx.schema, table) is not ProbeResult.PRESENT:
            continue
        count = prober.count_rows(ctx.schema, table)
        if count is None:
            continue
        outcome.row_counts[table] = count
        emit(f"  {table + ':':<25} {count} rows")

    return outcome
