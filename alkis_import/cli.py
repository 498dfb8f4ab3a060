#!/usr/bin/env python3
"""
ALKIS import wrapper: prepares the target PostgreSQL/PostGIS database, runs the
ALKIS loader, then repairs and summarises the result.

Usage:
  alkis-import-wrapper alkis_config.txt
  alkis-import-wrapper -v alkis_config.txt     (verbose, output also in import.log)

Stages: database/PostGIS/schema provisioning -> decision on an existing,
non-empty schema -> constraint fixes -> loader -> post-import fixes + summary.
The exit status is the loader's once provisioning succeeded.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from . import console
from .config import load_config
from .conflict import ConflictDecision, resolve_conflict
from .console import banner, die, emit, info, success
from .constraints import DEFAULT_CONSTRAINT_TARGETS, ConstraintTarget, parse_constraint_targets, reconcile_constraints
from .context import RunContext
from .db import Connector
from .loader import build_loader_command, loader_env, resolve_importer, run_loader
from .prompts import Confirmer, TerminalConfirmer
from .provision import ensure_import_log_table, grant_blanket_privileges, provision
from .report import reconcile_and_report
from .settings import Settings, load_settings

LOG_FILE_NAME = "import.log"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alkis-import-wrapper",
        description="Prepare a PostGIS database for an ALKIS import, run the importer and report the result.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help=f"Debug output; everything is also written to {LOG_FILE_NAME}.")
    parser.add_argument("config", nargs="?", help="ALKIS importer configuration file.")
    parser.add_argument("--importer", default=None, help="Loader program (default: $ALKIS_IMPORTER or alkis-import.sh).")
    parser.add_argument(
        "--relax",
        action="append",
        default=[],
        metavar="TABLE.COLUMN",
        help="Column whose NOT NULL constraint is dropped (repeatable; default: $ALKIS_RELAX_COLUMNS or the built-in list).",
    )
    parser.add_argument("--log-file", default=None, help=f"Verbose log path (default: {LOG_FILE_NAME} beside the importer).")
    return parser


def choose_constraint_targets(cli_specs: Sequence[str], settings: Settings) -> List[ConstraintTarget]:
    if cli_specs:
        return parse_constraint_targets(cli_specs)
    if settings.relax_columns:
        return parse_constraint_targets([settings.relax_columns])
    return list(DEFAULT_CONSTRAINT_TARGETS)


def default_log_path(importer: str) -> Path:
    path = Path(importer)
    if path.parent != Path("") and path.parent.is_dir():
        return path.parent / LOG_FILE_NAME
    return Path.cwd() / LOG_FILE_NAME


def prepare_for_loading(ctx: RunContext) -> None:
    emit("")
    emit("Checking for ALKIS tables that need constraint fixes...")
    reconcile_constraints(ctx.target, ctx.schema, ctx.constraint_targets, strict=True)
    ensure_import_log_table(ctx.target, ctx.schema, strict=True)

    emit("")
    emit("Ensuring permissions on all tables...")
    grant_blanket_privileges(ctx.target, ctx.schema, ctx.profile.user, strict=True)
    success("Permissions updated")


def run(
    argv: Optional[Sequence[str]] = None,
    *,
    confirmer: Optional[Confirmer] = None,
    connect: Optional[Callable[..., Any]] = None,
    settings: Optional[Settings] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.config:
        parser.print_usage(sys.stderr)
        die("No config file given. Example: alkis-import-wrapper alkis_config.txt")

    config_path = Path(args.config).expanduser()
    if not config_path.is_file():
        die(f"Config file not found: {config_path}")

    console.set_verbose(args.verbose)
    settings = settings or load_settings()
    importer = resolve_importer(args.importer or settings.importer, config_path)
    constraint_targets = choose_constraint_targets(args.relax, settings)

    if args.verbose:
        console.open_log_file(Path(args.log_file or settings.log_file or default_log_path(importer)).expanduser())
    try:
        return _run(config_path, importer, constraint_targets, settings, confirmer or TerminalConfirmer(), connect)
    finally:
        console.close_log_file()


def _run(
    config_path: Path,
    importer: str,
    constraint_targets: List[ConstraintTarget],
    settings: Settings,
    confirmer: Confirmer,
    connect: Optional[Callable[..., Any]],
) -> int:
    banner("ALKIS Import")
    emit("")
    if console.VERBOSE:
        info("Verbose mode enabled")
        emit("")

    emit("Parsing configuration...")
    config = load_config(config_path)
    profile = config.profile

    emit("")
    info(f"Database: {profile.dbname}")
    info(f"Host: {profile.describe_host()}")
    info(f"User: {profile.user or '(login role)'}")
    info(f"Schema: {config.schema}")
    emit("")

    connector = Connector(profile, connect)
    with connector.session(settings.maintenance_db) as maintenance, connector.session() as target:
        ctx = RunContext(
            config=config,
            settings=settings,
            connector=connector,
            maintenance=maintenance,
            target=target,
            confirmer=confirmer,
            constraint_targets=constraint_targets,
        )

        result = provision(ctx)
        maintenance.close()
        if not result.schema_created:
            decision = resolve_conflict(ctx)
            if decision is ConflictDecision.ABORT:
                raise SystemExit(0)

        prepare_for_loading(ctx)

        emit("")
        banner("Database setup complete!")
        emit("")
        info("Starting ALKIS import...")
        emit("")

        # don't hold an idle connection open for the length of the import
        target.close()
        cmd = build_loader_command(importer, config_path)
        exit_code = run_loader(cmd, env=loader_env(profile), tee=console.VERBOSE)
        if console.log_path() is not None:
            emit("")
            info(f"Full log saved to: {console.log_path()}")

        outcome = reconcile_and_report(ctx, exit_code)

    return outcome.loader_exit_code


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
