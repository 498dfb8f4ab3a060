"""
Reads the importer configuration file.

The file is the line-oriented format consumed by the external ALKIS loader:

  PG:dbname=alkis user='alkis' password="secret" host=localhost port=5432
  schema demo
  epsg 25832
  create
  jobs 4
  /data/nas/*.xml.gz

The wrapper only needs the connection and the target schema; every other line
is kept so it can be reported, and is passed to the loader untouched (the
loader reads the same file).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .console import debug, die, warn

PG_PREFIX = "PG:"
DEFAULT_PORT = 5432
DEFAULT_SCHEMA = "public"

_CONN_KEYS = ("dbname", "user", "password", "host", "port")
_CONN_PAIR_RE = re.compile(r"""(\w+)=(?:"([^"]*)"|'([^']*)'|([^\s'"]*))""")
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class ConnectionProfile:
    dbname: str
    user: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: int = DEFAULT_PORT

    def connect_kwargs(self, dbname: Optional[str] = None) -> Dict[str, object]:
        kwargs: Dict[str, object] = {"dbname": dbname or self.dbname, "port": self.port}
        if self.user:
            kwargs["user"] = self.user
        if self.password:
            kwargs["password"] = self.password
        if self.host:
            kwargs["host"] = self.host
        return kwargs

    def describe_host(self) -> str:
        return f"{self.host or 'localhost'}:{self.port}"


@dataclass
class ImportConfig:
    path: Optional[Path]
    profile: ConnectionProfile
    schema: str = DEFAULT_SCHEMA
    schema_explicit: bool = False
    epsg: Optional[str] = None
    create: bool = False
    jobs: Optional[int] = None
    debug: bool = False
    sources: List[str] = field(default_factory=list)
    directives: List[str] = field(default_factory=list)


def parse_connection_string(line: str) -> ConnectionProfile:
    body = line.strip()
    if body.startswith(PG_PREFIX):
        body = body[len(PG_PREFIX):]

    values: Dict[str, str] = {}
    for m in _CONN_PAIR_RE.finditer(body):
        key = m.group(1).lower()
        if key not in _CONN_KEYS or key in values:
            continue
        value = next((g for g in m.groups()[1:] if g is not None), "")
        values[key] = value.strip()

    dbname = values.get("dbname")
    if not dbname:
        die("PG: connection string has no dbname")

    port = DEFAULT_PORT
    raw_port = values.get("port")
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError:
            die(f"Invalid port in PG: connection string: {raw_port!r}")

    return ConnectionProfile(
        dbname=dbname,
        user=values.get("user") or None,
        password=values.get("password") or None,
        host=values.get("host") or None,
        port=port,
    )


def safe_schema_name(raw: str) -> str:
    s = (raw or "").strip()
    if not _IDENT_RE.match(s):
        die(f"Invalid schema name: {raw!r}")
    return s


def parse_config_text(text: str, *, path: Optional[Path] = None) -> ImportConfig:
    pg_line: Optional[str] = None
    schema: Optional[str] = None
    epsg: Optional[str] = None
    create = False
    jobs: Optional[int] = None
    debug_flag = False
    sources: List[str] = []
    directives: List[str] = []

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith(PG_PREFIX):
            if pg_line is None:
                pg_line = line
            continue

        parts = line.split(None, 1)
        keyword = parts[0]
        arg = parts[1].strip() if len(parts) > 1 else ""

        if keyword == "schema" and arg:
            if schema is None:
                schema = arg.split()[0]
        elif keyword == "epsg" and arg:
            epsg = arg
        elif keyword == "create" and not arg:
            create = True
        elif keyword == "jobs" and arg:
            try:
                jobs = int(arg)
            except ValueError:
                warn(f"Ignoring non-numeric jobs value: {arg!r}")
        elif keyword == "debug" and not arg:
            debug_flag = True
        elif len(parts) == 1 and ("/" in keyword or "*" in keyword or "." in keyword):
            sources.append(line)
        else:
            directives.append(line)

    if pg_line is None:
        die("No PG: connection string found in config")

    profile = parse_connection_string(pg_line)
    schema_explicit = schema is not None
    if schema is None:
        schema = DEFAULT_SCHEMA
        warn(f"No schema specified, using '{DEFAULT_SCHEMA}'")

    cfg = ImportConfig(
        path=path,
        profile=profile,
        schema=safe_schema_name(schema),
        schema_explicit=schema_explicit,
        epsg=epsg,
        create=create,
        jobs=jobs,
        debug=debug_flag,
        sources=sources,
        directives=directives,
    )
    debug(f"dbname={profile.dbname!r} user={profile.user!r} host={profile.host!r} port={profile.port}")
    debug(f"schema={cfg.schema!r} epsg={cfg.epsg!r} create={cfg.create} jobs={cfg.jobs} sources={len(cfg.sources)}")
    return cfg


def load_config(path: Path) -> ImportConfig:
    if not path.is_file():
        die(f"Config file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        die(f"Cannot read config file {path}: {e}")
    return parse_config_text(text, path=path)
