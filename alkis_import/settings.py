from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_IMPORTER = "alkis-import.sh"
DEFAULT_MAINTENANCE_DB = "postgres"
DEFAULT_ADMIN_USER = "postgres"


def _env(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    importer: str = DEFAULT_IMPORTER
    maintenance_db: str = DEFAULT_MAINTENANCE_DB
    admin_user: str = DEFAULT_ADMIN_USER
    admin_password: Optional[str] = None
    relax_columns: Optional[str] = None
    log_file: Optional[str] = None


def load_settings(dotenv_path: Optional[Path] = None) -> Settings:
    """
    Read runtime settings from the environment.

    A `.env` file in the working directory (or `dotenv_path`) is loaded first;
    variables already set in the environment win.
    """
    if dotenv_path is not None and dotenv_path.exists():
        load_dotenv(dotenv_path=dotenv_path)
    else:
        load_dotenv(find_dotenv(usecwd=True))

    return Settings(
        importer=_env("ALKIS_IMPORTER") or DEFAULT_IMPORTER,
        maintenance_db=_env("ALKIS_MAINTENANCE_DB") or DEFAULT_MAINTENANCE_DB,
        admin_user=_env("ALKIS_ADMIN_USER") or DEFAULT_ADMIN_USER,
        admin_password=_env("ALKIS_ADMIN_PASSWORD"),
        relax_columns=_env("ALKIS_RELAX_COLUMNS"),
        log_file=_env("ALKIS_LOG_FILE"),
    )
