"""
Runs the external ALKIS loader (norGIS `alkis-import.sh` or compatible).

The loader reads the same configuration file the wrapper was given. Its exit
status is returned as-is; partial imports are the loader's to report.
"""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from .config import ConnectionProfile
from .console import debug, emit, error

EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def resolve_importer(importer: str, config_path: Optional[Path] = None) -> str:
    """
    Locate the loader program.

    Paths are taken as given. A bare name is looked up next to the config file
    first, then on PATH; if neither has it the name is returned unchanged and
    launching it will fail.
    """
    if os.sep in importer or (os.altsep and os.altsep in importer):
        return str(Path(importer).expanduser())
    if config_path is not None:
        candidate = config_path.resolve().parent / importer
        if candidate.is_file():
            return str(candidate)
    found = shutil.which(importer)
    return found or importer


def build_loader_command(importer: str, config_path: Path) -> List[str]:
    return [importer, str(config_path)]


def loader_env(profile: ConnectionProfile, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Child environment for the loader; the wrapper's own environment is left alone."""
    env = dict(os.environ if base is None else base)
    if profile.password:
        env["PGPASSWORD"] = profile.password
    return env


def _normalize_exit(returncode: int) -> int:
    # killed by a signal: report it the way a shell would
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def run_loader(cmd: List[str], *, env: Dict[str, str], tee: bool = False) -> int:
    debug(f"Running: {' '.join(cmd)}")
    try:
        if not tee:
            return _normalize_exit(subprocess.run(cmd, env=env).returncode)

        with subprocess.Popen(
            cmd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
        ) as proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                emit(line.rstrip("\n"))
            returncode = proc.wait()
    except FileNotFoundError:
        error(f"Loader not found: {cmd[0]}")
        return EXIT_NOT_FOUND
    except PermissionError:
        error(f"Loader is not executable: {cmd[0]}")
        return EXIT_NOT_EXECUTABLE
    except KeyboardInterrupt:
        error("Import interrupted")
        return 128 + signal.SIGINT
    return _normalize_exit(returncode)
