"""
Console output for the import wrapper.

Everything the wrapper prints goes through these helpers so that verbose runs
can tee the whole session into a log file.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO

VERBOSE = False
_log_file: Optional[TextIO] = None
_log_path: Optional[Path] = None


def set_verbose(enabled: bool) -> None:
    global VERBOSE
    VERBOSE = bool(enabled)


def open_log_file(path: Path) -> Path:
    global _log_file, _log_path
    close_log_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    _log_file = path.open("w", encoding="utf-8")
    _log_path = path
    return path


def close_log_file() -> None:
    global _log_file, _log_path
    if _log_file is not None:
        try:
            _log_file.close()
        finally:
            _log_file = None
            _log_path = None


def log_path() -> Optional[Path]:
    return _log_path


def emit(line: str = "", *, stream: Optional[TextIO] = None) -> None:
    print(line, file=stream or sys.stdout, flush=True)
    if _log_file is not None:
        _log_file.write(line + "\n")
        _log_file.flush()


def log_only(line: str) -> None:
    if _log_file is not None:
        _log_file.write(line + "\n")
        _log_file.flush()


def info(msg: str) -> None:
    emit(f"[INFO] {msg}")


def success(msg: str) -> None:
    emit(f"✓ {msg}")


def warn(msg: str) -> None:
    emit(f"[WARN] {msg}", stream=sys.stderr)


def error(msg: str) -> None:
    emit(f"[ERROR] {msg}", stream=sys.stderr)


def die(msg: str) -> None:
    error(msg)
    raise SystemExit(1)


def debug(msg: str) -> None:
    # stderr, so it never ends up in captured command output
    if VERBOSE:
        emit(f"[DEBUG] {msg}", stream=sys.stderr)


def banner(title: str) -> None:
    emit("=" * 40)
    emit(f"  {title}")
    emit("=" * 40)
