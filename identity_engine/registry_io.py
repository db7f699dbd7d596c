"""
Line-oriented registry I/O.

Registries are small text files with one record per line. Every mutation is a
full rewrite: the new content is written to a temporary file in the same
directory, flushed to disk, then renamed over the original with os.replace.

Design constraints
------------------
- Readers never observe a partially written registry.
- A crash or failure before the rename leaves the original untouched.
- Concurrent writers race; the last rename wins.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from .errors import IOFailureError

logger = logging.getLogger(__name__)


def read_registry_lines(path: Path) -> list[str]:
    """
    Read registry lines without line terminators.

    Blank lines are preserved as empty strings so that reported line numbers
    match what a user sees in an editor. A missing file reads as empty. Only LF
    (optionally preceded by CR) ends a line; other Unicode line boundaries are
    ordinary field content.

    Raises
    ------
    IOFailureError
        If the file exists but cannot be read or decoded.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        raise IOFailureError(path, f"Failed to read registry: {path} ({exc!s})") from exc
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _temp_path_for(path: Path) -> Path:
    # Per-process name so concurrent writers never share a temp file.
    return path.with_name(f".{path.name}.{os.getpid()}.tmp")


def write_text_atomic(path: Path, text: str, *, mode: int | None = None) -> None:
    """
    Atomically replace a file's content.

    When mode is given it is applied to the temp file before the rename, so the
    final file never exists with other permission bits.

    Raises
    ------
    IOFailureError
        If the temp file cannot be written or renamed. The original file is
        left as it was and the temp file is removed on a best-effort basis.
    """
    path = path.expanduser()
    temp_path = _temp_path_for(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with temp_path.open("w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except OSError as exc:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise IOFailureError(path, f"Failed to write registry: {path} ({exc!s})") from exc


def write_registry_lines(path: Path, lines: Sequence[str]) -> None:
    """Atomically rewrite a registry with the given lines."""
    text = "".join(f"{line}\n" for line in lines)
    write_text_atomic(path, text)
    logger.debug("Rewrote %s (%d records)", path, len(lines))
