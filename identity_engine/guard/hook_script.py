"""
Commit guard hook installer.

The installed ``pre-commit`` hook is a small POSIX shell script carrying a
marker line. Only marker-bearing hooks are ever rewritten or removed; a
foreign hook is moved aside to ``pre-commit.ghs-backup`` on install and put
back on uninstall.
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import HookConflictError, HookNotInstalledError, IOFailureError, ValidationError
from ..git_client import GitClient
from ..registry_io import write_text_atomic

logger = logging.getLogger(__name__)

HOOK_NAME = "pre-commit"
BACKUP_SUFFIX = ".ghs-backup"
HOOK_MARKER = "# ghs-guard-hook: managed"
HOOK_MODE = 0o755

_HOOK_TEMPLATE = """#!/bin/sh
{marker}
# Commit identity guard. Set GHS_SKIP_HOOK=1 to bypass it for one commit.

if [ "${{GHS_SKIP_HOOK:-}}" = "1" ]; then
    echo "ghs: commit guard skipped (GHS_SKIP_HOOK=1)" >&2
    exit 0
fi

GHS_PYTHON={python}
GHS_DATA_ROOT_ARG={data_root}

if [ -x "$GHS_PYTHON" ] && "$GHS_PYTHON" -c "import ghs" >/dev/null 2>&1; then
    exec "$GHS_PYTHON" -m ghs guard evaluate --data-root "$GHS_DATA_ROOT_ARG"
fi
if command -v ghs >/dev/null 2>&1; then
    exec ghs guard evaluate --data-root "$GHS_DATA_ROOT_ARG"
fi

echo "ghs: commit guard not run (ghs is not installed); commit allowed" >&2
exit 0
"""


class HookAction(str, Enum):
    INSTALLED = "installed"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class HookInstallResult:
    """
    Attributes
    ----------
    path:
        Hook file written.
    action:
        INSTALLED for a fresh hook, UPDATED when a managed hook was rewritten.
    backup_path:
        Where a foreign hook was moved, if one was.
    """

    path: Path
    action: HookAction
    backup_path: Path | None = None


@dataclass(frozen=True, slots=True)
class HookUninstallResult:
    path: Path
    restored_backup: bool


@dataclass(frozen=True, slots=True)
class HookStatus:
    """
    Attributes
    ----------
    installed:
        A pre-commit hook file exists.
    managed:
        That hook carries the guard marker.
    path:
        Expected hook location.
    backup_present:
        A moved-aside foreign hook exists.
    """

    installed: bool
    managed: bool
    path: Path
    backup_present: bool


def render_hook_script(data_root: Path, python_executable: str | None = None) -> str:
    """Return the hook script bound to an interpreter and data root."""
    python = python_executable or sys.executable or "python3"
    return _HOOK_TEMPLATE.format(
        marker=HOOK_MARKER,
        python=shlex.quote(python),
        data_root=shlex.quote(str(data_root)),
    )


def is_managed_hook(path: Path) -> bool:
    """
    Return True when the file at path carries the guard marker.

    Raises
    ------
    IOFailureError
        If the file exists but cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise IOFailureError(path, f"Failed to read hook: {path} ({exc!s})") from exc
    return HOOK_MARKER in text.splitlines()


def _hook_paths(repo_path: Path, git: GitClient) -> tuple[Path, Path]:
    if git.toplevel(repo_path) is None:
        raise ValidationError("path", str(repo_path), "a directory inside a git repository")
    hooks_dir = git.hooks_dir(repo_path)
    return hooks_dir / HOOK_NAME, hooks_dir / f"{HOOK_NAME}{BACKUP_SUFFIX}"


def _present(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def install_guard_hook(
    repo_path: Path,
    *,
    git: GitClient,
    data_root: Path,
    python_executable: str | None = None,
) -> HookInstallResult:
    """
    Install (or refresh) the guard hook for a repository.

    Raises
    ------
    ValidationError
        If repo_path is not inside a git repository.
    HookConflictError
        If a foreign hook is present and a backup already occupies the
        backup slot.
    IOFailureError
        If the hook or its backup cannot be written.
    """
    hook_path, backup_path = _hook_paths(repo_path, git)
    script = render_hook_script(data_root, python_executable)

    action = HookAction.INSTALLED
    moved_to: Path | None = None
    if _present(hook_path):
        if is_managed_hook(hook_path):
            action = HookAction.UPDATED
        elif _present(backup_path):
            raise HookConflictError(
                hook_path,
                f"no foreign pre-commit hook while {backup_path.name} already exists; "
                "merge or remove one of them first",
            )
        else:
            try:
                os.replace(hook_path, backup_path)
            except OSError as exc:
                raise IOFailureError(
                    hook_path, f"Failed to move existing hook aside: {hook_path} ({exc!s})"
                ) from exc
            moved_to = backup_path
            logger.info("Moved existing pre-commit hook to %s", backup_path)

    write_text_atomic(hook_path, script, mode=HOOK_MODE)
    logger.info("Guard hook %s at %s", action.value, hook_path)
    return HookInstallResult(path=hook_path, action=action, backup_path=moved_to)


def uninstall_guard_hook(repo_path: Path, *, git: GitClient) -> HookUninstallResult:
    """
    Remove the guard hook and restore a moved-aside hook if there is one.

    Raises
    ------
    HookNotInstalledError
        If no pre-commit hook exists.
    HookConflictError
        If the pre-commit hook was not installed by ghs.
    IOFailureError
        If the hook cannot be removed or the backup cannot be restored.
    """
    hook_path, backup_path = _hook_paths(repo_path, git)
    if not _present(hook_path):
        raise HookNotInstalledError(str(hook_path))
    if not is_managed_hook(hook_path):
        raise HookConflictError(hook_path, "a pre-commit hook installed by ghs")

    restored = False
    try:
        if _present(backup_path):
            os.replace(backup_path, hook_path)
            restored = True
        else:
            hook_path.unlink()
    except OSError as exc:
        raise IOFailureError(hook_path, f"Failed to remove guard hook: {hook_path} ({exc!s})") from exc

    logger.info("Guard hook removed from %s%s", hook_path, " (previous hook restored)" if restored else "")
    return HookUninstallResult(path=hook_path, restored_backup=restored)


def guard_hook_status(repo_path: Path, *, git: GitClient) -> HookStatus:
    """Report whether the guard hook is installed for a repository."""
    hook_path, backup_path = _hook_paths(repo_path, git)
    installed = _present(hook_path)
    return HookStatus(
        installed=installed,
        managed=installed and is_managed_hook(hook_path),
        path=hook_path,
        backup_present=_present(backup_path),
    )
