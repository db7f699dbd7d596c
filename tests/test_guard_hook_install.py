from __future__ import annotations

import os
from pathlib import Path

import pytest

from fakes import FakeGit
from identity_engine.errors import HookConflictError, HookNotInstalledError, ValidationError
from identity_engine.guard.hook_script import (
    HOOK_MARKER,
    HookAction,
    guard_hook_status,
    install_guard_hook,
    render_hook_script,
    uninstall_guard_hook,
)

FOREIGN_HOOK = "#!/bin/sh\necho lint\n"


def _repo(tmp_path: Path) -> tuple[FakeGit, Path]:
    git = FakeGit()
    return git, git.add_repo(tmp_path / "repo")


def _install(git: FakeGit, repo: Path, tmp_path: Path):
    return install_guard_hook(
        repo, git=git, data_root=tmp_path / "data", python_executable="/opt/py/bin/python3"
    )


def test_script_carries_marker_bypass_and_fallbacks(tmp_path: Path) -> None:
    script = render_hook_script(tmp_path / "my data", "/opt/py/bin/python3")

    assert script.startswith("#!/bin/sh\n")
    assert HOOK_MARKER in script.splitlines()
    assert '"${GHS_SKIP_HOOK:-}" = "1"' in script
    assert "GHS_PYTHON=/opt/py/bin/python3" in script
    assert f"GHS_DATA_ROOT_ARG='{tmp_path / 'my data'}'" in script
    assert '-m ghs guard evaluate --data-root "$GHS_DATA_ROOT_ARG"' in script
    assert "command -v ghs" in script
    assert script.rstrip().endswith("exit 0")


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_install_writes_executable_hook(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)

    result = _install(git, repo, tmp_path)

    hook = repo / ".git" / "hooks" / "pre-commit"
    assert result.path == hook
    assert result.action is HookAction.INSTALLED
    assert result.backup_path is None
    assert hook.stat().st_mode & 0o777 == 0o755
    assert HOOK_MARKER in hook.read_text(encoding="utf-8")


def test_reinstall_updates_managed_hook_in_place(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    _install(git, repo, tmp_path)

    again = _install(git, repo, tmp_path)

    assert again.action is HookAction.UPDATED
    assert not (repo / ".git" / "hooks" / "pre-commit.ghs-backup").exists()


def test_foreign_hook_is_backed_up_and_restored(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    hooks = repo / ".git" / "hooks"
    (hooks / "pre-commit").write_text(FOREIGN_HOOK, encoding="utf-8")

    result = _install(git, repo, tmp_path)

    assert result.backup_path == hooks / "pre-commit.ghs-backup"
    assert result.backup_path.read_text(encoding="utf-8") == FOREIGN_HOOK

    status = guard_hook_status(repo, git=git)
    assert status.installed and status.managed and status.backup_present

    removed = uninstall_guard_hook(repo, git=git)

    assert removed.restored_backup
    assert (hooks / "pre-commit").read_text(encoding="utf-8") == FOREIGN_HOOK
    assert not (hooks / "pre-commit.ghs-backup").exists()


def test_foreign_hook_with_occupied_backup_slot_conflicts(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    hooks = repo / ".git" / "hooks"
    (hooks / "pre-commit").write_text(FOREIGN_HOOK, encoding="utf-8")
    (hooks / "pre-commit.ghs-backup").write_text("#!/bin/sh\necho older\n", encoding="utf-8")

    with pytest.raises(HookConflictError) as excinfo:
        _install(git, repo, tmp_path)

    assert excinfo.value.path == hooks / "pre-commit"
    assert (hooks / "pre-commit").read_text(encoding="utf-8") == FOREIGN_HOOK


def test_uninstall_without_backup_removes_hook(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    _install(git, repo, tmp_path)

    removed = uninstall_guard_hook(repo, git=git)

    assert not removed.restored_backup
    assert not guard_hook_status(repo, git=git).installed


def test_uninstall_refuses_foreign_hook(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    hook = repo / ".git" / "hooks" / "pre-commit"
    hook.write_text(FOREIGN_HOOK, encoding="utf-8")

    with pytest.raises(HookConflictError):
        uninstall_guard_hook(repo, git=git)
    assert hook.read_text(encoding="utf-8") == FOREIGN_HOOK


def test_uninstall_absent_hook_raises(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    with pytest.raises(HookNotInstalledError):
        uninstall_guard_hook(repo, git=git)


def test_install_outside_repository_is_rejected(tmp_path: Path) -> None:
    git, _repo_path = _repo(tmp_path)
    outside = tmp_path / "plain"
    outside.mkdir()
    with pytest.raises(ValidationError):
        _install(git, outside, tmp_path)


def test_status_reports_foreign_hook(tmp_path: Path) -> None:
    git, repo = _repo(tmp_path)
    (repo / ".git" / "hooks" / "pre-commit").write_text(FOREIGN_HOOK, encoding="utf-8")

    status = guard_hook_status(repo, git=git)

    assert status.installed
    assert not status.managed
    assert not status.backup_present
