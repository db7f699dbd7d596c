from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from identity_engine.errors import ExternalUnavailableError, ValidationError
from identity_engine.git_client import ConfigScope, SubprocessGitClient
from identity_engine.guard.hook_script import HOOK_MARKER, install_guard_hook
from identity_engine.store import Store

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    # Isolate from the developer's global git config.
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")

    path = tmp_path / "project"
    path.mkdir()
    subprocess.run(["git", "init", "-q", str(path)], check=True, capture_output=True)
    return path.resolve()


def test_toplevel_inside_and_outside_repository(repo: Path, tmp_path: Path) -> None:
    git = SubprocessGitClient()
    (repo / "src").mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()

    assert git.toplevel(repo / "src") == repo
    assert git.toplevel(outside) is None
    assert git.toplevel(tmp_path / "missing") is None


def test_local_config_roundtrip(repo: Path) -> None:
    git = SubprocessGitClient()

    assert git.get_config("user.email", cwd=repo, scope=ConfigScope.LOCAL) is None
    git.set_config("user.email", "work@corp.example", cwd=repo, scope=ConfigScope.LOCAL)
    assert git.get_config("user.email", cwd=repo, scope=ConfigScope.LOCAL) == "work@corp.example"
    assert git.get_config("user.email", cwd=repo, scope=ConfigScope.EFFECTIVE) == "work@corp.example"

    git.unset_config("user.email", cwd=repo, scope=ConfigScope.LOCAL)
    git.unset_config("user.email", cwd=repo, scope=ConfigScope.LOCAL)
    assert git.get_config("user.email", cwd=repo, scope=ConfigScope.LOCAL) is None


def test_effective_scope_is_read_only(repo: Path) -> None:
    git = SubprocessGitClient()
    with pytest.raises(ValidationError):
        git.set_config("user.name", "x", cwd=repo, scope=ConfigScope.EFFECTIVE)


def test_hooks_dir_honors_core_hooks_path(repo: Path) -> None:
    git = SubprocessGitClient()
    assert git.hooks_dir(repo) == repo / ".git" / "hooks"

    git.set_config("core.hooksPath", "githooks", cwd=repo, scope=ConfigScope.LOCAL)
    assert git.hooks_dir(repo) == repo / "githooks"


def test_install_guard_hook_into_real_repository(repo: Path, tmp_path: Path) -> None:
    result = install_guard_hook(repo, git=SubprocessGitClient(), data_root=tmp_path / "data")
    assert result.path == repo / ".git" / "hooks" / "pre-commit"
    assert HOOK_MARKER in result.path.read_text(encoding="utf-8")


def test_missing_executable_is_external_unavailable(repo: Path) -> None:
    git = SubprocessGitClient(executable="definitely-not-git-ghs")
    with pytest.raises(ExternalUnavailableError) as excinfo:
        git.get_config("user.name", cwd=repo, scope=ConfigScope.LOCAL)
    assert excinfo.value.capability == "git"


def _git(repo: Path, *args: str, **env: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        env={**os.environ, **env},
        check=False,
    )


def _fake_gh(bin_dir: Path, login: str) -> None:
    bin_dir.mkdir(exist_ok=True)
    script = bin_dir / "gh"
    script.write_text(f"#!/bin/sh\necho {login}\n", encoding="utf-8")
    script.chmod(0o755)


@pytest.mark.skipif(os.name == "nt", reason="hook is a POSIX shell script")
def test_installed_hook_blocks_commit_under_wrong_account(
    repo: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    bin_dir = tmp_path / "bin"
    _fake_gh(bin_dir, "personal")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("PYTHONPATH", str(PROJECT_ROOT))
    monkeypatch.delenv("GHS_SKIP_HOOK", raising=False)

    data_root = tmp_path / "data"
    store = Store.open(data_root)
    store.profiles.create("work", "Work", "work@corp.example")
    store.assign_project(repo.name, "work")
    _git(repo, "config", "user.name", "Work")
    _git(repo, "config", "user.email", "work@corp.example")
    store.install_guard(repo)

    blocked = _git(repo, "commit", "-q", "--allow-empty", "-m", "first")
    assert blocked.returncode != 0
    assert "account_mismatch" in blocked.stdout + blocked.stderr
    assert "ghs switch work" in blocked.stdout + blocked.stderr

    bypassed = _git(repo, "commit", "-q", "--allow-empty", "-m", "first", GHS_SKIP_HOOK="1")
    assert bypassed.returncode == 0, bypassed.stderr

    _fake_gh(bin_dir, "work")
    allowed = _git(repo, "commit", "-q", "--allow-empty", "-m", "second")
    assert allowed.returncode == 0, allowed.stdout + allowed.stderr
    assert _git(repo, "rev-list", "--count", "HEAD").stdout.strip() == "2"
