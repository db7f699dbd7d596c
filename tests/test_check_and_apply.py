from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeAccounts, FakeGit, FakeProbe, write_private_key
from identity_engine.data_models import LinkMode
from identity_engine.git_client import ConfigScope
from identity_engine.links.engine import SkipReason, SwitchStatus
from identity_engine.store import Store
from identity_engine.switching import SSH_COMMAND_KEY, ssh_command_for


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GHS_AUTO_SWITCH", raising=False)


def _setup(tmp_path: Path) -> tuple[Store, FakeGit, Path]:
    git = FakeGit()
    store = Store.open(tmp_path / "data", git=git, accounts=FakeAccounts("work"), key_probe=FakeProbe())
    store.profiles.create("work", "Work Person", "work@corp.example")
    repo = git.add_repo(tmp_path / "code" / "corp-app")
    return store, git, repo


def test_no_link_is_no_match(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    decision = store.links.check_and_apply(repo)
    assert decision.status is SwitchStatus.NO_MATCH
    assert git.writes == []


def test_always_link_applies_to_repository_scope(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    store.links.link(tmp_path / "code", "work", LinkMode.ALWAYS)

    decision = store.links.check_and_apply(repo / "src")

    assert decision.status is SwitchStatus.APPLIED
    assert decision.applied is not None
    assert decision.applied.scope is ConfigScope.LOCAL
    assert decision.applied.repository == repo
    assert git.local[repo]["user.name"] == "Work Person"
    assert git.local[repo]["user.email"] == "work@corp.example"
    assert SSH_COMMAND_KEY not in git.local[repo]
    assert git.global_config == {}


def test_second_check_is_already_active(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    store.links.link(repo, "work")
    store.links.check_and_apply(repo)
    writes = len(git.writes)

    decision = store.links.check_and_apply(repo)

    assert decision.status is SwitchStatus.SKIPPED
    assert decision.reason is SkipReason.ALREADY_ACTIVE
    assert len(git.writes) == writes


def test_never_link_is_skipped(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    store.links.link(repo, "work", LinkMode.NEVER)
    decision = store.links.check_and_apply(repo)
    assert decision.status is SwitchStatus.SKIPPED
    assert decision.reason is SkipReason.MODE_NEVER
    assert git.writes == []


def test_ask_link_needs_confirmation_without_writing(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    store.links.link(repo, "work", LinkMode.ASK)

    decision = store.links.check_and_apply(repo)

    assert decision.status is SwitchStatus.NEEDS_CONFIRMATION
    assert decision.profile is not None and decision.profile.username == "work"
    assert git.writes == []


def test_auto_switch_disabled_skips(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    store.links.link(repo, "work")
    store.set_auto_switch(False)

    decision = store.links.check_and_apply(repo)

    assert decision.status is SwitchStatus.SKIPPED
    assert decision.reason is SkipReason.AUTO_SWITCH_DISABLED
    assert git.writes == []


def test_auto_switch_env_override_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store, _git, repo = _setup(tmp_path)
    store.links.link(repo, "work")
    store.set_auto_switch(False)
    monkeypatch.setenv("GHS_AUTO_SWITCH", "1")

    assert store.links.check_and_apply(repo).status is SwitchStatus.APPLIED


def test_outside_repository_applies_globally(tmp_path: Path) -> None:
    store, git, _repo = _setup(tmp_path)
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    store.links.link(scratch, "work")

    decision = store.links.check_and_apply(scratch)

    assert decision.applied is not None
    assert decision.applied.scope is ConfigScope.GLOBAL
    assert git.global_config["user.email"] == "work@corp.example"


def test_valid_key_sets_ssh_command(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    key = write_private_key(tmp_path / "keys" / "id_work")
    store.profiles.update("work", key_path=str(key))

    result = store.apply_profile("work", repo)

    assert result.ssh_command == ssh_command_for(key)
    assert git.local[repo][SSH_COMMAND_KEY] == f"ssh -i {key} -o IdentitiesOnly=yes"


def test_missing_key_is_a_warning_and_clears_ssh_command(tmp_path: Path) -> None:
    store, git, repo = _setup(tmp_path)
    git.local[repo][SSH_COMMAND_KEY] = "ssh -i /old/key -o IdentitiesOnly=yes"
    store.profiles.update("work", key_path=str(tmp_path / "keys" / "gone"))

    result = store.apply_profile("work", repo)

    assert result.ssh_command is None
    assert any("not found" in warning for warning in result.warnings)
    assert SSH_COMMAND_KEY not in git.local[repo]
    assert git.local[repo]["user.email"] == "work@corp.example"


def test_ssh_command_quotes_paths_with_spaces() -> None:
    assert ssh_command_for(Path("/home/me/my keys/id")) == "ssh -i '/home/me/my keys/id' -o IdentitiesOnly=yes"
