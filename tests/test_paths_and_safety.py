from __future__ import annotations

from pathlib import Path

import pytest

from identity_engine.errors import ValidationError
from identity_engine.paths_and_safety import (
    ensure_store_directories,
    is_ancestor_or_self,
    normalize_directory,
    resolve_store_paths,
)


def test_store_paths_resolve_within_data_root(tmp_path: Path) -> None:
    paths = resolve_store_paths(tmp_path / "root")
    ensure_store_directories(paths)

    assert paths.data_root.is_dir()
    for registry in (paths.profiles_file, paths.links_file, paths.projects_file, paths.settings_file):
        assert registry.parent == paths.data_root
        assert not registry.exists()
    assert paths.cache_root == paths.data_root / "cache" / "decisions"


def test_normalize_directory_expands_home_and_strips_trailing_separator(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "code").mkdir()

    assert normalize_directory("~/code/") == (tmp_path / "code").resolve()


def test_normalize_directory_resolves_symlinks(tmp_path: Path) -> None:
    real = tmp_path / "real"
    real.mkdir()
    alias = tmp_path / "alias"
    alias.symlink_to(real, target_is_directory=True)

    assert normalize_directory(alias / "sub") == real.resolve() / "sub"


@pytest.mark.parametrize("bad", ["", "   ", "/tmp/with\ttab", "/tmp/with\nnewline"])
def test_normalize_directory_rejects_unstorable_paths(bad: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize_directory(bad)
    assert excinfo.value.field == "path"


@pytest.mark.parametrize(
    ("ancestor", "candidate", "expected"),
    [
        ("/foo", "/foo", True),
        ("/foo", "/foo/bar", True),
        ("/foo", "/foo-bar", False),
        ("/foo/bar", "/foo", False),
        ("/", "/anything", True),
    ],
)
def test_is_ancestor_or_self_is_component_wise(ancestor: str, candidate: str, expected: bool) -> None:
    assert is_ancestor_or_self(Path(ancestor), Path(candidate)) is expected
