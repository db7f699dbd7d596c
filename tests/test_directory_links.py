from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from fakes import FakeAccounts, FakeGit, FakeProbe
from identity_engine.data_models import LinkMode
from identity_engine.errors import LinkNotFoundError, ProfileNotFoundError, RegistryCorruptError
from identity_engine.links.decision_cache import path_digest
from identity_engine.links.link_store import longest_match
from identity_engine.paths_and_safety import normalize_directory
from identity_engine.registry_io import write_registry_lines
from identity_engine.store import Store


def _open(tmp_path: Path) -> Store:
    store = Store.open(
        tmp_path / "data", git=FakeGit(), accounts=FakeAccounts("x"), key_probe=FakeProbe()
    )
    store.profiles.create("x", "Xavier", "x@example.com")
    store.profiles.create("y", "Yolanda", "y@example.com")
    return store


def test_longest_prefix_resolution(tmp_path: Path) -> None:
    store = _open(tmp_path)
    a = tmp_path / "fs" / "a"
    store.links.link(a, "x", LinkMode.ALWAYS)
    store.links.link(a / "b", "y", LinkMode.NEVER)

    deep = store.links.resolve(a / "b" / "c")
    assert deep is not None
    assert deep.path == (a / "b").resolve()
    assert (deep.username, deep.mode) == ("y", LinkMode.NEVER)

    sibling = store.links.resolve(a / "zzz")
    assert sibling is not None
    assert (sibling.username, sibling.mode) == ("x", LinkMode.ALWAYS)

    assert store.links.resolve(tmp_path / "fs" / "other") is None


def test_prefix_match_is_component_wise(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "foo", "x")

    assert store.links.resolve(tmp_path / "foo-bar") is None
    match = store.links.resolve(tmp_path / "foo")
    assert match is not None and match.username == "x"


def test_link_normalizes_and_upserts_by_path(tmp_path: Path) -> None:
    store = _open(tmp_path)
    target = tmp_path / "work"
    target.mkdir()

    store.links.link(f"{target}/", "x")
    store.links.link(target / "sub" / "..", "y", LinkMode.ASK)

    links = store.links.list_links()
    assert len(links) == 1
    assert links[0].path == target.resolve()
    assert (links[0].username, links[0].mode) == ("y", LinkMode.ASK)
    assert store.paths.links_file.read_text(encoding="utf-8") == f"{target.resolve()}\ty\task\n"


def test_link_requires_existing_profile(tmp_path: Path) -> None:
    store = _open(tmp_path)
    with pytest.raises(ProfileNotFoundError):
        store.links.link(tmp_path / "work", "nobody")
    assert store.links.list_links() == []


def test_unlink_unknown_path_raises(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "a", "x")
    with pytest.raises(LinkNotFoundError):
        store.links.unlink(tmp_path / "a" / "b")


def test_corrupt_link_registry_is_reported(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.paths.links_file.write_text(f"{tmp_path}\tx\tsometimes\n", encoding="utf-8")
    with pytest.raises(RegistryCorruptError):
        store.links.resolve(tmp_path)


def test_resolution_is_identical_with_and_without_cache(tmp_path: Path) -> None:
    cached = _open(tmp_path / "one")
    uncached = _open(tmp_path / "two")
    base = tmp_path / "fs"
    probes = [base, base / "a", base / "a" / "b" / "c", base / "a-b", base / "z"]

    steps: list[tuple[str, Path, str | None]] = [
        ("link", base / "a", "x"),
        ("link", base / "a" / "b", "y"),
        ("link", base, "y"),
        ("unlink", base / "a", None),
        ("link", base / "a" / "b", "x"),
        ("unlink", base, None),
    ]
    for op, path, user in steps:
        for store in (cached, uncached):
            if op == "link":
                assert user is not None
                store.links.link(path, user)
            else:
                store.links.unlink(path)

        for probe in probes:
            first = cached.links.resolve(probe)
            second = cached.links.resolve(probe)
            shutil.rmtree(uncached.paths.cache_root, ignore_errors=True)
            fresh = uncached.links.resolve(probe)
            expected = longest_match(normalize_directory(probe), cached.links.list_links())
            assert first == second == fresh == expected


def test_cache_entries_are_content_addressed(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "a", "x")
    probe = normalize_directory(tmp_path / "a" / "deep")

    store.links.resolve(probe)

    entries = list(store.paths.cache_root.glob("*/*"))
    assert [entry.name for entry in entries] == [path_digest(probe)]


def test_link_and_unlink_wipe_the_cache(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "a", "x")
    store.links.resolve(tmp_path / "a")
    assert store.paths.cache_root.exists()

    store.links.link(tmp_path / "b", "y")
    assert not store.paths.cache_root.exists()

    store.links.resolve(tmp_path / "b")
    store.links.unlink(tmp_path / "b")
    assert not store.paths.cache_root.exists()


def test_out_of_band_registry_edit_is_never_served_stale(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "a", "x")
    first = store.links.resolve(tmp_path / "a")
    assert first is not None and first.username == "x"

    write_registry_lines(store.paths.links_file, [f"{(tmp_path / 'a').resolve()}\ty\tnever"])

    second = store.links.resolve(tmp_path / "a")
    assert second is not None
    assert (second.username, second.mode) == ("y", LinkMode.NEVER)


def test_malformed_cache_entry_is_a_miss(tmp_path: Path) -> None:
    store = _open(tmp_path)
    store.links.link(tmp_path / "a", "x")
    store.links.resolve(tmp_path / "a")
    for entry in store.paths.cache_root.glob("*/*"):
        entry.write_text("garbage", encoding="utf-8")

    match = store.links.resolve(tmp_path / "a")
    assert match is not None and match.username == "x"
