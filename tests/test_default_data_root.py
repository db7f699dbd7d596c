from __future__ import annotations

from pathlib import Path

import pytest

from identity_engine.paths_and_safety import default_data_root


def test_default_data_root_prefers_explicit_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GHS_DATA_ROOT", str(tmp_path / "explicit"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    root = default_data_root()
    assert root == (tmp_path / "explicit")


def test_default_data_root_uses_xdg_config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("GHS_DATA_ROOT", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    root = default_data_root()
    assert root == (tmp_path / "xdg" / "gh-switcher")


def test_default_data_root_falls_back_to_home_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("GHS_DATA_ROOT", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    root = default_data_root()
    assert root == (tmp_path / "home" / ".config" / "gh-switcher")
