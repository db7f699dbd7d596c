"""
Filesystem path policy for the identity engine.

This module is the single choke point for deciding where registries live and
how user-supplied directories are normalized:

- Runtime data lives under a data root (default: ~/.config/gh-switcher).
- Registry file locations are resolved once into StorePaths and injected into
  every component. No component opens a registry by implicit convention.
- Directory paths are normalized (~ expanded, symlinks resolved, trailing
  separator stripped) before they are stored or compared.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError

DATA_ROOT_ENV = "GHS_DATA_ROOT"

# Characters that would break line-oriented registry records.
RECORD_BREAKING_CHARACTERS = ("\t", "\r", "\n")


@dataclass(frozen=True, slots=True)
class StorePaths:
    """
    Concrete resolved paths for the engine registries.

    Attributes
    ----------
    data_root:
        Root directory for all runtime data.
    profiles_file:
        Profile registry (one v5 record per line).
    links_file:
        Directory link registry.
    projects_file:
        Legacy project assignment registry.
    settings_file:
        JSON settings.
    cache_root:
        Decision cache directory. Safe to delete at any time.
    """

    data_root: Path
    profiles_file: Path
    links_file: Path
    projects_file: Path
    settings_file: Path
    cache_root: Path


def default_data_root() -> Path:
    """
    Resolve the default data root.

    Preference order:
    1) $GHS_DATA_ROOT if set
    2) $XDG_CONFIG_HOME/gh-switcher
    3) ~/.config/gh-switcher
    """
    explicit = os.environ.get(DATA_ROOT_ENV)
    if explicit:
        return Path(explicit).expanduser()

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / "gh-switcher"

    return Path.home() / ".config" / "gh-switcher"


def resolve_store_paths(data_root: Path | None = None) -> StorePaths:
    """
    Resolve every registry path under a data root.

    Parameters
    ----------
    data_root:
        Optional override for the data root.

    Returns
    -------
    StorePaths
        Resolved paths. Nothing is created on disk.
    """
    root = (data_root or default_data_root()).expanduser().resolve()
    return StorePaths(
        data_root=root,
        profiles_file=root / "users",
        links_file=root / "directory_links",
        projects_file=root / "project_accounts",
        settings_file=root / "settings.json",
        cache_root=root / "cache" / "decisions",
    )


def ensure_store_directories(paths: StorePaths) -> None:
    """
    Create the data root if it does not already exist.

    Notes
    -----
    This function creates directories only. Registry files are created lazily
    by the first write.
    """
    paths.data_root.mkdir(parents=True, exist_ok=True)


def reject_record_breaking(field: str, value: str) -> None:
    """
    Reject values that cannot be stored in a line-oriented TAB registry.

    Raises
    ------
    ValidationError
        If value contains TAB, CR or LF.
    """
    if any(ch in value for ch in RECORD_BREAKING_CHARACTERS):
        raise ValidationError(field, value, "no tab or line-break characters")


def normalize_directory(path: str | Path) -> Path:
    """
    Normalize a directory path for storage and comparison.

    Parameters
    ----------
    path:
        Candidate directory path. Relative paths are interpreted against the
        current working directory.

    Returns
    -------
    pathlib.Path
        Absolute path with ~ expanded and symlinks resolved. The path need not
        exist (a link may be created before the directory is cloned).

    Raises
    ------
    ValidationError
        If the path is empty or contains record-breaking characters.
    """
    raw = str(path).strip()
    if not raw:
        raise ValidationError("path", raw, "a non-empty directory path")
    reject_record_breaking("path", raw)
    # Path.resolve() already drops trailing separators.
    return Path(raw).expanduser().resolve(strict=False)


def is_ancestor_or_self(ancestor: Path, candidate: Path) -> bool:
    """
    Return True when ancestor is candidate or one of its parent directories.

    Comparison is component-wise, so /foo never matches /foo-bar.
    """
    a_parts = ancestor.parts
    c_parts = candidate.parts
    if len(a_parts) > len(c_parts):
        return False
    return c_parts[: len(a_parts)] == a_parts
