"""
Key material validation and permission enforcement.

This module checks the SSH private key bound to a profile: existence, a
heuristic format check, and filesystem permission bits. It never reads more
than a small header of a key file and never logs key content.

Policy
------
- An empty key path is valid and means "no key configured".
- Format and permission problems are warnings, not failures. Callers decide
  whether to proceed.
- Symbolic links are never modified.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import KeyNotFoundError, KeyPermissionError, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_MODE: Final[int] = 0o600
HEADER_PROBE_BYTES: Final[int] = 4096

DEFAULT_KEY_NAMES: Final[tuple[str, ...]] = (
    "id_ed25519",
    "id_ecdsa",
    "id_rsa",
    "id_dsa",
    "id_ed25519_sk",
    "id_ecdsa_sk",
)

# Files in ~/.ssh that are never private keys.
NON_KEY_PREFIXES: Final[tuple[str, ...]] = ("known_hosts", "authorized_keys", "config", "environment")


@dataclass(frozen=True, slots=True)
class KeyValidation:
    """
    Result of validating a key path.

    Attributes
    ----------
    ok:
        True when the key exists (or no key is configured).
    path:
        Expanded path that was checked, or None for "no key".
    warnings:
        Non-fatal problems for the caller to surface.
    """

    ok: bool
    path: Path | None
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class PermissionFix:
    """
    Result of enforcing key file permissions.

    Attributes
    ----------
    path:
        Expanded key path.
    changed:
        True when the mode was rewritten.
    previous_mode:
        Permission bits before the call.
    mode:
        Permission bits after the call.
    skipped_reason:
        Set when the policy was not applied (symlink, unsupported platform).
    """

    path: Path
    changed: bool
    previous_mode: int | None
    mode: int | None
    skipped_reason: str | None = None


def expand_key_path(key_path: str | Path) -> Path:
    """Expand ~ in a key path without resolving symlinks."""
    return Path(key_path).expanduser()


def _existing_key(key_path: str | Path) -> Path:
    path = expand_key_path(key_path)
    if not path.exists() and not path.is_symlink():
        raise KeyNotFoundError(str(path), f"Key file not found: {path}")
    if not path.exists():
        raise KeyNotFoundError(str(path), f"Key symlink is dangling: {path}")
    if not path.is_file():
        raise ValidationError("key_path", str(path), "a regular file")
    return path


def looks_like_private_key(path: Path) -> bool:
    """
    Heuristically decide whether a file holds a private key.

    Only the first few KiB are read. Unreadable files are reported as not
    plausible rather than raising.
    """
    try:
        with path.open("rb") as handle:
            header = handle.read(HEADER_PROBE_BYTES)
    except OSError:
        return False
    if header.startswith(b"PuTTY-User-Key-File-"):
        return True
    return b"-----BEGIN" in header and b"PRIVATE KEY-----" in header


def _mode_of(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def validate_key(key_path: str | Path) -> KeyValidation:
    """
    Validate a key path.

    Parameters
    ----------
    key_path:
        Path as stored on a profile. "" means no key.

    Returns
    -------
    KeyValidation
        ok=True with any warnings collected.

    Raises
    ------
    KeyNotFoundError
        If a non-empty path does not exist after ~-expansion.
    ValidationError
        If the path exists but is not a regular file.
    """
    if not str(key_path).strip():
        return KeyValidation(ok=True, path=None)

    path = _existing_key(str(key_path).strip())
    warnings: list[str] = []

    if path.suffix == ".pub":
        warnings.append(f"{path} looks like a public key; profiles need the private key")
    if not looks_like_private_key(path):
        warnings.append(f"{path} does not look like a private key file")

    if path.is_symlink():
        warnings.append(f"{path} is a symbolic link; its permissions are not managed")
    elif os.name != "nt":
        mode = _mode_of(path)
        if mode & 0o077:
            warnings.append(
                f"{path} has permissions {mode:03o}; expected {REQUIRED_MODE:03o} "
                "(run 'ghs fix-key' to correct)"
            )

    for warning in warnings:
        logger.debug("Key warning: %s", warning)
    return KeyValidation(ok=True, path=path, warnings=tuple(warnings))


def fix_permissions(key_path: str | Path) -> PermissionFix:
    """
    Enforce mode 600 on a key file.

    Returns
    -------
    PermissionFix
        changed=False when the mode was already correct or the policy was
        skipped (symbolic link, Windows).

    Raises
    ------
    KeyNotFoundError
        If the key does not exist.
    KeyPermissionError
        If chmod fails.
    """
    path = _existing_key(key_path)

    if path.is_symlink():
        return PermissionFix(
            path=path,
            changed=False,
            previous_mode=None,
            mode=None,
            skipped_reason="symbolic links are never modified",
        )
    if os.name == "nt":
        return PermissionFix(
            path=path,
            changed=False,
            previous_mode=None,
            mode=None,
            skipped_reason="POSIX permission bits are not enforced on Windows",
        )

    previous = _mode_of(path)
    if previous == REQUIRED_MODE:
        return PermissionFix(path=path, changed=False, previous_mode=previous, mode=previous)

    try:
        path.chmod(REQUIRED_MODE)
        current = _mode_of(path)
    except OSError as exc:
        raise KeyPermissionError(path, f"Failed to set permissions on {path}: {exc!s}") from exc

    if current != REQUIRED_MODE:
        raise KeyPermissionError(
            path, f"Permissions on {path} are {current:03o} after chmod; expected {REQUIRED_MODE:03o}"
        )
    logger.info("Fixed key permissions on %s (%03o -> %03o)", path, previous, current)
    return PermissionFix(path=path, changed=True, previous_mode=previous, mode=current)


def default_ssh_dir() -> Path:
    """Return the conventional key directory (~/.ssh)."""
    return Path.home() / ".ssh"


def _is_candidate_key_file(path: Path) -> bool:
    name = path.name
    if name.endswith(".pub") or name.startswith("."):
        return False
    if any(name.startswith(prefix) for prefix in NON_KEY_PREFIXES):
        return False
    if not path.is_file():
        return False
    return name.startswith("id_") or looks_like_private_key(path)


def find_alternatives(username: str, ssh_dir: Path | None = None) -> list[Path]:
    """
    Rank plausible private key files for a user.

    Ranking
    -------
    1. File names containing the username (case-insensitive).
    2. Default key names (id_ed25519, id_rsa, ...).

    Other files are not returned. Results are deduplicated by resolved path
    and sorted alphabetically within each rank.

    Parameters
    ----------
    username:
        Account login to match against file names.
    ssh_dir:
        Directory to scan. Defaults to ~/.ssh.
    """
    directory = (ssh_dir or default_ssh_dir()).expanduser()
    if not directory.is_dir():
        return []

    needle = username.lower()
    ranked: list[tuple[int, str, Path]] = []
    try:
        children = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.debug("Cannot scan %s for keys: %s", directory, exc)
        return []

    for child in children:
        if not _is_candidate_key_file(child):
            continue
        if needle and needle in child.name.lower():
            ranked.append((0, child.name, child))
        elif child.name in DEFAULT_KEY_NAMES:
            ranked.append((1, child.name, child))

    ranked.sort(key=lambda item: (item[0], item[1]))
    seen: set[Path] = set()
    result: list[Path] = []
    for _rank, _name, candidate in ranked:
        resolved = candidate.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        result.append(candidate)
    return result
