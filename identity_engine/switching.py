"""
Apply a profile's identity to git configuration.

Inside a repository the identity is written to the repository's local config;
outside one it goes to the global config. The key validator runs first and its
findings are returned as warnings. A broken key never blocks the name and
email from being applied.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from .data_models import UserProfile
from .errors import ExternalUnavailableError, KeyNotFoundError, ValidationError
from .git_client import ConfigScope, GitClient
from .keys.validator import validate_key

logger = logging.getLogger(__name__)

SSH_COMMAND_KEY = "core.sshCommand"


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """
    Outcome of applying a profile.

    Attributes
    ----------
    username:
        Profile that was applied.
    scope:
        LOCAL inside a repository, GLOBAL otherwise.
    repository:
        Repository top-level directory, or None for a global apply.
    ssh_command:
        The core.sshCommand value written, or None when it was removed.
    warnings:
        Key problems to show the user.
    """

    username: str
    scope: ConfigScope
    repository: Path | None
    ssh_command: str | None
    warnings: tuple[str, ...] = field(default_factory=tuple)


def ssh_command_for(key_path: Path) -> str:
    """Return the core.sshCommand value that pins a single key."""
    return f"ssh -i {shlex.quote(str(key_path))} -o IdentitiesOnly=yes"


def effective_identity(git: GitClient, cwd: Path) -> tuple[str | None, str | None]:
    """Return the effective (user.name, user.email) seen from cwd."""
    name = git.get_config("user.name", cwd=cwd, scope=ConfigScope.EFFECTIVE)
    email = git.get_config("user.email", cwd=cwd, scope=ConfigScope.EFFECTIVE)
    return name, email


def identity_is_active(git: GitClient, cwd: Path, profile: UserProfile) -> bool:
    """Return True when the effective name and email already equal the profile's."""
    return effective_identity(git, cwd) == (profile.display_name, profile.email)


def apply_profile(profile: UserProfile, cwd: Path, git: GitClient) -> ApplyResult:
    """
    Write the profile's identity for cwd.

    Parameters
    ----------
    profile:
        Profile to apply.
    cwd:
        Directory the identity should take effect in.
    git:
        Git client used for discovery and writes.

    Returns
    -------
    ApplyResult
        Where the identity was written, plus key warnings.

    Raises
    ------
    ExternalUnavailableError
        If git rejects a write or the written values do not read back.
    """
    repository = git.toplevel(cwd)
    scope = ConfigScope.LOCAL if repository is not None else ConfigScope.GLOBAL
    target = repository or cwd

    warnings: list[str] = []
    key: Path | None = None
    if profile.has_key:
        try:
            validation = validate_key(profile.key_path)
        except (KeyNotFoundError, ValidationError) as exc:
            warnings.append(f"{exc} (SSH key not configured for {profile.username})")
        else:
            warnings.extend(validation.warnings)
            key = validation.path

    git.set_config("user.name", profile.display_name, cwd=target, scope=scope)
    git.set_config("user.email", profile.email, cwd=target, scope=scope)

    ssh_command: str | None = None
    if key is not None:
        ssh_command = ssh_command_for(key)
        git.set_config(SSH_COMMAND_KEY, ssh_command, cwd=target, scope=scope)
    else:
        git.unset_config(SSH_COMMAND_KEY, cwd=target, scope=scope)

    written = (
        git.get_config("user.name", cwd=target, scope=scope),
        git.get_config("user.email", cwd=target, scope=scope),
    )
    if written != (profile.display_name, profile.email):
        raise ExternalUnavailableError(
            "git", f"identity for {profile.username} did not read back after writing ({scope.value})"
        )

    logger.info(
        "Applied %s (%s) in %s scope%s",
        profile.username,
        profile.email,
        scope.value,
        f" at {repository}" if repository else "",
    )
    return ApplyResult(
        username=profile.username,
        scope=scope,
        repository=repository,
        ssh_command=ssh_command,
        warnings=tuple(warnings),
    )
