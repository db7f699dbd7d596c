"""
Commit guard evaluation.

Runs at commit time (through the installed hook) and on demand. Every call
recomputes the verdict from scratch; nothing is cached.

Policy
------
An unavailable account query fails open: the commit proceeds with a warning so
that an offline machine or an unauthenticated CLI never blocks work. Every
other failing state blocks the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..accounts import AccountStatusQuery
from ..data_models import UserProfile
from ..errors import ExternalUnavailableError, ProfileNotFoundError
from ..git_client import ConfigScope, GitClient
from ..links.engine import DirectoryLinkEngine
from ..paths_and_safety import normalize_directory
from ..profile_store.rules import DEFAULT_HOST
from ..profile_store.text_store import TextProfileStore
from ..projects import ProjectAssignmentTable

logger = logging.getLogger(__name__)

SKIP_HOOK_ENV = "GHS_SKIP_HOOK"


class GuardState(str, Enum):
    """Terminal states of a guard evaluation."""

    NOT_IN_REPOSITORY = "not_in_repository"
    NO_ASSIGNMENT_FOUND = "no_assignment_found"
    CANNOT_DETERMINE_ACTIVE_ACCOUNT = "cannot_determine_active_account"
    ACCOUNT_MISMATCH = "account_mismatch"
    IDENTITY_CONFIG_INCOMPLETE = "identity_config_incomplete"
    PROFILE_CONFIG_DRIFT = "profile_config_drift"
    PASS = "pass"


class AssignmentSource(str, Enum):
    DIRECTORY_LINK = "directory_link"
    PROJECT_ASSIGNMENT = "project_assignment"


@dataclass(frozen=True, slots=True)
class GuardVerdict:
    """
    Result of a guard evaluation.

    Attributes
    ----------
    state:
        Terminal state reached.
    passed:
        False when the commit must be blocked.
    repository:
        Repository top-level directory, when inside one.
    assigned_username:
        Profile assigned to the repository, when one was found.
    assignment_source:
        Whether the assignment came from a directory link or a project
        assignment.
    active_account:
        Login reported by the account query, when it answered.
    warnings:
        Messages to show without blocking.
    remediation:
        Commands or steps that resolve a failing state.
    installed:
        Whether a managed guard hook is present, when known.
    account_matches:
        None when the account check was not reached or could not run.
    identity_config_complete:
        None when the config check was not reached.
    profile_matches_local_config:
        None when the drift check was not reached.
    """

    state: GuardState
    passed: bool
    repository: Path | None = None
    assigned_username: str | None = None
    assignment_source: AssignmentSource | None = None
    active_account: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)
    remediation: tuple[str, ...] = field(default_factory=tuple)
    installed: bool | None = None
    account_matches: bool | None = None
    identity_config_complete: bool | None = None
    profile_matches_local_config: bool | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "passed": self.passed,
            "repository": str(self.repository) if self.repository else None,
            "assigned_username": self.assigned_username,
            "assignment_source": self.assignment_source.value if self.assignment_source else None,
            "active_account": self.active_account,
            "warnings": list(self.warnings),
            "remediation": list(self.remediation),
            "installed": self.installed,
            "account_matches": self.account_matches,
            "identity_config_complete": self.identity_config_complete,
            "profile_matches_local_config": self.profile_matches_local_config,
        }


def _find_assignment(
    cwd: Path,
    repository: Path,
    links: DirectoryLinkEngine,
    projects: ProjectAssignmentTable,
) -> tuple[str, AssignmentSource] | None:
    link = links.resolve(cwd)
    if link is not None:
        return link.username, AssignmentSource.DIRECTORY_LINK
    assignment = projects.get(repository.name)
    if assignment is not None:
        return assignment.username, AssignmentSource.PROJECT_ASSIGNMENT
    return None


def evaluate_guard(
    cwd: str | Path,
    *,
    git: GitClient,
    links: DirectoryLinkEngine,
    projects: ProjectAssignmentTable,
    profiles: TextProfileStore,
    accounts: AccountStatusQuery,
    installed: bool | None = None,
) -> GuardVerdict:
    """
    Evaluate the commit guard for a working directory.

    Parameters
    ----------
    cwd:
        Directory the commit is made from.
    git, links, projects, profiles, accounts:
        Engine components consulted by the evaluation.
    installed:
        Hook installation state to report on the verdict, if known.

    Returns
    -------
    GuardVerdict
        The terminal state reached. Only NO_ASSIGNMENT_FOUND,
        CANNOT_DETERMINE_ACTIVE_ACCOUNT, PROFILE_CONFIG_DRIFT and PASS pass.
    """
    current = normalize_directory(cwd)
    repository = git.toplevel(current)
    if repository is None:
        return GuardVerdict(
            state=GuardState.NOT_IN_REPOSITORY,
            passed=False,
            remediation=("Run the commit guard from inside a git work tree.",),
            installed=installed,
        )

    found = _find_assignment(current, repository, links, projects)
    if found is None:
        return GuardVerdict(
            state=GuardState.NO_ASSIGNMENT_FOUND,
            passed=True,
            repository=repository,
            installed=installed,
        )
    assigned, source = found

    profile: UserProfile | None
    try:
        profile = profiles.get(assigned)
    except ProfileNotFoundError:
        profile = None
    host = profile.host if profile is not None else DEFAULT_HOST
    common = {
        "repository": repository,
        "assigned_username": assigned,
        "assignment_source": source,
        "installed": installed,
    }

    try:
        active = accounts.active_login(host)
    except ExternalUnavailableError as exc:
        logger.warning("Commit guard could not determine the active account; allowing commit: %s", exc)
        return GuardVerdict(
            state=GuardState.CANNOT_DETERMINE_ACTIVE_ACCOUNT,
            passed=True,
            warnings=(f"Could not verify the active account on {host} ({exc}); commit allowed.",),
            **common,
        )

    if active.casefold() != assigned.casefold():
        return GuardVerdict(
            state=GuardState.ACCOUNT_MISMATCH,
            passed=False,
            active_account=active,
            account_matches=False,
            remediation=(
                f"ghs switch {assigned}",
                f"ghs assign {repository.name} {active}",
                f"{SKIP_HOOK_ENV}=1 git commit ...",
            ),
            **common,
        )

    name = git.get_config("user.name", cwd=repository, scope=ConfigScope.EFFECTIVE)
    email = git.get_config("user.email", cwd=repository, scope=ConfigScope.EFFECTIVE)
    if not name or not email:
        want_name = profile.display_name if profile is not None else "Your Name"
        want_email = profile.email if profile is not None else "you@example.com"
        remediation: list[str] = []
        if not name:
            remediation.append(f'git config user.name "{want_name}"')
        if not email:
            remediation.append(f'git config user.email "{want_email}"')
        return GuardVerdict(
            state=GuardState.IDENTITY_CONFIG_INCOMPLETE,
            passed=False,
            active_account=active,
            account_matches=True,
            identity_config_complete=False,
            remediation=tuple(remediation),
            **common,
        )

    if profile is None:
        return GuardVerdict(
            state=GuardState.PASS,
            passed=True,
            active_account=active,
            account_matches=True,
            identity_config_complete=True,
            warnings=(f"Assigned profile {assigned!r} is not registered.",),
            **common,
        )

    drift: list[str] = []
    if name != profile.display_name:
        drift.append(f"user.name is {name!r}, profile {assigned} has {profile.display_name!r}")
    if email != profile.email:
        drift.append(f"user.email is {email!r}, profile {assigned} has {profile.email!r}")
    if drift:
        return GuardVerdict(
            state=GuardState.PROFILE_CONFIG_DRIFT,
            passed=True,
            active_account=active,
            account_matches=True,
            identity_config_complete=True,
            profile_matches_local_config=False,
            warnings=tuple(drift),
            remediation=(f"ghs switch {assigned}",),
            **common,
        )

    return GuardVerdict(
        state=GuardState.PASS,
        passed=True,
        active_account=active,
        account_matches=True,
        identity_config_complete=True,
        profile_matches_local_config=True,
        **common,
    )
