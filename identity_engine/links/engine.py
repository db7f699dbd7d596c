"""
Directory link engine.

Maps directories to profiles and decides, for a working directory, whether
and how the linked identity should be applied. Resolution picks the deepest
linked ancestor (component-wise, so ``/foo-bar`` is never covered by
``/foo``). Decisions are memoized in the advisory decision cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..data_models import DirectoryLink, LinkMode, UserProfile
from ..git_client import GitClient
from ..paths_and_safety import normalize_directory
from ..profile_store.text_store import TextProfileStore
from ..settings import load_settings
from ..switching import ApplyResult, apply_profile, identity_is_active
from .decision_cache import DecisionCache
from .link_store import DirectoryLinkTable, longest_match

logger = logging.getLogger(__name__)


class SwitchStatus(str, Enum):
    """What check_and_apply did."""

    APPLIED = "applied"
    NEEDS_CONFIRMATION = "needs_confirmation"
    SKIPPED = "skipped"
    NO_MATCH = "no_match"


class SkipReason(str, Enum):
    AUTO_SWITCH_DISABLED = "auto_switch_disabled"
    MODE_NEVER = "mode_never"
    ALREADY_ACTIVE = "already_active"


@dataclass(frozen=True, slots=True)
class SwitchDecision:
    """
    Result of check_and_apply.

    Attributes
    ----------
    status:
        Outcome of the check.
    path:
        Normalized directory that was checked.
    link:
        The link that applied, if any.
    profile:
        The candidate profile for APPLIED, NEEDS_CONFIRMATION and
        ALREADY_ACTIVE outcomes.
    reason:
        Set for SKIPPED outcomes.
    applied:
        Details of the apply for APPLIED outcomes.
    """

    status: SwitchStatus
    path: Path
    link: DirectoryLink | None = None
    profile: UserProfile | None = None
    reason: SkipReason | None = None
    applied: ApplyResult | None = None

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.applied.warnings if self.applied is not None else ()


@dataclass(frozen=True, slots=True)
class DirectoryLinkEngine:
    """
    Link table, decision cache and switching logic bound together.

    Parameters
    ----------
    table:
        Link registry.
    cache:
        Decision cache. Wiped on every link table mutation.
    profiles:
        Profile store used to check link targets and load profiles.
    git:
        Git client used to read and write identity config.
    settings_path:
        settings.json, read on every check so toggles apply immediately.
    """

    table: DirectoryLinkTable
    cache: DecisionCache
    profiles: TextProfileStore
    git: GitClient
    settings_path: Path

    def link(self, path: str | Path, username: str, mode: LinkMode = LinkMode.ALWAYS) -> DirectoryLink:
        """
        Link a directory (and its descendants) to a profile.

        Raises
        ------
        ProfileNotFoundError
            If username is not registered.
        ValidationError
            If the path cannot be stored.
        """
        self.profiles.get(username)
        link = DirectoryLink(path=normalize_directory(path), username=username, mode=mode)
        previous = self.table.upsert(link)
        self.cache.clear()
        if previous is not None and previous != link:
            logger.info(
                "Relinked %s: %s (%s) -> %s (%s)",
                link.path,
                previous.username,
                previous.mode.value,
                link.username,
                link.mode.value,
            )
        else:
            logger.info("Linked %s to %s (%s)", link.path, username, mode.value)
        return link

    def unlink(self, path: str | Path) -> DirectoryLink:
        """
        Remove the link stored for exactly this directory.

        Raises
        ------
        LinkNotFoundError
            If the directory has no link of its own.
        """
        removed = self.table.remove(normalize_directory(path))
        self.cache.clear()
        logger.info("Unlinked %s (was %s)", removed.path, removed.username)
        return removed

    def remove_user(self, username: str) -> list[DirectoryLink]:
        """Remove every link for a user; used by profile deletion."""
        removed = self.table.remove_user(username)
        self.cache.clear()
        return removed

    def list_links(self) -> list[DirectoryLink]:
        return self.table.list()

    def resolve(self, current_path: str | Path) -> DirectoryLink | None:
        """
        Return the link governing a directory, or None.

        The answer is identical with or without the decision cache.
        """
        current = normalize_directory(current_path)
        generation = self.table.fingerprint()
        hit = self.cache.lookup(current, generation)
        if hit is not None:
            return hit.link

        match = longest_match(current, self.table.list())
        self.cache.store(current, generation, match)
        return match

    def check_and_apply(self, current_path: str | Path) -> SwitchDecision:
        """
        Decide whether the linked identity should be applied here, and apply it
        when the link's mode is ``always``.

        Returns
        -------
        SwitchDecision
            NO_MATCH, SKIPPED (with a reason), NEEDS_CONFIRMATION (the caller
            prompts and then applies) or APPLIED.
        """
        current = normalize_directory(current_path)
        link = self.resolve(current)
        if link is None:
            return SwitchDecision(status=SwitchStatus.NO_MATCH, path=current)

        if not load_settings(self.settings_path).auto_switch:
            return SwitchDecision(
                status=SwitchStatus.SKIPPED,
                path=current,
                link=link,
                reason=SkipReason.AUTO_SWITCH_DISABLED,
            )
        if link.mode is LinkMode.NEVER:
            return SwitchDecision(
                status=SwitchStatus.SKIPPED, path=current, link=link, reason=SkipReason.MODE_NEVER
            )

        profile = self.profiles.get(link.username)
        if identity_is_active(self.git, current, profile):
            return SwitchDecision(
                status=SwitchStatus.SKIPPED,
                path=current,
                link=link,
                profile=profile,
                reason=SkipReason.ALREADY_ACTIVE,
            )
        if link.mode is LinkMode.ASK:
            return SwitchDecision(
                status=SwitchStatus.NEEDS_CONFIRMATION, path=current, link=link, profile=profile
            )

        applied = apply_profile(profile, current, self.git)
        return SwitchDecision(
            status=SwitchStatus.APPLIED, path=current, link=link, profile=profile, applied=applied
        )
