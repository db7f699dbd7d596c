"""
Profile health checks.

Interactive checks fail closed: an account query or key probe that cannot run
is reported as an issue, unlike the commit guard which lets the commit through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .accounts import AccountStatusQuery
from .data_models import UserProfile
from .errors import ExternalUnavailableError, KeyNotFoundError, ValidationError
from .keys.probe import KeyProbe, ProbeOutcome
from .keys.validator import validate_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProfileHealth:
    """
    Attributes
    ----------
    username:
        Profile checked.
    issues:
        Problems that make the profile unusable as configured.
    warnings:
        Problems worth fixing that do not block use.
    probe:
        Key probe outcome when a probe ran.
    """

    username: str
    issues: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)
    probe: ProbeOutcome | None = None

    @property
    def ok(self) -> bool:
        return not self.issues


def check_profile(
    profile: UserProfile,
    *,
    accounts: AccountStatusQuery | None,
    key_probe: KeyProbe | None = None,
) -> ProfileHealth:
    """
    Check a profile's key material and account state.

    Parameters
    ----------
    profile:
        Profile to check.
    accounts:
        Account query. None skips the account check.
    key_probe:
        When given and the key validates, authenticate with it against the
        profile's host.
    """
    issues: list[str] = []
    warnings: list[str] = []
    outcome: ProbeOutcome | None = None

    if profile.has_key:
        try:
            validation = validate_key(profile.key_path)
        except (KeyNotFoundError, ValidationError) as exc:
            issues.append(str(exc))
        else:
            warnings.extend(validation.warnings)
            if validation.path is not None and key_probe is not None:
                outcome = key_probe.probe(validation.path, profile.host)
                if outcome is ProbeOutcome.REJECTED:
                    issues.append(f"{profile.host} rejected key {validation.path}")
                elif outcome is ProbeOutcome.NETWORK_UNREACHABLE:
                    issues.append(f"Could not reach {profile.host} to test key {validation.path}")

    if accounts is not None:
        try:
            active = accounts.active_login(profile.host)
        except ExternalUnavailableError as exc:
            issues.append(f"Cannot determine the active account on {profile.host}: {exc}")
        else:
            if active.casefold() != profile.username.casefold():
                issues.append(
                    f"Active account on {profile.host} is {active}, not {profile.username}"
                )

    logger.debug("Health of %s: %d issue(s), %d warning(s)", profile.username, len(issues), len(warnings))
    return ProfileHealth(
        username=profile.username,
        issues=tuple(issues),
        warnings=tuple(warnings),
        probe=outcome,
    )
