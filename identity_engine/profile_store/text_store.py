"""
Text-file implementation of ProfileStore.

This module owns the on-disk profile registry: one TAB-separated v5 record per
line. Every mutation reads the whole registry, replaces or inserts the target
record, and rewrites the file atomically (see registry_io).

Migration
---------
Reads and writes never reinterpret an older record shape. A registry that
still holds legacy lines raises FormatMigrationNeededError until migrate() is
run, which keeps a timestamped backup of the original file.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Sequence

from ..data_models import UserProfile
from ..errors import (
    FormatMigrationNeededError,
    IOFailureError,
    ProfileExistsError,
    ProfileNotFoundError,
    ValidationError,
)
from ..registry_io import read_registry_lines, write_registry_lines
from .api import ProfileStore
from .codec import (
    RecordVersion,
    decode_profile,
    detect_version,
    encode_profile,
    upgrade_legacy_line,
)
from .rules import DEFAULT_HOST

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS: Final[frozenset[str]] = frozenset({"display_name", "email", "key_path", "host"})


@dataclass(frozen=True, slots=True)
class _RegistryLine:
    raw: str
    version: RecordVersion


@dataclass(frozen=True, slots=True)
class MigrationReport:
    """
    Outcome of migrating a profile registry.

    Attributes
    ----------
    registry_path:
        The migrated registry.
    backup_path:
        Copy of the pre-migration registry, or None when nothing was migrated.
    upgraded:
        Versions detected for each upgraded record.
    dropped_duplicates:
        Usernames whose later duplicate lines were discarded.
    """

    registry_path: Path
    backup_path: Path | None
    upgraded: tuple[RecordVersion, ...]
    dropped_duplicates: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.upgraded or self.dropped_duplicates)


@dataclass(frozen=True, slots=True)
class TextProfileStore(ProfileStore):
    """
    Profile registry backed by a line-oriented text file.

    Parameters
    ----------
    registry_path:
        Path to the registry. Created by the first write.
    """

    registry_path: Path

    def _scan(self) -> list[_RegistryLine]:
        entries: list[_RegistryLine] = []
        for index, raw in enumerate(read_registry_lines(self.registry_path), start=1):
            if not raw.strip() or raw.startswith("#"):
                continue
            version = detect_version(raw, path=self.registry_path, line_number=index)
            entries.append(_RegistryLine(raw=raw, version=version))
        return entries

    def _raise_for_legacy(self, entry: _RegistryLine) -> None:
        raise FormatMigrationNeededError(
            self.registry_path,
            line_number=entry.version.line_number,
            detected_version=entry.version.version,
            username=entry.version.username,
        )

    def _load_current(self) -> list[UserProfile]:
        """Load every record, refusing registries that still hold legacy lines."""
        entries = self._scan()
        for entry in entries:
            if not entry.version.is_current:
                self._raise_for_legacy(entry)

        profiles: list[UserProfile] = []
        seen: set[str] = set()
        for entry in entries:
            profile = decode_profile(
                entry.raw, path=self.registry_path, line_number=entry.version.line_number
            )
            if profile.username in seen:
                logger.warning(
                    "Ignoring duplicate record for %s at %s line %d",
                    profile.username,
                    self.registry_path,
                    entry.version.line_number,
                )
                continue
            seen.add(profile.username)
            profiles.append(profile)
        return profiles

    def _write(self, profiles: Sequence[UserProfile]) -> None:
        write_registry_lines(self.registry_path, [encode_profile(p) for p in profiles])

    def create(
        self,
        username: str,
        display_name: str = "",
        email: str = "",
        key_path: str = "",
        host: str = "",
    ) -> UserProfile:
        """See ProfileStore.create."""
        profile = UserProfile.new(username, display_name, email, key_path, host or DEFAULT_HOST)
        profiles = self._load_current()
        if any(p.username == username for p in profiles):
            raise ProfileExistsError(username)

        profiles.append(profile)
        self._write(profiles)
        logger.info("Created profile %s <%s> on %s", username, profile.email, profile.host)
        return profile

    def get(self, username: str) -> UserProfile:
        """See ProfileStore.get."""
        for entry in self._scan():
            if entry.version.username != username:
                continue
            if not entry.version.is_current:
                self._raise_for_legacy(entry)
            return decode_profile(
                entry.raw, path=self.registry_path, line_number=entry.version.line_number
            )
        raise ProfileNotFoundError(username)

    def update(self, username: str, **fields: str) -> UserProfile:
        """
        See ProfileStore.update.

        Notes
        -----
        Only display_name, email, key_path and host may change. A call that
        changes nothing returns the stored profile without rewriting the file.
        """
        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "field", unknown[0], "one of " + ", ".join(sorted(UPDATABLE_FIELDS))
            )

        profiles = self._load_current()
        for index, existing in enumerate(profiles):
            if existing.username != username:
                continue
            updated = replace(existing, **fields)
            if updated == existing:
                return existing
            profiles[index] = updated
            self._write(profiles)
            logger.info("Updated profile %s (%s)", username, ", ".join(sorted(fields)))
            return updated
        raise ProfileNotFoundError(username)

    def edit(self, username: str, **fields: str) -> UserProfile:
        """Update a profile, creating a minimal record first if it is unknown."""
        try:
            return self.update(username, **fields)
        except ProfileNotFoundError:
            return self.create(
                username,
                display_name=fields.get("display_name", ""),
                email=fields.get("email", ""),
                key_path=fields.get("key_path", ""),
                host=fields.get("host", ""),
            )

    def delete(self, username: str) -> None:
        """See ProfileStore.delete."""
        profiles = self._load_current()
        remaining = [p for p in profiles if p.username != username]
        if len(remaining) == len(profiles):
            raise ProfileNotFoundError(username)
        self._write(remaining)
        logger.info("Deleted profile %s", username)

    def list(self) -> Sequence[UserProfile]:
        """See ProfileStore.list."""
        return self._load_current()

    def scan_versions(self) -> list[RecordVersion]:
        """Return the detected format version of every record line."""
        return [entry.version for entry in self._scan()]

    def migrate(self) -> MigrationReport:
        """
        Upgrade every legacy record to the current format.

        Returns
        -------
        MigrationReport
            What was upgraded. When the registry is already current nothing is
            written and no backup is taken.

        Raises
        ------
        RegistryCorruptError
            If a legacy record cannot be decoded. The registry is left as is.
        IOFailureError
            If the backup copy cannot be written.
        """
        entries = self._scan()
        upgraded: list[RecordVersion] = []
        dropped: list[str] = []
        profiles: list[UserProfile] = []
        seen: set[str] = set()

        for entry in entries:
            if entry.version.is_current:
                profile = decode_profile(
                    entry.raw, path=self.registry_path, line_number=entry.version.line_number
                )
            else:
                profile = upgrade_legacy_line(entry.raw, entry.version, path=self.registry_path)
                upgraded.append(entry.version)
            if profile.username in seen:
                dropped.append(profile.username)
                continue
            seen.add(profile.username)
            profiles.append(profile)

        if not upgraded and not dropped:
            return MigrationReport(registry_path=self.registry_path, backup_path=None, upgraded=())

        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        backup_path = self.registry_path.with_name(f"{self.registry_path.name}.backup.{stamp}")
        try:
            shutil.copy2(self.registry_path, backup_path)
        except OSError as exc:
            raise IOFailureError(
                backup_path, f"Failed to back up registry before migration: {exc!s}"
            ) from exc

        self._write(profiles)
        logger.info(
            "Migrated %d legacy profile records in %s (backup: %s)",
            len(upgraded),
            self.registry_path,
            backup_path,
        )
        return MigrationReport(
            registry_path=self.registry_path,
            backup_path=backup_path,
            upgraded=tuple(upgraded),
            dropped_duplicates=tuple(dropped),
        )
