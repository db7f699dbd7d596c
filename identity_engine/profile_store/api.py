"""
ProfileStore public API.

This module defines the persistence surface that the command line layer and
the other engine components are allowed to call. Callers speak only in typed
domain objects; the on-disk record format stays private to implementations.

Notes
-----
- Every mutation is a full-record rewrite, never a partial patch.
- Reads never coerce an older record shape into the current one.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from ..data_models import UserProfile


class ProfileStore(Protocol):
    """Persistence API for identity profiles."""

    def create(
        self,
        username: str,
        display_name: str = "",
        email: str = "",
        key_path: str = "",
        host: str = "",
    ) -> UserProfile:
        """
        Create a profile.

        Raises
        ------
        ProfileExistsError
            If username is already registered.
        ValidationError
            If any field violates its constraint.
        """
        raise NotImplementedError

    def get(self, username: str) -> UserProfile:
        """
        Load one profile.

        Raises
        ------
        ProfileNotFoundError
            If username is not registered.
        FormatMigrationNeededError
            If the user's record is stored in an older format.
        """
        raise NotImplementedError

    def update(self, username: str, **fields: str) -> UserProfile:
        """
        Merge fields into an existing profile and rewrite it.

        Raises
        ------
        ProfileNotFoundError
            If username is not registered.
        """
        raise NotImplementedError

    def delete(self, username: str) -> None:
        """
        Remove a profile.

        Raises
        ------
        ProfileNotFoundError
            If username is not registered.
        """
        raise NotImplementedError

    def list(self) -> Sequence[UserProfile]:
        """Return all profiles in registry order."""
        raise NotImplementedError
