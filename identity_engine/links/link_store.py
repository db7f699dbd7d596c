"""
Directory link registry.

One record per line: ``path<TAB>username<TAB>mode``. Paths are stored
normalized, so at most one record exists per directory. Mutations use the same
read-all / write-temp / rename discipline as the profile registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from ..data_models import DirectoryLink, LinkMode
from ..errors import LinkNotFoundError, RegistryCorruptError, ValidationError
from ..paths_and_safety import is_ancestor_or_self
from ..registry_io import read_registry_lines, write_registry_lines

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\t"


def encode_link(link: DirectoryLink) -> str:
    """Encode a link as one registry line."""
    return FIELD_SEPARATOR.join((str(link.path), link.username, link.mode.value))


def decode_link(line: str, *, path: Path, line_number: int) -> DirectoryLink:
    """
    Decode one registry line.

    Raises
    ------
    RegistryCorruptError
        If the line does not hold exactly three valid fields.
    """
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != 3:
        raise RegistryCorruptError(path, line_number, f"expected 3 fields, found {len(fields)}")
    raw_path, username, mode = fields
    try:
        return DirectoryLink(path=Path(raw_path), username=username, mode=LinkMode.parse(mode))
    except ValidationError as exc:
        raise RegistryCorruptError(path, line_number, str(exc)) from exc


def longest_match(current: Path, links: Iterable[DirectoryLink]) -> DirectoryLink | None:
    """
    Select the most specific link covering a directory.

    Parameters
    ----------
    current:
        Normalized directory path.
    links:
        Candidate links. Their paths are unique, so ties cannot occur.

    Returns
    -------
    DirectoryLink | None
        The link whose path is the deepest component-wise ancestor-or-self of
        current, or None.
    """
    best: DirectoryLink | None = None
    for link in links:
        if not is_ancestor_or_self(link.path, current):
            continue
        if best is None or len(link.path.parts) > len(best.path.parts):
            best = link
    return best


@dataclass(frozen=True, slots=True)
class DirectoryLinkTable:
    """
    Registry of directory links.

    Parameters
    ----------
    registry_path:
        Path to the link registry. Created by the first write.
    """

    registry_path: Path

    def list(self) -> list[DirectoryLink]:
        """Return all links in registry order."""
        links: list[DirectoryLink] = []
        for index, raw in enumerate(read_registry_lines(self.registry_path), start=1):
            if not raw.strip() or raw.startswith("#"):
                continue
            links.append(decode_link(raw, path=self.registry_path, line_number=index))
        return links

    def _write(self, links: Sequence[DirectoryLink]) -> None:
        write_registry_lines(self.registry_path, [encode_link(link) for link in links])

    def get(self, path: Path) -> DirectoryLink | None:
        """Return the link stored for exactly this normalized path."""
        for link in self.list():
            if link.path == path:
                return link
        return None

    def upsert(self, link: DirectoryLink) -> DirectoryLink | None:
        """
        Insert or replace the link for link.path.

        Returns
        -------
        DirectoryLink | None
            The link that was replaced, if any.
        """
        links = self.list()
        previous: DirectoryLink | None = None
        for index, existing in enumerate(links):
            if existing.path == link.path:
                previous = existing
                links[index] = link
                break
        else:
            links.append(link)
        self._write(links)
        return previous

    def remove(self, path: Path) -> DirectoryLink:
        """
        Remove the link stored for path.

        Raises
        ------
        LinkNotFoundError
            If no link exists for path.
        """
        links = self.list()
        for index, existing in enumerate(links):
            if existing.path == path:
                del links[index]
                self._write(links)
                return existing
        raise LinkNotFoundError(str(path))

    def remove_user(self, username: str) -> list[DirectoryLink]:
        """Remove every link for a user and return the removed links."""
        links = self.list()
        removed = [link for link in links if link.username == username]
        if removed:
            self._write([link for link in links if link.username != username])
            logger.debug("Removed %d link(s) for %s", len(removed), username)
        return removed

    def fingerprint(self) -> str:
        """
        Return a cheap identity for the registry's current content.

        Notes
        -----
        Atomic rewrites replace the inode, so (inode, mtime_ns, size) changes on
        every mutation made by this engine and on most out-of-band edits.
        """
        try:
            st = self.registry_path.stat()
        except FileNotFoundError:
            return "empty"
        return f"{st.st_ino:x}-{st.st_mtime_ns:x}-{st.st_size:x}"
