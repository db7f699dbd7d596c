"""
Content-addressed cache of directory resolution decisions.

Each entry maps sha256(normalized path) to the link that resolution chose (or
to "no match"). Entries live under a generation directory named after the link
registry's fingerprint, so a registry change can never serve a stale answer
even if the wholesale wipe on link/unlink did not happen.

The cache is advisory. Any read or write problem is a miss; nothing here may
change the result of a resolution.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..data_models import DirectoryLink, LinkMode
from ..errors import IOFailureError, ValidationError
from ..registry_io import write_text_atomic

logger = logging.getLogger(__name__)

_MATCH = "match"
_NO_MATCH = "none"


def path_digest(path: Path) -> str:
    """Return the stable content hash used as a cache entry name."""
    return hashlib.sha256(str(path).encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CacheHit:
    """A cached decision. link is None for a cached "no match"."""

    link: DirectoryLink | None


@dataclass(frozen=True, slots=True)
class DecisionCache:
    """
    Decision cache rooted at a directory.

    Parameters
    ----------
    cache_root:
        Directory holding generation subdirectories. Safe to delete.
    """

    cache_root: Path

    def _entry_path(self, path: Path, generation: str) -> Path:
        return self.cache_root / generation / path_digest(path)

    def lookup(self, path: Path, generation: str) -> CacheHit | None:
        """Return the cached decision for path, or None on a miss."""
        entry = self._entry_path(path, generation)
        try:
            text = entry.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Decision cache read failed for %s: %s", entry, exc)
            return None

        fields = text.rstrip("\n").split("\t")
        if fields == [_NO_MATCH, str(path)]:
            return CacheHit(link=None)
        if len(fields) == 5 and fields[0] == _MATCH and fields[1] == str(path):
            try:
                link = DirectoryLink(
                    path=Path(fields[2]), username=fields[3], mode=LinkMode.parse(fields[4])
                )
            except ValidationError:
                return None
            return CacheHit(link=link)
        # Malformed entry or a digest collision on a different path.
        return None

    def store(self, path: Path, generation: str, link: DirectoryLink | None) -> None:
        """Record a decision. Failures are logged and ignored."""
        if link is None:
            payload = f"{_NO_MATCH}\t{path}\n"
        else:
            payload = f"{_MATCH}\t{path}\t{link.path}\t{link.username}\t{link.mode.value}\n"
        try:
            write_text_atomic(self._entry_path(path, generation), payload)
        except (IOFailureError, OSError) as exc:
            logger.debug("Decision cache write skipped for %s: %s", path, exc)

    def clear(self) -> None:
        """Delete every cached decision."""
        try:
            shutil.rmtree(self.cache_root)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.debug("Decision cache clear incomplete at %s: %s", self.cache_root, exc)
