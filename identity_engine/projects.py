"""
Project assignments.

The older, non-hierarchical way of binding an account to a repository: one
``project=username`` line per project, where the project is the basename of
the repository's top-level directory. The commit guard consults it when no
directory link covers the repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .data_models import ProjectAssignment
from .errors import AssignmentNotFoundError, RegistryCorruptError, ValidationError
from .registry_io import read_registry_lines, write_registry_lines

logger = logging.getLogger(__name__)


def _decode(line: str, *, path: Path, line_number: int) -> ProjectAssignment:
    project, sep, username = line.partition("=")
    if not sep:
        raise RegistryCorruptError(path, line_number, "expected project=username")
    try:
        return ProjectAssignment(project=project, username=username.strip())
    except ValidationError as exc:
        raise RegistryCorruptError(path, line_number, str(exc)) from exc


@dataclass(frozen=True, slots=True)
class ProjectAssignmentTable:
    """Registry of project assignments stored at registry_path."""

    registry_path: Path

    def list(self) -> list[ProjectAssignment]:
        assignments: list[ProjectAssignment] = []
        for index, raw in enumerate(read_registry_lines(self.registry_path), start=1):
            if not raw.strip() or raw.startswith("#"):
                continue
            assignments.append(_decode(raw, path=self.registry_path, line_number=index))
        return assignments

    def _write(self, assignments: Sequence[ProjectAssignment]) -> None:
        write_registry_lines(
            self.registry_path, [f"{a.project}={a.username}" for a in assignments]
        )

    def get(self, project: str) -> ProjectAssignment | None:
        for assignment in self.list():
            if assignment.project == project:
                return assignment
        return None

    def assign(self, project: str, username: str) -> ProjectAssignment:
        """Assign a project to a user, replacing any previous assignment."""
        assignment = ProjectAssignment(project=project, username=username)
        assignments = [a for a in self.list() if a.project != project]
        assignments.append(assignment)
        self._write(assignments)
        logger.info("Assigned project %s to %s", project, username)
        return assignment

    def unassign(self, project: str) -> ProjectAssignment:
        """
        Remove a project's assignment.

        Raises
        ------
        AssignmentNotFoundError
            If the project has no assignment.
        """
        assignments = self.list()
        for index, existing in enumerate(assignments):
            if existing.project == project:
                del assignments[index]
                self._write(assignments)
                logger.info("Removed assignment for project %s", project)
                return existing
        raise AssignmentNotFoundError(project)

    def remove_user(self, username: str) -> list[str]:
        """Remove every assignment for a user; return the affected project names."""
        assignments = self.list()
        removed = [a.project for a in assignments if a.username == username]
        if removed:
            self._write([a for a in assignments if a.username != username])
        return removed
