from __future__ import annotations

from pathlib import Path

import pytest

from identity_engine.data_models import ProjectAssignment
from identity_engine.errors import AssignmentNotFoundError, RegistryCorruptError, ValidationError
from identity_engine.projects import ProjectAssignmentTable


def test_assign_replaces_previous_assignment(tmp_path: Path) -> None:
    table = ProjectAssignmentTable(tmp_path / "projects")

    table.assign("corp-app", "personal")
    table.assign("site", "personal")
    table.assign("corp-app", "work")

    assert table.get("corp-app") == ProjectAssignment(project="corp-app", username="work")
    assert [a.project for a in table.list()] == ["site", "corp-app"]
    assert "corp-app=work" in (tmp_path / "projects").read_text(encoding="utf-8").splitlines()


def test_unassign_and_missing_project(tmp_path: Path) -> None:
    table = ProjectAssignmentTable(tmp_path / "projects")
    table.assign("corp-app", "work")

    assert table.unassign("corp-app").username == "work"
    assert table.get("corp-app") is None
    with pytest.raises(AssignmentNotFoundError):
        table.unassign("corp-app")


def test_remove_user_returns_affected_projects(tmp_path: Path) -> None:
    table = ProjectAssignmentTable(tmp_path / "projects")
    table.assign("a", "work")
    table.assign("b", "personal")
    table.assign("c", "work")

    assert table.remove_user("work") == ["a", "c"]
    assert [a.project for a in table.list()] == ["b"]
    assert table.remove_user("work") == []


@pytest.mark.parametrize("project", ["", "a/b", "x=y"])
def test_invalid_project_names_are_rejected(tmp_path: Path, project: str) -> None:
    with pytest.raises(ValidationError):
        ProjectAssignmentTable(tmp_path / "projects").assign(project, "work")


def test_corrupt_line_reports_location(tmp_path: Path) -> None:
    registry = tmp_path / "projects"
    registry.write_text("corp-app=work\nno separator here\n", encoding="utf-8")

    with pytest.raises(RegistryCorruptError) as excinfo:
        ProjectAssignmentTable(registry).list()
    assert excinfo.value.line_number == 2
