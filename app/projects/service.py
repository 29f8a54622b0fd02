# FILE: app/projects/service.py
"""
Project service layer.

Projects own a live file set (JSON list on the row). Every write goes
through store_files(), which copies the incoming records and enforces unique
names, so no caller can alias a stored list.
"""
from __future__ import annotations

import copy
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.projects import models, schemas
from app.projects.schemas import ProjectFile

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "New empty project"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ProjectError(Exception):
    """Base exception for project operations."""
    pass


class ProjectNotFoundError(ProjectError):
    """Project does not exist."""
    pass


class InvalidProjectInputError(ProjectError):
    """Empty name or otherwise unusable input."""
    pass


class ProjectFileNotFoundError(ProjectError):
    """No file with that name in the project."""
    pass


# ============== FILES ==============

def load_files(project: models.Project) -> List[ProjectFile]:
    return [ProjectFile.model_validate(f) for f in (project.files or [])]


def store_files(project: models.Project, files: Iterable[ProjectFile]) -> None:
    """Replace the live file set. Later duplicates of a name overwrite earlier ones."""
    by_name = {}
    for f in files:
        by_name[f.name] = f.model_dump()
    project.files = copy.deepcopy(list(by_name.values()))


def visible_files(files: Iterable[ProjectFile]) -> List[ProjectFile]:
    return [f for f in files if not f.is_hidden]


def summarize_files(files: Iterable[ProjectFile]) -> Optional[str]:
    """One line per visible file, or None for a project with nothing to show."""
    lines = [f"- {f.name} ({f.language})" for f in visible_files(files)]
    return "\n".join(lines) if lines else None


def get_file(db: Session, project_id: int, name: str) -> ProjectFile:
    project = require_project(db, project_id)
    for f in load_files(project):
        if f.name == name:
            return f
    raise ProjectFileNotFoundError(f"File not found: {name}")


def delete_file(db: Session, project_id: int, name: str) -> None:
    project = require_project(db, project_id)
    files = load_files(project)
    remaining = [f for f in files if f.name != name]
    if len(remaining) == len(files):
        raise ProjectFileNotFoundError(f"File not found: {name}")
    store_files(project, remaining)
    db.commit()


# ============== PROJECT ==============

def create_project(db: Session, data: Optional[schemas.ProjectCreate] = None) -> models.Project:
    data = data or schemas.ProjectCreate()
    name = (data.name or "").strip()
    if not name:
        name = f"Untitled-Project-{db.query(models.Project).count() + 1}"

    project = models.Project(
        name=name,
        status="active",
        description=data.description or DEFAULT_DESCRIPTION,
        files=[],
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("[projects] Created project %s (%s)", project.id, project.name)
    return project


def get_project(db: Session, project_id: int) -> Optional[models.Project]:
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def require_project(db: Session, project_id: int) -> models.Project:
    project = get_project(db, project_id)
    if project is None:
        raise ProjectNotFoundError(f"Project not found: {project_id}")
    return project


def list_projects(db: Session) -> List[models.Project]:
    return (
        db.query(models.Project)
        .order_by(models.Project.created_at.desc(), models.Project.id.desc())
        .all()
    )


def update_project(db: Session, project_id: int, data: schemas.ProjectUpdate) -> models.Project:
    project = require_project(db, project_id)
    if data.name is not None:
        name = data.name.strip()
        if not name:
            raise InvalidProjectInputError("Project name cannot be empty")
        project.name = name
    if data.description is not None:
        project.description = data.description
    db.commit()
    db.refresh(project)
    return project


def set_status(db: Session, project: models.Project, status: str) -> None:
    project.status = status
    db.commit()


def delete_project(db: Session, project_id: int) -> bool:
    project = get_project(db, project_id)
    if not project:
        return False
    db.delete(project)
    db.commit()
    logger.info("[projects] Deleted project %s", project_id)
    return True
