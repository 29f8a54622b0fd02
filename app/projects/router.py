# FILE: app/projects/router.py
"""
Projects Router

Project CRUD, live file access, export and version history:
- /projects                               list / create
- /projects/{id}                          read / update / delete
- /projects/{id}/files                    visible files, read / delete one
- /projects/{id}/download                 zip of visible files
- /projects/{id}/files/download?name=     single file
- /projects/{id}/plan                     raw markdown of the last turn
- /projects/{id}/versions                 list / commit
- /projects/{id}/versions/{vid}           read / delete, /revert
"""
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

import logging

from app.db import get_db
from app.oplog.service import add_log
from app.projects import schemas, service
from app.projects.export import archive_folder_name, build_project_zip, download_filename
from app.projects.models import Project
from app.projects.versions import (
    InvalidCommitMessageError,
    VersionNotFoundError,
    VersionStore,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


def _project_out(project: Project) -> schemas.ProjectOut:
    out = schemas.ProjectOut.model_validate(project)
    return out.model_copy(update={"files": service.visible_files(out.files)})


def _require(db: Session, project_id: int) -> Project:
    try:
        return service.require_project(db, project_id)
    except service.ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}


# =============================================================================
# PROJECTS
# =============================================================================

@router.get("", response_model=List[schemas.ProjectSummary])
def list_projects(db: Session = Depends(get_db)):
    return service.list_projects(db)


@router.post("", response_model=schemas.ProjectOut)
def create_project(data: Optional[schemas.ProjectCreate] = None, db: Session = Depends(get_db)):
    project = service.create_project(db, data)
    add_log(f"Project created: {project.name}", level="info", phase="Projects")
    return _project_out(project)


@router.get("/{project_id}", response_model=schemas.ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db)):
    return _project_out(_require(db, project_id))


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
def update_project(project_id: int, data: schemas.ProjectUpdate, db: Session = Depends(get_db)):
    try:
        project = service.update_project(db, project_id, data)
    except service.ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except service.InvalidProjectInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _project_out(project)


@router.delete("/{project_id}")
def delete_project(project_id: int, db: Session = Depends(get_db)):
    if not service.delete_project(db, project_id):
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return {"status": "deleted", "project_id": project_id}


# =============================================================================
# FILES / EXPORT
# =============================================================================

@router.get("/{project_id}/files", response_model=List[schemas.ProjectFile])
def list_files(project_id: int, db: Session = Depends(get_db)):
    project = _require(db, project_id)
    return service.visible_files(service.load_files(project))


@router.get("/{project_id}/files/content", response_model=schemas.ProjectFile)
def read_file(project_id: int, name: str = Query(...), db: Session = Depends(get_db)):
    try:
        return service.get_file(db, project_id, name)
    except (service.ProjectNotFoundError, service.ProjectFileNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{project_id}/files")
def delete_file(project_id: int, name: str = Query(...), db: Session = Depends(get_db)):
    try:
        service.delete_file(db, project_id, name)
    except (service.ProjectNotFoundError, service.ProjectFileNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted", "name": name}


@router.get("/{project_id}/files/download")
def download_file(project_id: int, name: str = Query(...), db: Session = Depends(get_db)):
    try:
        f = service.get_file(db, project_id, name)
    except (service.ProjectNotFoundError, service.ProjectFileNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(
        content=f.content,
        media_type="text/plain; charset=utf-8",
        headers=_attachment(download_filename(f.name)),
    )


@router.get("/{project_id}/download")
def download_project(project_id: int, db: Session = Depends(get_db)):
    project = _require(db, project_id)
    data = build_project_zip(project.name, service.load_files(project))
    return Response(
        content=data,
        media_type="application/zip",
        headers=_attachment(f"{archive_folder_name(project.name)}.zip"),
    )


@router.get("/{project_id}/plan")
def download_plan(project_id: int, db: Session = Depends(get_db)):
    project = _require(db, project_id)
    if not project.last_output:
        raise HTTPException(status_code=404, detail="No generated plan for this project yet")
    return Response(
        content=project.last_output,
        media_type="text/markdown; charset=utf-8",
        headers=_attachment(f"{archive_folder_name(project.name)}-plan.md"),
    )


# =============================================================================
# VERSIONS
# =============================================================================

@router.get("/{project_id}/versions", response_model=List[schemas.VersionSummary])
def list_versions(project_id: int, db: Session = Depends(get_db)):
    _require(db, project_id)
    return VersionStore.list_for_display(db, project_id)


@router.post("/{project_id}/versions", response_model=schemas.VersionOut)
def commit_version(project_id: int, req: schemas.CommitRequest, db: Session = Depends(get_db)):
    _require(db, project_id)
    try:
        version = VersionStore.commit(db, project_id, req.message)
    except InvalidCommitMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    add_log("Version committed successfully", level="success", phase="VCS")
    return schemas.VersionOut.model_validate(version)


@router.get("/{project_id}/versions/{version_id}", response_model=schemas.VersionOut)
def get_version(project_id: int, version_id: str, db: Session = Depends(get_db)):
    _require(db, project_id)
    try:
        return schemas.VersionOut.model_validate(VersionStore.get(db, project_id, version_id))
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{project_id}/versions/{version_id}/revert", response_model=schemas.ProjectOut)
def revert_version(project_id: int, version_id: str, db: Session = Depends(get_db)):
    _require(db, project_id)
    try:
        project = VersionStore.revert(db, project_id, version_id)
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    add_log("Reverted to selected version", level="warn", phase="VCS")
    return _project_out(project)


@router.delete("/{project_id}/versions/{version_id}")
def delete_version(project_id: int, version_id: str, db: Session = Depends(get_db)):
    _require(db, project_id)
    try:
        VersionStore.delete(db, project_id, version_id)
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    add_log("Version deleted", level="info", phase="VCS")
    return {"status": "deleted", "version_id": version_id}
