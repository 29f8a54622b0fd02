# FILE: app/projects/versions.py
"""
Version Store

Append-only snapshots of a project's live file set.

- commit: deep-copies the live files into a new Version, appends it and
  marks it active. Committing zero files is valid.
- revert: deep-copies a Version's files back into the live set and marks it
  active. No version is removed or altered (history is never rewritten).
- delete: drops one Version record. The live files and the active pointer
  are left alone, even when the active version is the one deleted.

Stored order is chronological (Version.seq); listings are newest first.

Snapshots never share list/dict objects with Project.files; that copy at
the commit and revert boundaries is what keeps a Version immutable.
"""
from __future__ import annotations

import copy
import logging
from typing import List
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.projects.models import Project, Version
from app.projects.schemas import VersionSummary
from app.projects.service import require_project

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class VersionError(Exception):
    """Base exception for version operations."""
    pass


class VersionNotFoundError(VersionError):
    """Version id is not in the project's history."""
    pass


class InvalidCommitMessageError(VersionError):
    """Commit message is empty."""
    pass


# =============================================================================
# VERSION STORE
# =============================================================================

class VersionStore:
    """Commit / revert / delete operations on a project's version history."""

    @staticmethod
    def _find(db: Session, project: Project, version_id: str) -> Version:
        version = (
            db.query(Version)
            .filter(Version.id == version_id, Version.project_id == project.id)
            .first()
        )
        if version is None:
            raise VersionNotFoundError(f"Version not found: {version_id}")
        return version

    @staticmethod
    def commit(db: Session, project_id: int, message: str) -> Version:
        """
        Snapshot the live file set.

        Raises:
            ProjectNotFoundError: unknown project
            InvalidCommitMessageError: empty / whitespace-only message
        """
        if not message or not message.strip():
            raise InvalidCommitMessageError("Commit message cannot be empty")

        project = require_project(db, project_id)
        last_seq = (
            db.query(func.max(Version.seq))
            .filter(Version.project_id == project.id)
            .scalar()
        )

        version = Version(
            id=f"v-{uuid4().hex}",
            project_id=project.id,
            seq=(last_seq or 0) + 1,
            message=message,
            files=copy.deepcopy(project.files or []),
        )
        db.add(version)
        project.active_version_id = version.id
        db.commit()
        db.refresh(version)

        logger.info(
            "[versions] Committed %s for project %s (%d files)",
            version.id, project.id, len(version.files),
        )
        return version

    @staticmethod
    def revert(db: Session, project_id: int, version_id: str) -> Project:
        """
        Replace the live file set with a copy of the version's files.

        Raises:
            ProjectNotFoundError: unknown project
            VersionNotFoundError: version id not in this project
        """
        project = require_project(db, project_id)
        version = VersionStore._find(db, project, version_id)

        project.files = copy.deepcopy(version.files or [])
        project.active_version_id = version.id
        db.commit()
        db.refresh(project)

        logger.info("[versions] Reverted project %s to %s", project.id, version.id)
        return project

    @staticmethod
    def delete(db: Session, project_id: int, version_id: str) -> None:
        """
        Remove a version record. Live files and active_version_id are untouched.

        Raises:
            ProjectNotFoundError: unknown project
            VersionNotFoundError: version id not in this project
        """
        project = require_project(db, project_id)
        version = VersionStore._find(db, project, version_id)
        db.delete(version)
        db.commit()
        logger.info("[versions] Deleted %s from project %s", version_id, project.id)

    @staticmethod
    def get(db: Session, project_id: int, version_id: str) -> Version:
        project = require_project(db, project_id)
        return VersionStore._find(db, project, version_id)

    @staticmethod
    def history(db: Session, project_id: int) -> List[Version]:
        """Chronological (append) order."""
        project = require_project(db, project_id)
        return (
            db.query(Version)
            .filter(Version.project_id == project.id)
            .order_by(Version.seq.asc())
            .all()
        )

    @staticmethod
    def list_for_display(db: Session, project_id: int) -> List[VersionSummary]:
        """Newest first, with the active marker resolved."""
        project = require_project(db, project_id)
        versions = VersionStore.history(db, project_id)
        return [
            VersionSummary(
                id=v.id,
                message=v.message,
                timestamp=v.created_at,
                file_count=len(v.files or []),
                is_active=(v.id == project.active_version_id),
            )
            for v in reversed(versions)
        ]
