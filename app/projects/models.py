# app/projects/models.py
"""
SQLAlchemy ORM models for generated projects.

Project.files holds the live file set as a JSON list of
{"name", "content", "language"} dicts (names unique, display order kept).
Version.files holds an independent copy of that list taken at commit time.
JSON columns are not mutation-tracked: always assign a new list.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from app.db import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    status = Column(String(20), default="active", nullable=False)  # active | generating | completed | error
    description = Column(Text, nullable=False, default="")
    files = Column(JSON, nullable=False, default=list)

    # Version the live files were last derived from. May point at a deleted version.
    active_version_id = Column(String(40), nullable=True)

    # Raw markdown of the last completed generation turn
    last_output = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    versions = relationship(
        "Version",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Version.seq",
    )


class Version(Base):
    """
    Immutable snapshot of a project's file set.

    `seq` is the append position within the project (chronological order).
    """
    __tablename__ = "versions"

    id = Column(String(40), primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    message = Column(Text, nullable=False)
    files = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="versions")
