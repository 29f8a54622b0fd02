# FILE: app/projects/schemas.py
"""
Project module Pydantic schemas.

ProjectFile is the unit the extractor, the merger and the version store all
work on. Names starting with HIDDEN_PREFIX are hidden: kept and mergeable,
but left out of user-facing listings and exports.
"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

HIDDEN_PREFIX = "."

ProjectStatus = Literal["active", "generating", "completed", "error"]


# ============== FILE ==============

class ProjectFile(BaseModel):
    name: str
    content: str = ""
    language: str = "text"

    @property
    def is_hidden(self) -> bool:
        return self.name.startswith(HIDDEN_PREFIX)


# ============== PROJECT ==============

class ProjectCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: ProjectStatus
    description: str
    files: List[ProjectFile]
    active_version_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class ProjectSummary(BaseModel):
    """List view: no file contents."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: ProjectStatus
    description: str
    created_at: datetime


# ============== VERSION ==============

class CommitRequest(BaseModel):
    message: str


class VersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    message: str
    timestamp: datetime = Field(validation_alias=AliasChoices("created_at", "timestamp"))
    files: List[ProjectFile]


class VersionSummary(BaseModel):
    id: str
    message: str
    timestamp: datetime
    file_count: int
    is_active: bool
