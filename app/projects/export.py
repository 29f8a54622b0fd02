# FILE: app/projects/export.py
"""
Project export helpers.

- build_project_zip(): one archive entry per visible file, under a
  "<project name>/" folder, relative paths preserved
- download_filename(): suggested filename for a single-file download
"""
from __future__ import annotations

import io
import re
import zipfile
from typing import Iterable

from app.projects.schemas import ProjectFile
from app.projects.service import visible_files

_UNSAFE_SEGMENT = re.compile(r"[\\:*?\"<>|]")


def _safe_entry_path(name: str) -> str:
    # Drop empty / "." / ".." segments so entries cannot escape the project folder
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    return "/".join(_UNSAFE_SEGMENT.sub("_", p) for p in parts)


def archive_folder_name(project_name: str) -> str:
    return _safe_entry_path(project_name).replace("/", "_") or "project"


def build_project_zip(project_name: str, files: Iterable[ProjectFile]) -> bytes:
    folder = archive_folder_name(project_name)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in visible_files(files):
            entry = _safe_entry_path(f.name)
            if not entry:
                continue
            zf.writestr(f"{folder}/{entry}", f.content)
    return buf.getvalue()


def download_filename(name: str) -> str:
    """Last path segment of a file name, or "file" when there is none."""
    return name.split("/")[-1] or "file"
