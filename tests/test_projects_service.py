# FILE: tests/test_projects_service.py
"""
Tests for app/projects/service.py and app/projects/export.py
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import io
import zipfile

import pytest

from app.projects import schemas, service
from app.projects.export import build_project_zip, download_filename
from app.projects.schemas import ProjectFile


def _f(name, content="", language="text"):
    return ProjectFile(name=name, content=content, language=language)


class TestProjectCrud:

    def test_create_defaults(self, db_session):
        p = service.create_project(db_session)
        assert p.name == "Untitled-Project-1"
        assert p.status == "active"
        assert p.description == "New empty project"
        assert p.files == []
        assert p.active_version_id is None

    def test_default_name_counts_existing(self, db_session):
        service.create_project(db_session)
        second = service.create_project(db_session)
        assert second.name == "Untitled-Project-2"

    def test_create_with_name(self, db_session):
        p = service.create_project(db_session, schemas.ProjectCreate(name="  RAG-PDF-Analyzer "))
        assert p.name == "RAG-PDF-Analyzer"

    def test_rename_rejects_empty(self, db_session):
        p = service.create_project(db_session)
        with pytest.raises(service.InvalidProjectInputError):
            service.update_project(db_session, p.id, schemas.ProjectUpdate(name="  "))

    def test_rename(self, db_session):
        p = service.create_project(db_session)
        updated = service.update_project(db_session, p.id, schemas.ProjectUpdate(name="Renamed"))
        assert updated.name == "Renamed"

    def test_update_missing_project(self, db_session):
        with pytest.raises(service.ProjectNotFoundError):
            service.update_project(db_session, 42, schemas.ProjectUpdate(name="x"))

    def test_list_newest_first(self, db_session):
        a = service.create_project(db_session)
        b = service.create_project(db_session)
        assert [p.id for p in service.list_projects(db_session)] == [b.id, a.id]

    def test_delete(self, db_session):
        p = service.create_project(db_session)
        assert service.delete_project(db_session, p.id) is True
        assert service.get_project(db_session, p.id) is None
        assert service.delete_project(db_session, p.id) is False


class TestFiles:

    def test_store_files_dedupes_names(self, db_session):
        p = service.create_project(db_session)
        service.store_files(p, [_f("a", "1"), _f("b"), _f("a", "2")])
        assert [f["name"] for f in p.files] == ["a", "b"]
        assert p.files[0]["content"] == "2"

    def test_visible_files_hide_dot_prefix(self):
        files = [_f("main.py"), _f(".conversation_history"), _f("src/.env.example")]
        assert [f.name for f in service.visible_files(files)] == ["main.py", "src/.env.example"]

    def test_summarize_files(self):
        files = [_f("main.py", language="python"), _f(".conversation_history")]
        assert service.summarize_files(files) == "- main.py (python)"
        assert service.summarize_files([_f(".conversation_history")]) is None

    def test_get_and_delete_file(self, db_session):
        p = service.create_project(db_session)
        service.store_files(p, [_f("a", "1"), _f("b", "2")])
        db_session.commit()

        assert service.get_file(db_session, p.id, "b").content == "2"
        service.delete_file(db_session, p.id, "a")
        assert [f.name for f in service.load_files(p)] == ["b"]

        with pytest.raises(service.ProjectFileNotFoundError):
            service.get_file(db_session, p.id, "a")
        with pytest.raises(service.ProjectFileNotFoundError):
            service.delete_file(db_session, p.id, "a")


class TestExport:

    def test_zip_has_visible_files_under_project_folder(self):
        files = [_f("main.py", "print(1)"), _f("app/util.py", "x"), _f(".conversation_history", "USER: hi")]
        data = build_project_zip("Demo", files)

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = sorted(zf.namelist())
            assert names == ["Demo/app/util.py", "Demo/main.py"]
            assert zf.read("Demo/main.py").decode() == "print(1)"

    def test_zip_entries_cannot_escape_folder(self):
        data = build_project_zip("Demo", [_f("../../etc/passwd", "x")])
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["Demo/etc/passwd"]

    def test_download_filename(self):
        assert download_filename("src/app/main.py") == "main.py"
        assert download_filename("main.py") == "main.py"
        assert download_filename("dir/") == "file"
