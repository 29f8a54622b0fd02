# FILE: tests/test_routers.py
"""
HTTP-level tests for the FastAPI routers (TestClient, in-memory SQLite).
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import io
import json
import zipfile
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from main import app
from app.connectivity.monitor import ConnectivityMonitor
from app.connectivity.service import get_monitor
from app.db import get_db, get_session_factory
from app.generation.service import GenerationService, get_generation_service
from app.oplog.service import OperationLog
from app.providers.config_store import internal_config
from app.providers.errors import ProviderHTTPError
from app.providers.schemas import ConnectivityReport

HELLO_OUTPUT = '**File: main.py**\n```python\nprint("hi")\n```\n'


def _resolver(db):
    config = internal_config()
    return config, config.models[0]


@pytest.fixture
def gateway(scripted_gateway):
    return scripted_gateway([HELLO_OUTPUT[:10], HELLO_OUTPUT[10:]])


@pytest.fixture
def probe():
    return AsyncMock(return_value=ConnectivityReport(
        success=True, message="Connect OK", latency=12, model_id="gpt-4o", channel="openai", timestamp=1,
    ))


@pytest.fixture
def client(session_factory, gateway, probe):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    service = GenerationService(gateway, log=OperationLog(), system_prompt="SYS", model_resolver=_resolver)
    monitor = ConnectivityMonitor(probe, cooldown=20, penalty_delay=60, poll_interval=120)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_generation_service] = lambda: service
    app.dependency_overrides[get_monitor] = lambda: monitor
    yield TestClient(app)
    app.dependency_overrides.clear()


def _events(resp):
    return [json.loads(line[len("data: "):]) for line in resp.text.split("\n\n") if line.startswith("data: ")]


class TestProjectsApi:

    def test_ping(self, client):
        assert client.get("/ping").json() == {"status": "ok"}

    def test_create_list_get(self, client):
        created = client.post("/projects").json()
        assert created["name"] == "Untitled-Project-1"
        assert created["status"] == "active"
        assert created["files"] == []

        listed = client.get("/projects").json()
        assert [p["id"] for p in listed] == [created["id"]]
        assert client.get(f"/projects/{created['id']}").json()["description"] == "New empty project"

    def test_missing_project_404(self, client):
        assert client.get("/projects/999").status_code == 404
        assert client.delete("/projects/999").status_code == 404

    def test_rename(self, client):
        pid = client.post("/projects", json={"name": "Demo"}).json()["id"]
        assert client.patch(f"/projects/{pid}", json={"name": "Renamed"}).json()["name"] == "Renamed"
        assert client.patch(f"/projects/{pid}", json={"name": " "}).status_code == 400


class TestGenerationApi:

    def test_generate_json(self, client):
        pid = client.post("/projects").json()["id"]
        resp = client.post(f"/generate/projects/{pid}", json={"intent": "build a hello-world script"})
        assert resp.status_code == 200
        assert resp.json()["file_names"] == ["main.py"]

        project = client.get(f"/projects/{pid}").json()
        assert project["status"] == "completed"
        assert [f["name"] for f in project["files"]] == ["main.py"]

    def test_generate_stream(self, client):
        pid = client.post("/projects").json()["id"]
        resp = client.post(f"/generate/projects/{pid}/stream", json={"intent": "build a hello-world script"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        events = _events(resp)
        tokens = [e["content"] for e in events if e["type"] == "token"]
        assert "".join(tokens) == HELLO_OUTPUT
        assert events[-1] == {
            "type": "done",
            "extracted_count": 1,
            "files": ["main.py"],
            "output_length": len(HELLO_OUTPUT),
        }

        content = client.get(f"/projects/{pid}/files/content", params={"name": "main.py"}).json()
        assert content["content"] == 'print("hi")'
        history = client.get(f"/projects/{pid}/files/content", params={"name": ".conversation_history"}).json()
        assert "USER: build a hello-world script" in history["content"]

    def test_stream_rejects_empty_intent_and_missing_project(self, client):
        pid = client.post("/projects").json()["id"]
        assert client.post(f"/generate/projects/{pid}/stream", json={"intent": ""}).status_code == 400
        assert client.post("/generate/projects/999/stream", json={"intent": "x"}).status_code == 404

    def test_provider_error_maps_to_502(self, client, gateway):
        gateway.deltas = []
        gateway.error = ProviderHTTPError("Invalid API key", 401)
        pid = client.post("/projects").json()["id"]

        resp = client.post(f"/generate/projects/{pid}", json={"intent": "x"})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "Invalid API key"
        assert client.get(f"/projects/{pid}").json()["status"] == "error"

    def test_provider_error_as_stream_event(self, client, gateway):
        gateway.deltas = []
        gateway.error = ProviderHTTPError("Invalid API key", 401)
        pid = client.post("/projects").json()["id"]

        events = _events(client.post(f"/generate/projects/{pid}/stream", json={"intent": "x"}))
        assert events == [{"type": "error", "error": "Invalid API key", "kind": "http"}]

    def test_cancel_when_idle(self, client):
        pid = client.post("/projects").json()["id"]
        assert client.post(f"/generate/projects/{pid}/cancel").json() == {"project_id": pid, "cancelled": False}


class TestExportApi:

    def _generated(self, client):
        pid = client.post("/projects", json={"name": "Demo"}).json()["id"]
        client.post(f"/generate/projects/{pid}", json={"intent": "build a hello-world script"})
        return pid

    def test_zip_download(self, client):
        pid = self._generated(client)
        resp = client.get(f"/projects/{pid}/download")
        assert resp.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(resp.content)) as zf:
            assert zf.namelist() == ["Demo/main.py"]

    def test_single_file_download(self, client):
        pid = self._generated(client)
        resp = client.get(f"/projects/{pid}/files/download", params={"name": "main.py"})
        assert resp.text == 'print("hi")'
        assert "main.py" in resp.headers["content-disposition"]

    def test_plan_download(self, client):
        pid = client.post("/projects").json()["id"]
        assert client.get(f"/projects/{pid}/plan").status_code == 404
        client.post(f"/generate/projects/{pid}", json={"intent": "x"})
        assert client.get(f"/projects/{pid}/plan").text == HELLO_OUTPUT


class TestVersionsApi:

    def test_commit_revert_delete(self, client):
        pid = client.post("/projects").json()["id"]
        client.post(f"/generate/projects/{pid}", json={"intent": "first"})

        v1 = client.post(f"/projects/{pid}/versions", json={"message": "v1"}).json()
        assert [f["name"] for f in v1["files"]] == ["main.py", ".conversation_history"]

        client.delete(f"/projects/{pid}/files", params={"name": "main.py"})
        assert client.get(f"/projects/{pid}/files").json() == []

        reverted = client.post(f"/projects/{pid}/versions/{v1['id']}/revert").json()
        assert [f["name"] for f in reverted["files"]] == ["main.py"]
        assert reverted["active_version_id"] == v1["id"]

        listed = client.get(f"/projects/{pid}/versions").json()
        assert [v["id"] for v in listed] == [v1["id"]]
        assert listed[0]["is_active"]

        assert client.delete(f"/projects/{pid}/versions/{v1['id']}").status_code == 200
        assert client.get(f"/projects/{pid}/versions").json() == []
        assert client.get(f"/projects/{pid}").json()["active_version_id"] == v1["id"]

    def test_commit_requires_message(self, client):
        pid = client.post("/projects").json()["id"]
        assert client.post(f"/projects/{pid}/versions", json={"message": ""}).status_code == 400

    def test_unknown_version(self, client):
        pid = client.post("/projects").json()["id"]
        assert client.post(f"/projects/{pid}/versions/v-nope/revert").status_code == 404
        assert client.delete(f"/projects/{pid}/versions/v-nope").status_code == 404


class TestProvidersApi:

    def test_list_has_internal_config_masked(self, client):
        configs = client.get("/providers/configs").json()
        assert configs[0]["id"] == "google-internal"
        assert "api_key" not in configs[0]

    def test_add_config_and_set_primary(self, client):
        created = client.post("/providers/configs", json={
            "channel": "openai", "api_key": "sk-1234567890abcd", "models": [{"model_id": "gpt-4o"}],
        }).json()
        assert created["api_key_masked"] == "sk-1...abcd"

        model_id = created["models"][0]["id"]
        active = client.post("/providers/primary", json={"config_id": created["id"], "model_id": model_id}).json()
        assert active["config_id"] == created["id"]
        assert active["model"]["id"] == model_id

        primaries = [
            m["id"] for c in client.get("/providers/configs").json() for m in c["models"] if m["is_primary"]
        ]
        assert primaries == [model_id]

    def test_internal_config_cannot_be_removed(self, client):
        assert client.delete("/providers/configs/google-internal").status_code == 400

    def test_unknown_config_404(self, client):
        assert client.delete("/providers/configs/c-nope").status_code == 404


class TestConnectivityAndLogsApi:

    def test_check_and_cooldown(self, client, probe):
        first = client.post("/connectivity/check").json()
        assert first["status"] == "ONLINE"
        assert first["report"]["message"] == "Connect OK"

        client.post("/connectivity/check")
        assert probe.await_count == 1
        assert client.get("/connectivity").json()["probe_count"] == 1

        client.post("/connectivity/check", params={"force": "true"})
        assert probe.await_count == 2

    def test_status_before_any_check(self, client):
        body = client.get("/connectivity").json()
        assert body["status"] == "CHECKING"
        assert body["report"] is None
        assert body["probe_count"] == 0

    def test_logs_endpoint(self, client):
        pid = client.post("/projects").json()["id"]
        client.post(f"/projects/{pid}/versions", json={"message": "snap"})
        logs = client.get("/logs", params={"limit": 50}).json()
        assert any(e["message"] == "Version committed successfully" and e["phase"] == "VCS" for e in logs)
