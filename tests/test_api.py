"""End-to-end tests for the local API using in-memory storage."""

import json

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient  # noqa: E402

from dockev.api import move_routes  # noqa: E402
from dockev.api.dependencies import get_project_repository, get_settings_repository  # noqa: E402
from dockev.main import app  # noqa: E402
from dockev.services import folder_mover, launcher  # noqa: E402
from dockev.services.projects_service import ProjectRepository  # noqa: E402
from dockev.services.settings_service import SettingsRepository  # noqa: E402
from dockev.storage.backends import MemoryStore  # noqa: E402


@pytest.fixture
def client():
    store = MemoryStore()
    app.dependency_overrides[get_project_repository] = lambda: ProjectRepository(store)
    app.dependency_overrides[get_settings_repository] = lambda: SettingsRepository(store)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def spawned(monkeypatch):
    calls = []

    class FakePopen:
        def __init__(self, argv, **kwargs):
            calls.append(list(argv))
            self.pid = 99

    monkeypatch.setattr(launcher.subprocess, "Popen", FakePopen)
    return calls


def _create(client, tmp_path, name="demo", **extra):
    res = client.post("/api/projects", json={"name": name, "path": str(tmp_path), **extra})
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/").json()["status"] == "healthy"


def test_project_crud(client, tmp_path):
    project = _create(client, tmp_path, category="Web", tags=["client"])

    listing = client.get("/api/projects").json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == project["id"]

    patched = client.patch(f"/api/projects/{project['id']}", json={"name": "renamed"})
    assert patched.status_code == 200
    assert patched.json()["name"] == "renamed"
    assert patched.json()["tags"] == ["client"]

    assert client.get("/api/projects", params={"tag": "client"}).json()["total"] == 1
    assert client.get("/api/projects", params={"category": "Mobile"}).json()["total"] == 0

    assert client.delete(f"/api/projects/{project['id']}").status_code == 204
    missing = client.get(f"/api/projects/{project['id']}")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "project_not_found"


def test_duplicate_id_conflicts(client, tmp_path):
    _create(client, tmp_path, id="same")

    res = client.post("/api/projects", json={"id": "same", "name": "again", "path": str(tmp_path)})

    assert res.status_code == 409


def test_create_with_detection(client, tmp_path):
    (tmp_path / "web").mkdir()
    (tmp_path / "web" / "package.json").write_text("{}")
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / "go.mod").write_text("module api")

    res = client.post(
        "/api/projects",
        params={"detect": "true"},
        json={"name": "mono", "path": str(tmp_path)},
    )

    modules = res.json()["modules"]
    assert [(m["name"], m["tech_stack"]) for m in modules] == [("api", ["Go"]), ("web", ["React", "Node.js"])]


def test_module_endpoints(client, tmp_path):
    (tmp_path / "web").mkdir()
    (tmp_path / "web" / "vue.config.js").write_text("")
    project = _create(client, tmp_path)

    detected = client.post(f"/api/projects/{project['id']}/modules").json()
    (module,) = detected["modules"]
    assert module["tech_stack"] == ["Vue"]

    manual = client.post(
        f"/api/projects/{project['id']}/modules",
        json={"modules": [{"name": "native", "path": "native", "tech_stack": ["React Native / Expo"]}]},
    ).json()
    native = next(m for m in manual["modules"] if m["name"] == "native")

    merged = client.post(
        f"/api/projects/{project['id']}/modules/merge",
        json={"keep_id": module["id"], "discard_id": native["id"]},
    ).json()
    assert [m["tech_stack"] for m in merged["modules"]] == [["Vue", "React Native / Expo"]]

    renamed = client.patch(
        f"/api/projects/{project['id']}/modules/{module['id']}", json={"name": "frontend"}
    ).json()
    assert renamed["modules"][0]["name"] == "frontend"

    missing = client.delete(f"/api/projects/{project['id']}/modules/nope")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "module_not_found"


def test_export_and_import(client, tmp_path):
    project = _create(client, tmp_path)
    exported = client.get("/api/projects/export")
    assert exported.headers["content-type"].startswith("application/json")

    client.delete("/api/projects")
    assert client.get("/api/projects").json()["total"] == 0

    imported = client.post("/api/projects/import", content=exported.content)
    assert imported.status_code == 200
    assert imported.json()["items"][0]["id"] == project["id"]

    bad = client.post("/api/projects/import", content=b"{nope")
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "invalid_import"


def test_projects_by_category(client, tmp_path):
    _create(client, tmp_path, name="site", category="Web")
    _create(client, tmp_path, name="loose", category="")

    groups = client.get("/api/projects/by-category").json()

    assert [p["name"] for p in groups["Web"]] == ["site"]
    assert [p["name"] for p in groups["Uncategorized"]] == ["loose"]


def test_settings_endpoints(client):
    assert client.get("/api/settings").json()["theme"] == "dark"

    patched = client.patch("/api/settings", json={"theme": "light", "default_package_manager": "pnpm"}).json()
    assert patched["theme"] == "light"
    assert patched["default_package_manager"] == "pnpm"

    added = client.post("/api/settings/ides", json={"id": "zed", "name": "Zed", "command": "zed"})
    assert added.status_code == 201
    assert [ide["id"] for ide in client.get("/api/settings/ides").json()][-1] == "zed"
    assert client.post("/api/settings/ides", json={"id": "zed", "name": "Zed", "command": "zed"}).status_code == 400

    client.delete("/api/settings/categories/archived")
    assert len(client.get("/api/settings/categories").json()) == 4
    assert len(client.post("/api/settings/categories/reset").json()["categories"]) == 5


def test_system_inspection(client, tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({"name": "demo", "version": "0.1.0"}))
    (tmp_path / "README.md").write_text("# Demo")

    detection = client.get("/api/system/detect-modules", params={"path": str(tmp_path)}).json()
    assert detection["modules"][0]["name"] == "root"

    stats = client.get("/api/system/stats", params={"path": str(tmp_path)}).json()
    assert stats["file_count"] == 2
    assert stats["language"] == "JavaScript"

    details = client.get("/api/system/details", params={"path": str(tmp_path)}).json()
    assert details["name"] == "demo"
    assert details["readme"] == "# Demo"

    node = client.get("/api/system/node-modules", params={"path": str(tmp_path)}).json()
    assert node["root_has_package_json"] is True
    assert node["root_has_node_modules"] is False

    assert client.get("/api/system/stats", params={"path": str(tmp_path / "nope")}).json() is None
    assert client.get("/api/system/git/status", params={"path": str(tmp_path)}).json() is None


def test_launch_ide_uses_custom_ide_and_marks_opened(client, tmp_path, spawned):
    client.post("/api/settings/ides", json={"id": "zed", "name": "Zed", "command": "zed --new"})
    project = _create(client, tmp_path)

    res = client.post(
        "/api/system/launch/ide",
        json={"path": str(tmp_path), "ide": "zed", "project_id": project["id"]},
    )

    assert res.status_code == 200, res.text
    assert spawned[0][:2] == ["zed", "--new"]
    assert client.get(f"/api/projects/{project['id']}").json()["last_opened_at"] is not None


def test_launch_ide_missing_path(client, tmp_path, spawned):
    res = client.post("/api/system/launch/ide", json={"path": str(tmp_path / "gone")})

    assert res.status_code == 404
    assert res.json()["detail"]["code"] == "path_not_found"
    assert spawned == []


def test_install_reports_missing_manifest(client, tmp_path, spawned):
    res = client.post("/api/system/install", json={"path": str(tmp_path)})

    assert res.status_code == 200
    assert res.json()["success"] is False
    assert spawned == []


def test_move_job_lifecycle(client, tmp_path):
    source = tmp_path / "src" / "app"
    source.mkdir(parents=True)
    (source / "index.js").write_text("x")
    project = _create(client, source)
    dest = tmp_path / "dest"

    started = client.post(
        "/api/moves",
        json={"source_path": str(source), "destination_dir": str(dest), "project_id": project["id"]},
    )
    assert started.status_code == 202
    move_id = started.json()["move_id"]

    job = client.get(f"/api/moves/{move_id}").json()
    assert job["state"] == "succeeded"
    assert job["result"]["new_path"] == str(dest / "app")
    assert job["events"][0]["phase"] == "preparing"
    assert job["progress"]["phase"] == "complete"
    assert client.get(f"/api/projects/{project['id']}").json()["path"] == str(dest / "app")

    finished = client.post(f"/api/moves/{move_id}/cancel")
    assert finished.status_code == 409


def test_move_job_failure_and_unknown_id(client, tmp_path):
    started = client.post(
        "/api/moves",
        json={"source_path": str(tmp_path / "ghost"), "destination_dir": str(tmp_path / "dest")},
    ).json()

    job = client.get(f"/api/moves/{started['move_id']}").json()
    assert job["state"] == "failed"
    assert job["error"]["message"] == "Source path does not exist"

    assert client.get("/api/moves/unknown").status_code == 404


def test_null_for_required_field_returns_422(client, tmp_path):
    project = _create(client, tmp_path)

    res = client.patch(f"/api/projects/{project['id']}", json={"name": None})
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "invalid_update"
    assert client.get(f"/api/projects/{project['id']}").json()["name"] == "demo"

    res = client.patch("/api/settings", json={"theme": None})
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "invalid_update"
    assert client.get("/api/settings").json()["theme"] == "dark"


def test_launch_ide_unknown_project_does_not_spawn(client, tmp_path, spawned):
    res = client.post("/api/system/launch/ide", json={"path": str(tmp_path), "project_id": "ghost"})
    assert res.status_code == 404
    assert res.json()["detail"]["code"] == "project_not_found"

    project = _create(client, tmp_path)
    res = client.post(
        "/api/system/launch/ide",
        json={"path": str(tmp_path), "project_id": project["id"], "module_id": "ghost"},
    )
    assert res.status_code == 404
    assert res.json()["detail"]["code"] == "module_not_found"
    assert spawned == []


def test_move_job_keeps_one_event_per_phase(client, tmp_path, monkeypatch):
    monkeypatch.setattr(folder_mover, "same_volume", lambda a, b: False)
    source = tmp_path / "src" / "app"
    source.mkdir(parents=True)
    for index in range(25):
        (source / f"f{index}.txt").write_text("x")

    started = client.post(
        "/api/moves",
        json={"source_path": str(source), "destination_dir": str(tmp_path / "dest")},
    ).json()

    job = client.get(f"/api/moves/{started['move_id']}").json()
    assert job["state"] == "succeeded"
    assert [event["phase"] for event in job["events"]] == ["preparing", "moving", "cleaning", "complete"]
    assert job["progress"]["files_processed"] == 25


def test_finished_move_jobs_expire(client, tmp_path, monkeypatch):
    started = client.post(
        "/api/moves",
        json={"source_path": str(tmp_path / "ghost"), "destination_dir": str(tmp_path / "dest")},
    ).json()
    assert client.get(f"/api/moves/{started['move_id']}").status_code == 200

    monkeypatch.setattr(move_routes, "MOVE_JOB_TTL_SECONDS", -1.0)

    assert client.get(f"/api/moves/{started['move_id']}").status_code == 404
