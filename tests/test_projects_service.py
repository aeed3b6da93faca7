import json

import pytest

from dockev.analyzer.project_detector import DetectedModule
from dockev.models.project import Module, ProjectCreate
from dockev.models.settings import default_categories
from dockev.scanner.errors import (
    DuplicateProjectError,
    InvalidUpdateError,
    ModuleNotFoundInProject,
    ProjectImportError,
    ProjectNotFoundError,
    StorageError,
)
from dockev.services.projects_service import ProjectRepository
from dockev.storage.backends import PROJECTS_KEY, MemoryStore
from dockev.utils.color_utils import DEFAULT_COLOR_PALETTE


class ReadOnlyStore(MemoryStore):
    def write(self, key, value):
        raise StorageError("disk full")


@pytest.fixture
def repo(memory_store):
    return ProjectRepository(memory_store)


def _add(repo, name="demo", **extra):
    return repo.add_project(ProjectCreate(name=name, path=f"/work/{name}", **extra))


def test_empty_store_has_no_projects(repo):
    assert repo.get_projects() == []


def test_add_project_assigns_id_and_color(repo):
    project = _add(repo, tags=["client"])

    assert project.id
    assert project.color in DEFAULT_COLOR_PALETTE
    assert repo.get_projects() == [project]


def test_add_project_keeps_explicit_color_and_id(repo):
    project = _add(repo, id="fixed", color="#123456")

    assert project.id == "fixed"
    assert project.color == "#123456"
    with pytest.raises(DuplicateProjectError):
        _add(repo, name="other", id="fixed")


def test_round_trip_preserves_nested_fields(repo):
    created = _add(
        repo,
        description="Shop front",
        modules=[Module(name="web", path="web", tech_stack=["React"])],
        config={"dev_server_command": "npm start", "env_vars": {"PORT": "3000"}, "versions": {"node": "20"}},
    )

    loaded = ProjectRepository(repo._store).get_project(created.id)

    assert loaded == created
    assert loaded.config.env_vars == {"PORT": "3000"}
    assert loaded.modules[0].tech_stack == ["React"]


def test_corrupted_document_reads_as_empty():
    store = MemoryStore({PROJECTS_KEY: "{not json"})
    assert ProjectRepository(store).get_projects() == []

    store = MemoryStore({PROJECTS_KEY: json.dumps({"id": "x"})})
    assert ProjectRepository(store).get_projects() == []


def test_invalid_entries_are_skipped():
    store = MemoryStore({PROJECTS_KEY: json.dumps([{"id": "a", "name": "ok", "path": "/a"}, {"id": "b"}])})

    assert [p.id for p in ProjectRepository(store).get_projects()] == ["a"]


def test_update_project_merges_only_given_fields(repo):
    project = _add(repo, category="Web", tags=["x"])

    updated = repo.update_project(project.id, {"name": "renamed"})

    assert updated.name == "renamed"
    assert updated.category == "Web"
    assert updated.tags == ["x"]
    assert updated.id == project.id


def test_update_missing_project_raises(repo):
    with pytest.raises(ProjectNotFoundError):
        repo.update_project("ghost", {"name": "x"})


def test_delete_project(repo):
    project = _add(repo)

    assert repo.delete_project(project.id)
    assert not repo.delete_project(project.id)
    assert repo.get_projects() == []


def test_filter_and_group(repo):
    _add(repo, "shop", category="Web", tags=["client"])
    _add(repo, "api", category="Backend", description="Payments service")
    _add(repo, "toy", category="Nowhere")

    assert [p.name for p in repo.filter_projects(category="Web")] == ["shop"]
    assert [p.name for p in repo.filter_projects(tag="client")] == ["shop"]
    assert [p.name for p in repo.filter_projects(query="PAYMENTS")] == ["api"]

    groups = repo.group_by_category(default_categories())
    assert [p.name for p in groups["Web"]] == ["shop"]
    assert [p.name for p in groups["Backend"]] == ["api"]
    assert [p.name for p in groups["Uncategorized"]] == ["toy"]
    assert groups["Mobile"] == []


def test_mark_opened_sets_timestamps(repo):
    module = Module(name="web", path="web")
    project = _add(repo, modules=[module])

    opened = repo.mark_opened(project.id, module.id)

    assert opened.last_opened_at is not None
    assert opened.modules[0].last_opened_at == opened.last_opened_at


def test_export_then_import_replaces_projects(repo):
    first = _add(repo, "one")
    exported = repo.export_projects()
    _add(repo, "two")

    imported = repo.import_projects(exported)

    assert [p.id for p in imported] == [first.id]
    assert [p.id for p in repo.get_projects()] == [first.id]


@pytest.mark.parametrize(
    "payload, message",
    [
        ("{broken", "Failed to import projects. Invalid JSON format."),
        ('{"name": "x"}', "Invalid projects format"),
    ],
)
def test_import_rejects_bad_documents(repo, payload, message):
    existing = _add(repo)

    with pytest.raises(ProjectImportError) as excinfo:
        repo.import_projects(payload)

    assert str(excinfo.value) == message
    assert [p.id for p in repo.get_projects()] == [existing.id]


def test_import_rejects_duplicate_ids(repo):
    entry = {"id": "same", "name": "a", "path": "/a"}

    with pytest.raises(ProjectImportError):
        repo.import_projects(json.dumps([entry, entry]))


def test_clear_projects(repo):
    _add(repo)
    repo.clear_projects()

    assert repo.get_projects() == []


def test_failed_save_notifies_and_records_error():
    notices = []
    repo = ProjectRepository(ReadOnlyStore(), reporter=lambda message, tone: notices.append((message, tone)))

    assert repo.save_projects([]) is False
    assert "disk full" in repo.last_error
    assert notices[0][1] == "warning"


def test_add_modules_skips_known_paths(repo):
    project = _add(repo, default_ide="cursor")
    detected = [
        DetectedModule(name="web", path="web", tech_stack=["React"], confidence=0.3),
        DetectedModule(name="api", path="api", tech_stack=["Python"], confidence=0.3),
    ]

    repo.add_modules(project.id, detected)
    updated = repo.add_modules(project.id, detected[:1])

    assert [m.path for m in updated.modules] == ["web", "api"]
    assert all(m.default_ide == "cursor" for m in updated.modules)


def test_update_and_remove_module(repo):
    module = Module(name="web", path="web")
    project = _add(repo, modules=[module])

    updated = repo.update_module(project.id, module.id, {"dev_server_command": "npm run start"})
    assert updated.modules[0].dev_server_command == "npm run start"
    assert updated.modules[0].name == "web"

    assert repo.remove_module(project.id, module.id).modules == []
    with pytest.raises(ModuleNotFoundInProject):
        repo.remove_module(project.id, module.id)


def test_merge_modules_unions_tech_stack(repo):
    keep = Module(name="client", path="client", tech_stack=["React", "Node.js"])
    discard = Module(name="client-native", path="native", tech_stack=["Node.js", "React Native / Expo"])
    project = _add(repo, modules=[keep, discard])

    merged = repo.merge_modules(project.id, keep.id, discard.id)

    (only,) = merged.modules
    assert only.id == keep.id
    assert only.tech_stack == ["React", "Node.js", "React Native / Expo"]


def test_merge_with_itself_is_rejected(repo):
    module = Module(name="web", path="web")
    project = _add(repo, modules=[module])

    with pytest.raises(ModuleNotFoundInProject):
        repo.merge_modules(project.id, module.id, module.id)


def test_null_for_required_field_is_rejected(repo):
    project = _add(repo)

    with pytest.raises(InvalidUpdateError) as excinfo:
        repo.update_project(project.id, {"name": None})
    assert excinfo.value.code == "invalid_update"
    assert repo.get_project(project.id).name == "demo"

    module_id = repo.add_modules(project.id, [Module(name="web", path="web")]).modules[0].id
    with pytest.raises(InvalidUpdateError):
        repo.update_module(project.id, module_id, {"path": None})
    assert repo.get_project(project.id).modules[0].path == "web"
