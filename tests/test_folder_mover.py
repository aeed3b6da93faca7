import errno
import os

import pytest

from dockev.scanner.models import MovePhase
from dockev.services import folder_mover
from dockev.services.folder_mover import CancelToken, FolderMover, count_files, move_project_folder


@pytest.fixture
def project(make_tree, tmp_path):
    root = tmp_path / "src" / "app"
    make_tree(
        {
            "package.json": "{}",
            "index.js": "console.log(1)",
            "lib/util.js": "export {}",
            "node_modules/dep/index.js": "module.exports = 1",
        },
        root=root,
    )
    return root


@pytest.fixture
def destination(tmp_path):
    dest = tmp_path / "dest"
    dest.mkdir()
    return dest


def _phases(events):
    return [event.phase for event in events]


def test_same_volume_move_uses_rename(project, destination):
    events = []

    result = FolderMover(progress_callback=events.append).move(project, destination)

    assert result.success
    assert result.used_fast_path
    assert result.new_path == str(destination / "app")
    assert not project.exists()
    assert (destination / "app" / "node_modules" / "dep" / "index.js").exists()
    assert _phases(events) == [MovePhase.preparing, MovePhase.complete]


def test_copy_path_when_volumes_differ(project, destination, monkeypatch):
    monkeypatch.setattr(folder_mover, "same_volume", lambda a, b: False)
    events = []

    result = move_project_folder(project, destination, progress_callback=events.append)

    assert result.success
    assert not result.used_fast_path
    assert not project.exists()
    target = destination / "app"
    assert sorted(p.relative_to(target).as_posix() for p in target.rglob("*") if p.is_file()) == [
        "index.js",
        "lib/util.js",
        "node_modules/dep/index.js",
        "package.json",
    ]
    phases = _phases(events)
    assert phases[0] is MovePhase.preparing
    assert phases[-2:] == [MovePhase.cleaning, MovePhase.complete]
    assert all(p is MovePhase.moving for p in phases[1:-2])
    moving = [e for e in events if e.phase is MovePhase.moving]
    assert moving[0].files_processed == 0
    assert moving[-1].files_processed == moving[-1].total_files == 4
    assert events[-1].percent == 100.0


def test_exclude_node_modules_skips_directory(project, destination):
    events = []

    result = FolderMover(progress_callback=events.append).move(
        project, destination, exclude_node_modules=True
    )

    assert result.success
    assert not result.used_fast_path
    target = destination / "app"
    assert (target / "lib" / "util.js").exists()
    assert not (target / "node_modules").exists()
    assert not project.exists()
    assert max(e.total_files or 0 for e in events) == 3


def test_keep_source_copies(project, destination):
    result = FolderMover().move(project, destination, delete_source=False)

    assert result.success
    assert not result.used_fast_path
    assert project.exists()
    assert (destination / "app" / "index.js").read_text() == "console.log(1)"


def test_cross_device_rename_falls_back_to_copy(project, destination, monkeypatch):
    def fail_rename(src, dst):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(folder_mover.os, "rename", fail_rename)

    result = FolderMover().move(project, destination)

    assert result.success
    assert not result.used_fast_path
    assert (destination / "app" / "package.json").exists()


def test_missing_source(tmp_path, destination):
    events = []

    result = FolderMover(progress_callback=events.append).move(tmp_path / "ghost", destination)

    assert not result.success
    assert result.error == "Source path does not exist"
    assert _phases(events) == [MovePhase.error]


def test_existing_target_is_refused(project, destination):
    (destination / "app").mkdir()
    (destination / "app" / "keep.txt").write_text("mine")

    result = FolderMover().move(project, destination)

    assert not result.success
    assert result.error == "Destination folder already exists"
    assert project.exists()
    assert (destination / "app" / "keep.txt").read_text() == "mine"


def test_destination_directory_is_created(project, tmp_path):
    dest = tmp_path / "new" / "place"

    result = FolderMover().move(project, dest, delete_source=False)

    assert result.success
    assert (dest / "app" / "index.js").exists()


def test_cancel_removes_partial_copy(project, destination):
    token = CancelToken()

    def cancel_after_first(progress):
        if progress.phase is MovePhase.moving and progress.files_processed == 1:
            token.cancel()

    events = []

    def record(progress):
        events.append(progress)
        cancel_after_first(progress)

    result = FolderMover(progress_callback=record, cancel_token=token).move(
        project, destination, delete_source=False
    )

    assert not result.success
    assert result.error == "Move cancelled"
    assert not (destination / "app").exists()
    assert (project / "index.js").exists()
    assert events[-1].phase is MovePhase.error


def test_callback_errors_do_not_abort_move(project, destination):
    def explode(progress):
        raise RuntimeError("ui went away")

    result = FolderMover(progress_callback=explode).move(project, destination, delete_source=False)

    assert result.success


def test_count_files(project):
    assert count_files(project) == 4
    assert count_files(project, exclude_node_modules=True) == 3


@pytest.mark.skipif(os.name == "nt", reason="symlink semantics differ on Windows")
def test_symlinked_directory_counts_once(project):
    os.symlink(project / "lib", project / "lib-link")

    assert count_files(project) == 5


def test_destination_inside_source_is_refused(project):
    events = []

    result = FolderMover(progress_callback=events.append).move(project, project / "sub", delete_source=False)

    assert not result.success
    assert result.error == "Destination cannot be inside the source folder"
    assert _phases(events) == [MovePhase.error]
    assert not (project / "sub").exists()
    assert not FolderMover().move(project, project).success


def test_interrupt_removes_partial_copy_and_reraises(project, destination, monkeypatch):
    real_copy = folder_mover.shutil.copy2
    copied = []

    def copy_then_interrupt(src, dst, **kwargs):
        if copied:
            raise KeyboardInterrupt
        copied.append(src)
        return real_copy(src, dst, **kwargs)

    monkeypatch.setattr(folder_mover.shutil, "copy2", copy_then_interrupt)
    events = []

    with pytest.raises(KeyboardInterrupt):
        FolderMover(progress_callback=events.append).move(project, destination, delete_source=False)

    assert copied
    assert not (destination / "app").exists()
    assert events[-1].phase is MovePhase.error
    assert events[-1].error == "Move interrupted"
    assert (project / "index.js").exists()
