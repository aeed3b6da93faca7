from __future__ import annotations

import errno
import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Callable, Optional

from ..scanner.models import MovePhase, MoveProgress, MoveResult
from ..utils.paths import normalize_path, same_volume

logger = logging.getLogger(__name__)

EXCLUDED_DIR = "node_modules"

ProgressCallback = Callable[[MoveProgress], None]


class MoveCancelled(Exception):
    pass


class CancelToken:
    """Checked by the mover between file copies."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class FolderMover:
    """
    Relocate a project folder, streaming progress through a callback.

    Phases only move forward: ``preparing -> moving -> cleaning -> complete``
    on the copy path, ``preparing -> complete`` on the same-volume rename
    path, and ``error`` from any phase on failure.

    Cancellation is checked between file copies. A rename that already
    started cannot be cancelled.
    """

    def __init__(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        self._progress_callback = progress_callback
        self._cancel_token = cancel_token or CancelToken()

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel_token

    def move(
        self,
        source_path: str | os.PathLike[str],
        destination_dir: str | os.PathLike[str],
        *,
        exclude_node_modules: bool = False,
        delete_source: bool = True,
    ) -> MoveResult:
        source = normalize_path(source_path)
        destination = normalize_path(destination_dir)

        if not source.exists():
            return self._fail("Source path does not exist")

        if destination == source or destination.is_relative_to(source):
            return self._fail("Destination cannot be inside the source folder")

        if not destination.exists():
            try:
                destination.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                return self._fail(f"Cannot create destination directory: {exc}")

        target = destination / source.name
        if target.exists():
            return self._fail("Destination folder already exists")

        self._emit(MoveProgress(phase=MovePhase.preparing))

        if same_volume(source, destination) and not exclude_node_modules and delete_source:
            try:
                os.rename(source, target)
            except OSError as exc:
                if exc.errno != errno.EXDEV:
                    return self._fail(f"Move failed: {exc}")
                logger.info(f"Rename crossed devices, copying instead: {source} -> {target}")
            else:
                logger.info(f"Moved {source} -> {target} by rename")
                self._emit(MoveProgress(phase=MovePhase.complete))
                return MoveResult(success=True, new_path=str(target), used_fast_path=True)

        return self._copy_move(source, target, exclude_node_modules, delete_source)

    def _copy_move(self, source: Path, target: Path, exclude_node_modules: bool, delete_source: bool) -> MoveResult:
        try:
            total_files = count_files(source, exclude_node_modules=exclude_node_modules)
        except OSError as exc:
            return self._fail(f"Move failed: {exc}")

        processed = 0
        self._emit(MoveProgress(phase=MovePhase.moving, files_processed=0, total_files=total_files))

        def _copy_tree(src: Path, dest: Path) -> None:
            nonlocal processed
            with os.scandir(src) as iterator:
                entries = sorted(iterator, key=lambda e: e.name)
            for entry in entries:
                src_path = Path(entry.path)
                dest_path = dest / entry.name
                if entry.is_dir(follow_symlinks=False):
                    if exclude_node_modules and entry.name == EXCLUDED_DIR:
                        continue
                    dest_path.mkdir(parents=True, exist_ok=True)
                    _copy_tree(src_path, dest_path)
                    continue
                if self._cancel_token.cancelled:
                    raise MoveCancelled()
                shutil.copy2(src_path, dest_path, follow_symlinks=False)
                processed += 1
                self._emit(
                    MoveProgress(
                        phase=MovePhase.moving,
                        current_file=os.path.relpath(src_path, source),
                        files_processed=processed,
                        total_files=total_files,
                    )
                )

        try:
            target.mkdir(parents=True)
            _copy_tree(source, target)
        except MoveCancelled:
            self._remove_partial(target)
            return self._fail("Move cancelled")
        except (OSError, shutil.Error) as exc:
            self._remove_partial(target)
            return self._fail(f"Move failed: {exc}")
        except BaseException:
            self._remove_partial(target)
            self._fail("Move interrupted")
            raise

        self._emit(MoveProgress(phase=MovePhase.cleaning, files_processed=processed, total_files=total_files))
        if delete_source:
            try:
                shutil.rmtree(source)
                logger.info(f"Deleted source directory {source}")
            except OSError as exc:
                # the copy already succeeded; the data is safe at the target
                logger.error(f"Error deleting source directory {source}: {exc}")
        else:
            logger.debug(f"Keeping source directory {source}")

        self._emit(MoveProgress(phase=MovePhase.complete, files_processed=processed, total_files=total_files))
        return MoveResult(success=True, new_path=str(target))

    def _remove_partial(self, target: Path) -> None:
        if not target.exists():
            return
        try:
            shutil.rmtree(target)
        except OSError as exc:
            logger.error(f"Failed to clean up {target} after error: {exc}")

    def _fail(self, message: str) -> MoveResult:
        logger.warning(message)
        self._emit(MoveProgress(phase=MovePhase.error, error=message))
        return MoveResult(success=False, error=message)

    def _emit(self, progress: MoveProgress) -> None:
        if not self._progress_callback:
            return
        try:
            self._progress_callback(progress)
        except Exception as exc:
            logger.debug(f"Progress callback raised: {exc}")


def count_files(root: Path, *, exclude_node_modules: bool = False) -> int:
    """Number of non-directory entries below ``root``."""
    count = 0
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        if exclude_node_modules and EXCLUDED_DIR in dirnames:
            dirnames.remove(EXCLUDED_DIR)
        # symlinked directories are copied as links, so they count as files
        links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
        for link in links:
            dirnames.remove(link)
        count += len(filenames) + len(links)
    return count


def _raise(exc: OSError) -> None:
    raise exc


def move_project_folder(
    source_path: str | os.PathLike[str],
    destination_dir: str | os.PathLike[str],
    *,
    exclude_node_modules: bool = False,
    delete_source: bool = True,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancelToken] = None,
) -> MoveResult:
    mover = FolderMover(progress_callback=progress_callback, cancel_token=cancel_token)
    return mover.move(
        source_path,
        destination_dir,
        exclude_node_modules=exclude_node_modules,
        delete_source=delete_source,
    )
