"""Folder move jobs.

A move runs in the background and streams its phases into an in-memory
job record that clients poll via ``GET /api/moves/{move_id}``.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..scanner.errors import DockevError
from ..scanner.models import MovePhase, MoveProgress
from ..services.folder_mover import CancelToken, FolderMover
from ..services.projects_service import ProjectRepository
from .dependencies import get_project_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moves", tags=["Moves"])


def _now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


class JobState(str, Enum):
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    canceled = "canceled"


class ErrorResponse(BaseModel):
    code: str
    message: str


class MoveEvent(BaseModel):
    phase: MovePhase
    current_file: Optional[str] = None
    files_processed: int = 0
    total_files: int = 0
    percent: float = 0.0
    error: Optional[str] = None


class MoveRequest(BaseModel):
    source_path: str
    destination_dir: str
    exclude_node_modules: bool = False
    delete_source: bool = True
    project_id: Optional[str] = Field(
        default=None,
        description="Registered project whose path follows the folder once the move succeeds",
    )


class MoveResultOut(BaseModel):
    success: bool
    new_path: Optional[str] = None
    error: Optional[str] = None
    used_fast_path: bool = False


class MoveJob(BaseModel):
    move_id: str
    source_path: str
    destination_dir: str
    project_id: Optional[str] = None
    state: JobState
    created_at: str
    progress: Optional[MoveEvent] = None
    events: List[MoveEvent] = Field(default_factory=list, description="First event of each phase")
    result: Optional[MoveResultOut] = None
    error: Optional[ErrorResponse] = None


_move_store: Dict[str, MoveJob] = {}
_cancel_tokens: Dict[str, CancelToken] = {}
_finished_at: Dict[str, float] = {}
_move_store_lock = threading.Lock()

MOVE_JOB_TTL_SECONDS = 3600.0


def _update_job(move_id: str, **updates) -> None:
    with _move_store_lock:
        current = _move_store.get(move_id)
        if current is not None:
            _move_store[move_id] = current.model_copy(update=updates)


def _finish_job(move_id: str, **updates) -> None:
    with _move_store_lock:
        current = _move_store.get(move_id)
        if current is not None:
            _move_store[move_id] = current.model_copy(update=updates)
            _finished_at[move_id] = time.monotonic()


def _evict_finished_jobs() -> None:
    """Drop jobs that reached a terminal state more than the TTL ago. Caller holds the lock."""
    now = time.monotonic()
    expired = [move_id for move_id, ended in _finished_at.items() if now - ended > MOVE_JOB_TTL_SECONDS]
    for move_id in expired:
        _finished_at.pop(move_id, None)
        _move_store.pop(move_id, None)


def _record_progress(move_id: str, progress: MoveProgress) -> None:
    event = MoveEvent(
        phase=progress.phase,
        current_file=progress.current_file,
        files_processed=progress.files_processed or 0,
        total_files=progress.total_files or 0,
        percent=progress.percent,
        error=progress.error,
    )
    with _move_store_lock:
        current = _move_store.get(move_id)
        if current is not None:
            updates = {"progress": event}
            if not current.events or current.events[-1].phase != event.phase:
                updates["events"] = [*current.events, event]
            _move_store[move_id] = current.model_copy(update=updates)


def _run_move_background(move_id: str, request: MoveRequest, repo: ProjectRepository) -> None:
    """Background task that performs the move and records the outcome."""
    token = _cancel_tokens[move_id]
    if token.cancelled:
        _finish_job(
            move_id,
            state=JobState.canceled,
            error=ErrorResponse(code="move_cancelled", message="Move cancelled"),
        )
        return

    _update_job(move_id, state=JobState.running)
    mover = FolderMover(progress_callback=lambda p: _record_progress(move_id, p), cancel_token=token)
    try:
        result = mover.move(
            request.source_path,
            request.destination_dir,
            exclude_node_modules=request.exclude_node_modules,
            delete_source=request.delete_source,
        )
    except Exception as exc:  # pragma: no cover
        logger.exception(f"Move {move_id} crashed")
        _finish_job(
            move_id,
            state=JobState.failed,
            error=ErrorResponse(code="move_failed", message=str(exc)),
        )
        return
    finally:
        with _move_store_lock:
            _cancel_tokens.pop(move_id, None)

    result_out = MoveResultOut(
        success=result.success,
        new_path=result.new_path,
        error=result.error,
        used_fast_path=result.used_fast_path,
    )
    if not result.success:
        cancelled = token.cancelled
        _finish_job(
            move_id,
            state=JobState.canceled if cancelled else JobState.failed,
            result=result_out,
            error=ErrorResponse(
                code="move_cancelled" if cancelled else "move_failed",
                message=result.error or "Move failed",
            ),
        )
        return

    if request.project_id and result.new_path:
        try:
            repo.update_project(request.project_id, {"path": result.new_path})
        except DockevError as exc:
            logger.warning(f"Moved folder but could not update project {request.project_id}: {exc}")

    logger.info(f"Move {move_id} finished: {result.new_path}")
    _finish_job(move_id, state=JobState.succeeded, result=result_out)


@router.post("", response_model=MoveJob, status_code=status.HTTP_202_ACCEPTED)
def start_move(
    payload: MoveRequest,
    background_tasks: BackgroundTasks,
    repo: ProjectRepository = Depends(get_project_repository),
) -> MoveJob:
    """
    Queue a folder move.

    Returns immediately with a ``move_id``. The job record carries the
    latest progress event and the first event of each phase; finished jobs
    are dropped after ``MOVE_JOB_TTL_SECONDS``.
    """
    move_id = uuid.uuid4().hex
    job = MoveJob(
        move_id=move_id,
        source_path=payload.source_path,
        destination_dir=payload.destination_dir,
        project_id=payload.project_id,
        state=JobState.queued,
        created_at=_now_iso(),
    )
    with _move_store_lock:
        _evict_finished_jobs()
        _move_store[move_id] = job
        _cancel_tokens[move_id] = CancelToken()
    background_tasks.add_task(_run_move_background, move_id, payload, repo)
    return job


@router.get("/{move_id}", response_model=MoveJob)
def get_move(move_id: str) -> MoveJob:
    with _move_store_lock:
        _evict_finished_jobs()
        job = _move_store.get(move_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "move_not_found", "message": f"Move not found: {move_id}"},
        )
    return job


@router.post("/{move_id}/cancel", response_model=MoveJob)
def cancel_move(move_id: str) -> MoveJob:
    """Request cancellation; takes effect before the next file is copied."""
    with _move_store_lock:
        job = _move_store.get(move_id)
        token = _cancel_tokens.get(move_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "move_not_found", "message": f"Move not found: {move_id}"},
        )
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "move_finished", "message": f"Move already {job.state.value}"},
        )
    token.cancel()
    return job
