import asyncio
import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from resume_screener.core.config import settings
from resume_screener.database import get_db, get_session_factory
from resume_screener.models.batch_job import BatchJob, BatchStatus
from resume_screener.routers.deps import get_current_user_id
from resume_screener.schemas.pipeline import BatchCreate, BatchReport, BatchResponse
from resume_screener.services.batch_orchestrator import create_batch
from resume_screener.services.batch_registry import (
    BatchRegistry,
    execute_batch,
    execute_batch_in_background,
    get_batch_registry,
)
from resume_screener.services.completion_provider import TextCompletionProvider, get_completion_provider
from resume_screener.services.file_store import FileStore, get_file_store
from resume_screener.services.pipeline_tracker import PipelineTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batches")

DISCONNECT_POLL_SECONDS = 0.5


def _get_owned_batch(db: Session, user_id: str, batch_id: int) -> BatchJob:
    batch = db.query(BatchJob).filter(BatchJob.id == batch_id, BatchJob.user_id == user_id).first()
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


def _report(batch: BatchJob, registry: BatchRegistry) -> BatchReport:
    return BatchReport(
        success=batch.status != BatchStatus.FAILED.value,
        batch=BatchResponse.model_validate(batch),
        steps=registry.steps(batch),
        outcomes=registry.outcomes(batch.id),
    )


@router.post("/", response_model=BatchReport, status_code=202)
def start_batch(
    batch_in: BatchCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    provider: TextCompletionProvider = Depends(get_completion_provider),
    store: FileStore = Depends(get_file_store),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Queue a batch run. Poll GET /batches/{id} for step progress."""
    batch = create_batch(db, user_id, batch_in)
    run = registry.register(batch.id, PipelineTracker(settings.pipeline.progress_increment))
    background_tasks.add_task(
        execute_batch_in_background,
        session_factory,
        batch.id,
        run,
        provider,
        store,
        batch_in.halt_on_error,
        registry,
    )
    return _report(batch, registry)


@router.post("/run", response_model=BatchReport)
async def run_batch(
    batch_in: BatchCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    provider: TextCompletionProvider = Depends(get_completion_provider),
    store: FileStore = Depends(get_file_store),
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """
    Run a batch while the client waits. If the client disconnects, the run is
    cancelled and the remaining resumes are skipped.
    """
    batch = await run_in_threadpool(create_batch, db, user_id, batch_in)
    run = registry.register(batch.id, PipelineTracker(settings.pipeline.progress_increment))

    async def cancel_on_disconnect():
        while not run.cancel_event.is_set():
            if await request.is_disconnected():
                logger.warning(f"Client disconnected, cancelling batch {batch.id}")
                run.cancel_event.set()
                return
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(cancel_on_disconnect())
    try:
        await run_in_threadpool(
            execute_batch, db, batch, run, provider, store, batch_in.halt_on_error, registry
        )
    finally:
        watcher.cancel()
    return _report(batch, registry)


@router.get("/{batch_id}", response_model=BatchReport)
def get_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    registry: BatchRegistry = Depends(get_batch_registry),
):
    batch = _get_owned_batch(db, user_id, batch_id)
    return _report(batch, registry)


@router.post("/{batch_id}/cancel", response_model=BatchReport)
def cancel_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    registry: BatchRegistry = Depends(get_batch_registry),
):
    batch = _get_owned_batch(db, user_id, batch_id)
    if not registry.cancel(batch.id):
        raise HTTPException(status_code=409, detail="Batch is not running")
    return _report(batch, registry)
