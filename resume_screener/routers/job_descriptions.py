from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from resume_screener.core.exceptions import InvalidJobDescriptionError, UploadValidationError
from resume_screener.database import get_db
from resume_screener.models.job_description import JobDescription
from resume_screener.routers.deps import get_current_user_id
from resume_screener.schemas.analysis import ScoreCard
from resume_screener.schemas.job_description import JobDescriptionCreate, JobDescriptionResponse
from resume_screener.services import screening_service
from resume_screener.services.file_store import FileStore, get_file_store
from resume_screener.services.upload_validation import validate_file

router = APIRouter(prefix="/job-descriptions")


@router.post("/", response_model=JobDescriptionResponse, status_code=201)
def create_job_description(
    job_in: JobDescriptionCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Create a job description from the typed-in form fields."""
    return screening_service.create_job_description(db, user_id, job_in)


@router.post("/upload", response_model=JobDescriptionResponse, status_code=201)
async def upload_job_description(
    file: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    store: FileStore = Depends(get_file_store),
):
    """
    Create a job description from an uploaded document.
    The description text is filled in when a batch first runs against it.
    """
    content = await file.read()
    error = validate_file(file.filename, len(content))
    if error:
        raise UploadValidationError([error])

    file_url = store.save(user_id, file.filename, content)
    try:
        job_in = JobDescriptionCreate(title=title, file_name=file.filename, file_url=file_url)
    except ValidationError as exc:
        raise InvalidJobDescriptionError(exc.errors()[0]["msg"]) from exc
    return screening_service.create_job_description(db, user_id, job_in)


@router.get("/", response_model=List[JobDescriptionResponse])
def list_job_descriptions(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return (
        db.query(JobDescription)
        .filter(JobDescription.user_id == user_id)
        .order_by(JobDescription.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.get("/{job_description_id}", response_model=JobDescriptionResponse)
def get_job_description(
    job_description_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    job = db.query(JobDescription).filter(
        JobDescription.id == job_description_id,
        JobDescription.user_id == user_id
    ).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job description not found")
    return job


@router.get("/{job_description_id}/results", response_model=List[ScoreCard])
def get_results(
    job_description_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Scorecards for the latest analysis of each resume, best first."""
    job = db.query(JobDescription).filter(
        JobDescription.id == job_description_id,
        JobDescription.user_id == user_id
    ).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job description not found")
    return screening_service.latest_results(db, user_id, job_description_id)
