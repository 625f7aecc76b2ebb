import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from resume_screener.core.exceptions import UploadValidationError
from resume_screener.database import get_db
from resume_screener.models.resume import Resume
from resume_screener.routers.deps import get_current_user_id
from resume_screener.schemas.resume import ResumeResponse, UploadReport
from resume_screener.services import screening_service
from resume_screener.services.file_store import FileStore, get_file_store
from resume_screener.services.upload_validation import validate_batch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resumes")


@router.post("/upload", response_model=UploadReport)
async def upload_resumes(
    files: List[UploadFile] = File(...),
    job_description_id: Optional[int] = Form(default=None, alias="jobDescriptionId"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    store: FileStore = Depends(get_file_store),
):
    """
    Store a batch of resume files. Files failing the type or size checks are
    reported in `errors` and skipped; the rest are stored.
    """
    if job_description_id is not None:
        screening_service.get_job_description(db, user_id, job_description_id)

    candidates = []
    for upload in files:
        content = await upload.read()
        candidates.append((upload.filename, len(content), (upload.filename, content)))
    report = validate_batch(candidates)
    if not report.accepted:
        raise UploadValidationError(report.errors)

    accepted = []
    for file_name, content in report.accepted:
        file_url = store.save(user_id, file_name, content)
        accepted.append(
            screening_service.create_resume(db, user_id, file_name, file_url, job_description_id)
        )
    logger.info(f"Stored {len(accepted)} resume(s), rejected {len(report.errors)}")
    return UploadReport(
        success=True,
        accepted=[ResumeResponse.model_validate(r) for r in accepted],
        errors=report.errors,
    )


@router.get("/", response_model=List[ResumeResponse])
def list_resumes(
    job_description_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    query = db.query(Resume).filter(Resume.user_id == user_id)
    if job_description_id is not None:
        query = query.filter(Resume.job_description_id == job_description_id)
    return query.order_by(Resume.id).all()


@router.get("/{resume_id}", response_model=ResumeResponse)
def get_resume(
    resume_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    resume = db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == user_id).first()
    if not resume:
        raise HTTPException(status_code=404, detail="Resume not found")
    return resume
