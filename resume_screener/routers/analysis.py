import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resume_screener.database import get_db
from resume_screener.routers.deps import get_current_user_id
from resume_screener.schemas.analysis import (
    AnalysisResultResponse,
    AnalyzeResumeRequest,
    AnalyzeResumeResponse,
    ExtractTextRequest,
    ExtractTextResponse,
)
from resume_screener.services import screening_service
from resume_screener.services.completion_provider import TextCompletionProvider, get_completion_provider
from resume_screener.services.file_store import FileStore, get_file_store
from resume_screener.services.scoring import score_resume

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/extract-text", response_model=ExtractTextResponse)
def extract_text(
    payload: ExtractTextRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    provider: TextCompletionProvider = Depends(get_completion_provider),
    store: FileStore = Depends(get_file_store),
):
    """Extract and parse one stored resume file, saving both onto the resume."""
    resume = screening_service.get_resume(db, user_id, payload.resume_id)
    resume = screening_service.extract_resume(
        db, resume, provider, store, file_url=payload.file_url, file_name=payload.file_name
    )
    return ExtractTextResponse(
        extracted_text=resume.extracted_text,
        parsed_data=resume.parsed_data or {},
    )


@router.post("/analyze-resume", response_model=AnalyzeResumeResponse)
def analyze_resume(
    payload: AnalyzeResumeRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    provider: TextCompletionProvider = Depends(get_completion_provider),
):
    """Score one resume against one job description and append the result."""
    resume = screening_service.get_resume(db, user_id, payload.resume_id)
    job = screening_service.get_job_description(db, user_id, payload.job_description_id)
    analysis = score_resume(db, resume, job, provider)
    return AnalyzeResumeResponse(analysis=AnalysisResultResponse.model_validate(analysis))
