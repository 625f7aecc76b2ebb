"""
Record-level operations shared by the routers and the batch orchestrator:
ownership-scoped lookups, upload intake, the extract-then-parse flow and the
scorecard view.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from resume_screener.core.exceptions import ExtractionFailedError, UpstreamFetchError
from resume_screener.models.analysis_result import AnalysisResult
from resume_screener.models.job_description import JobDescription
from resume_screener.models.profile import Profile
from resume_screener.models.resume import Resume
from resume_screener.schemas.analysis import ScoreCard
from resume_screener.schemas.job_description import JobDescriptionCreate
from resume_screener.services.completion_provider import TextCompletionProvider
from resume_screener.services.file_store import FileStore
from resume_screener.services.resume_parser import parse_resume_text
from resume_screener.services.text_extraction import (
    apply_extraction,
    extract_text,
    mark_extraction_failed,
)

logger = logging.getLogger(__name__)


def ensure_profile(db: Session, user_id: str) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile is None:
        profile = Profile(user_id=user_id)
        db.add(profile)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(profile)
        logger.info(f"Created profile for user {user_id}")
    return profile


def get_resume(db: Session, user_id: str, resume_id: int) -> Resume:
    resume = db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == user_id).first()
    if not resume:
        raise UpstreamFetchError(f"Resume not found: {resume_id}")
    return resume


def get_job_description(db: Session, user_id: str, job_description_id: int) -> JobDescription:
    job = db.query(JobDescription).filter(
        JobDescription.id == job_description_id,
        JobDescription.user_id == user_id
    ).first()
    if not job:
        raise UpstreamFetchError(f"Job description not found: {job_description_id}")
    return job


def create_job_description(db: Session, user_id: str, job_in: JobDescriptionCreate) -> JobDescription:
    data = job_in.model_dump()
    if not data.get("title"):
        # File-based descriptions may arrive untitled; the file name stands in until parsed
        data["title"] = (job_in.file_name or "Untitled position").rsplit(".", 1)[0]
    job = JobDescription(user_id=user_id, **data)
    db.add(job)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    return job


def create_resume(
    db: Session,
    user_id: str,
    file_name: str,
    file_url: Optional[str],
    job_description_id: Optional[int] = None,
) -> Resume:
    resume = Resume(
        user_id=user_id,
        file_name=file_name,
        file_url=file_url,
        job_description_id=job_description_id,
    )
    db.add(resume)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(resume)
    return resume


def fetch_and_extract(
    file_url: str, file_name: str, provider: TextCompletionProvider, store: FileStore
) -> Tuple[str, Dict[str, Any]]:
    """Download, extract and parse one file without touching the database."""
    content = store.fetch(file_url)
    text = extract_text(content, file_name, provider)
    return text, parse_resume_text(text, provider)


def extract_resume(
    db: Session,
    resume: Resume,
    provider: TextCompletionProvider,
    store: FileStore,
    file_url: Optional[str] = None,
    file_name: Optional[str] = None,
) -> Resume:
    """
    Run extraction and parsing for a stored resume and persist the outcome.

    An ExtractionFailedError is recorded on the resume before it propagates, so a
    failed extraction is never confused with an empty document.
    """
    file_url = file_url or resume.file_url
    file_name = file_name or resume.file_name
    logger.info(f"Extracting text from {file_name} for resume {resume.id}")
    try:
        text, parsed = fetch_and_extract(file_url, file_name, provider, store)
    except ExtractionFailedError as exc:
        mark_extraction_failed(db, resume, exc.message)
        raise
    apply_extraction(db, resume, text, parsed)
    logger.info(f"Text extraction completed for resume {resume.id}")
    return resume


def latest_results(db: Session, user_id: str, job_description_id: int) -> List[ScoreCard]:
    """Newest analysis per resume for one job description, best score first."""
    get_job_description(db, user_id, job_description_id)
    rows = (
        db.query(AnalysisResult, Resume)
        .join(Resume, AnalysisResult.resume_id == Resume.id)
        .filter(
            AnalysisResult.job_description_id == job_description_id,
            Resume.user_id == user_id,
        )
        .order_by(AnalysisResult.id.desc())
        .all()
    )
    cards: Dict[int, ScoreCard] = {}
    for analysis, resume in rows:
        if resume.id in cards:
            continue
        info = (resume.parsed_data or {}).get("personal_info") or {}
        detail = analysis.detailed_analysis or {}
        cards[resume.id] = ScoreCard(
            resume_id=resume.id,
            analysis_id=analysis.id,
            candidate_name=resume.candidate_name,
            email=info.get("email"),
            location=info.get("location"),
            score=analysis.relevance_score,
            verdict=analysis.verdict,
            hard_match_score=analysis.hard_match_score,
            soft_match_score=analysis.soft_match_score,
            missing_skills=analysis.missing_skills or [],
            suggestions=analysis.improvement_suggestions or [],
            strengths=detail.get("strengths") or [],
            processed_at=analysis.processed_at,
        )
    return sorted(cards.values(), key=lambda card: card.score, reverse=True)
