import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from resume_screener.core import prompts
from resume_screener.core.exceptions import (
    AnalysisFailedError,
    ExternalModelError,
    MalformedModelOutputError,
)
from resume_screener.models.analysis_result import AnalysisResult
from resume_screener.models.job_description import JobDescription
from resume_screener.models.resume import Resume
from resume_screener.schemas.analysis import AnalysisPayload, Verdict
from resume_screener.services.completion_provider import Prompt, TextCompletionProvider
from resume_screener.services.text_extraction import is_usable_text

logger = logging.getLogger(__name__)

HARD_MATCH_WEIGHT = 40
SOFT_MATCH_WEIGHT = 60
HIGH_THRESHOLD = 80
MEDIUM_THRESHOLD = 50
RESUME_TEXT_LIMIT = 15000


def classify_verdict(score: float) -> Verdict:
    if score >= HIGH_THRESHOLD:
        return Verdict.HIGH
    if score >= MEDIUM_THRESHOLD:
        return Verdict.MEDIUM
    return Verdict.LOW


def _joined(values: Optional[Iterable[str]]) -> str:
    items = [v for v in (values or []) if v]
    return ", ".join(items) if items else prompts.NOT_SPECIFIED


def build_analysis_prompt(job: JobDescription, resume_text: Optional[str]) -> Prompt:
    """Same job and resume always produce the same prompt."""
    user_content = prompts.get_prompt(
        prompts.RESUME_ANALYSIS_USER_TEMPLATE,
        title=job.title,
        company=job.company or prompts.NOT_SPECIFIED,
        experience_level=job.experience_level or prompts.NOT_SPECIFIED,
        location=job.location or prompts.NOT_SPECIFIED,
        required_skills=_joined(job.required_skills),
        preferred_skills=_joined(job.preferred_skills),
        description=job.description or "",
        resume_text=(resume_text if is_usable_text(resume_text) else prompts.NO_RESUME_TEXT)[:RESUME_TEXT_LIMIT],
        hard_weight=HARD_MATCH_WEIGHT,
        soft_weight=SOFT_MATCH_WEIGHT,
        high_threshold=HIGH_THRESHOLD,
        medium_threshold=MEDIUM_THRESHOLD,
        high_floor=HIGH_THRESHOLD - 1,
        medium_floor=MEDIUM_THRESHOLD - 1,
    )
    return Prompt(
        system=prompts.RESUME_ANALYSIS_SYSTEM,
        user=user_content,
        temperature=0.3,
        max_tokens=2000,
    )


def evaluate_resume(
    job: JobDescription, resume_text: Optional[str], provider: TextCompletionProvider
) -> AnalysisPayload:
    """
    Score one resume against one job description. Touches no database state.

    The verdict is recomputed from the score so the tiers never drift from the
    fixed thresholds, whatever the model claimed.
    """
    try:
        payload = provider.complete(build_analysis_prompt(job, resume_text), schema=AnalysisPayload)
    except MalformedModelOutputError as exc:
        logger.error(f"Failed to parse AI response: {exc.message}")
        raise AnalysisFailedError("Failed to parse analysis result from AI", cause=exc) from exc
    except ExternalModelError as exc:
        raise AnalysisFailedError(f"AI analysis failed: {exc.message}", cause=exc) from exc

    derived = classify_verdict(payload.relevance_score)
    if payload.verdict is not None and payload.verdict != derived:
        logger.info(
            f"Model verdict {payload.verdict.value} disagrees with score {payload.relevance_score}; using {derived.value}"
        )
    payload.verdict = derived
    return payload


def record_analysis(db: Session, resume_id: int, job_description_id: int, payload: AnalysisPayload) -> AnalysisResult:
    """Insert a new analysis row. Earlier rows for the same pair are left untouched."""
    analysis = AnalysisResult(
        resume_id=resume_id,
        job_description_id=job_description_id,
        relevance_score=payload.relevance_score,
        verdict=payload.verdict.value,
        hard_match_score=payload.hard_match_score,
        soft_match_score=payload.soft_match_score,
        missing_skills=payload.missing_skills,
        improvement_suggestions=payload.improvement_suggestions,
        detailed_analysis=payload.detailed_analysis.model_dump(),
    )
    db.add(analysis)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(analysis)
    return analysis


def score_resume(
    db: Session, resume: Resume, job: JobDescription, provider: TextCompletionProvider
) -> AnalysisResult:
    logger.info(f"Analyzing resume {resume.id} for job description {job.id}")
    payload = evaluate_resume(job, resume.extracted_text, provider)
    analysis = record_analysis(db, resume.id, job.id, payload)
    logger.info(f"Analysis {analysis.id} stored: score={analysis.relevance_score} verdict={analysis.verdict}")
    return analysis
