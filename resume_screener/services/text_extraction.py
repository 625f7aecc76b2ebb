import base64
import io
import logging
import os
from typing import Optional

import docx
import PyPDF2
from sqlalchemy.orm import Session

from resume_screener.core import prompts
from resume_screener.core.config import settings
from resume_screener.core.exceptions import ExternalModelError, ExtractionFailedError
from resume_screener.models.resume import ExtractionStatus, Resume
from resume_screener.services.completion_provider import Prompt, TextCompletionProvider

logger = logging.getLogger(__name__)

UNEXTRACTABLE_TEXT = "Unable to extract text from this file type"
PDF_MAX_TOKENS = 4000


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def extract_text(
    content: bytes,
    file_name: str,
    provider: Optional[TextCompletionProvider] = None,
    pdf_strategy: Optional[str] = None,
) -> str:
    """
    Turn raw file bytes into plain text.

    .txt is decoded as UTF-8 with undecodable bytes replaced by U+FFFD, .pdf goes to the document model (or PyPDF2 when the
    strategy is "local"), .docx is read locally; anything else gets a best-effort
    UTF-8 decode and falls back to UNEXTRACTABLE_TEXT.
    Raises ExtractionFailedError when a supported format yields nothing.
    """
    ext = file_extension(file_name)
    logger.info(f"Extracting text from {file_name} ({len(content)} bytes)")

    if ext == ".txt":
        return content.decode("utf-8", errors="replace")
    if ext == ".pdf":
        strategy = pdf_strategy or settings.ai.pdf_extraction_strategy
        if strategy == "local":
            return _extract_pdf_locally(content, file_name)
        return _extract_pdf_with_model(content, file_name, provider)
    if ext == ".docx":
        return _extract_docx(content, file_name)

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(f"Could not decode {file_name} as UTF-8")
        return UNEXTRACTABLE_TEXT


def _extract_pdf_with_model(content: bytes, file_name: str, provider: Optional[TextCompletionProvider]) -> str:
    if provider is None:
        raise ExtractionFailedError("No document model configured for PDF extraction", file_name=file_name)

    encoded = base64.b64encode(content).decode("ascii")
    prompt = Prompt(
        system=prompts.DOCUMENT_EXTRACTION_SYSTEM,
        user=[
            {"type": "text", "text": prompts.DOCUMENT_EXTRACTION_USER},
            {"type": "image_url", "image_url": {"url": f"data:application/pdf;base64,{encoded}"}},
        ],
        temperature=0,
        max_tokens=PDF_MAX_TOKENS,
    )
    try:
        text = provider.complete(prompt)
    except ExternalModelError as exc:
        logger.error(f"Document model failed for {file_name}: {exc.message}")
        raise ExtractionFailedError(f"Document model failed: {exc.message}", file_name=file_name) from exc

    if not text or not text.strip():
        raise ExtractionFailedError("Document model returned no text", file_name=file_name)
    return text


def _extract_pdf_locally(content: bytes, file_name: str) -> str:
    try:
        reader = PyPDF2.PdfReader(io.BytesIO(content))
        text = "\n".join((page.extract_text() or "") for page in reader.pages)
    except Exception as exc:
        raise ExtractionFailedError(f"Error reading PDF: {exc}", file_name=file_name) from exc
    if not text.strip():
        raise ExtractionFailedError("PDF contains no extractable text", file_name=file_name)
    return text.strip()


def _extract_docx(content: bytes, file_name: str) -> str:
    try:
        document = docx.Document(io.BytesIO(content))
    except Exception as exc:
        raise ExtractionFailedError(f"Error reading DOCX: {exc}", file_name=file_name) from exc
    return "\n".join(p.text for p in document.paragraphs).strip()


def is_usable_text(text: Optional[str]) -> bool:
    return bool(text and text.strip()) and text != UNEXTRACTABLE_TEXT


# --- persistence ---

def apply_extraction(db: Session, resume: Resume, text: str, parsed_data: Optional[dict]) -> Resume:
    resume.extracted_text = text
    resume.parsed_data = parsed_data
    resume.extraction_status = ExtractionStatus.COMPLETED.value
    resume.extraction_error = None
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(resume)
    return resume


def mark_extraction_failed(db: Session, resume: Resume, error: str) -> Resume:
    resume.extracted_text = None
    resume.extraction_status = ExtractionStatus.FAILED.value
    resume.extraction_error = error
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(resume)
    return resume
