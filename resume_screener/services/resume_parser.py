import logging
from typing import Any, Dict

from resume_screener.core import prompts
from resume_screener.core.exceptions import ExternalModelError, MalformedModelOutputError
from resume_screener.schemas.analysis import ParsedResume
from resume_screener.services.completion_provider import Prompt, TextCompletionProvider
from resume_screener.services.text_extraction import is_usable_text

logger = logging.getLogger(__name__)

RESUME_TEXT_LIMIT = 15000


def parse_resume_text(text: str, provider: TextCompletionProvider) -> Dict[str, Any]:
    """
    Ask the model for the structured resume record.

    Never raises for model problems: a failed or malformed reply is stored as
    {"error": ...} so the extracted text is still kept.
    """
    if not is_usable_text(text):
        return {}

    prompt = Prompt(
        system=prompts.RESUME_PARSE_SYSTEM,
        user=prompts.get_prompt(prompts.RESUME_PARSE_USER_TEMPLATE, resume_text=text[:RESUME_TEXT_LIMIT]),
        temperature=0.1,
        max_tokens=2000,
    )
    try:
        parsed = provider.complete(prompt, schema=ParsedResume)
    except MalformedModelOutputError as exc:
        logger.error(f"Failed to parse structured data: {exc.message}")
        return {"error": "Failed to parse structured data"}
    except ExternalModelError as exc:
        logger.error(f"Error parsing structured data: {exc.message}")
        return {"error": "Error during parsing"}
    return parsed.model_dump()
