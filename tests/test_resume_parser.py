import json

from resume_screener.core import prompts
from resume_screener.core.exceptions import ExternalModelError
from resume_screener.services.resume_parser import parse_resume_text
from resume_screener.services.text_extraction import UNEXTRACTABLE_TEXT


def test_returns_structured_record(provider):
    parsed = parse_resume_text("Jane Doe, React developer", provider)

    assert parsed["personal_info"]["name"] == "Jane Doe"
    assert parsed["skills"] == ["React", "Node.js", "AWS"]
    assert parsed["education"][0]["year"] == "2015"
    [prompt] = provider.calls_for(prompts.RESUME_PARSE_SYSTEM)
    assert prompt.temperature == 0.1


def test_missing_sections_default_to_empty(provider):
    provider.handler = lambda prompt: json.dumps({"skills": ["Go"]})
    parsed = parse_resume_text("Go developer", provider)
    assert parsed["experience"] == []
    assert parsed["personal_info"]["email"] is None


def test_unparseable_reply_becomes_error_marker(provider):
    provider.handler = lambda prompt: "Sorry, I cannot help with that."
    assert parse_resume_text("Jane Doe", provider) == {"error": "Failed to parse structured data"}


def test_model_error_becomes_error_marker(provider):
    def fail(prompt):
        raise ExternalModelError("AI service reached timeout limit.")
    provider.handler = fail
    assert parse_resume_text("Jane Doe", provider) == {"error": "Error during parsing"}


def test_unusable_text_skips_the_model(provider):
    assert parse_resume_text(UNEXTRACTABLE_TEXT, provider) == {}
    assert parse_resume_text("   ", provider) == {}
    assert provider.prompts == []
