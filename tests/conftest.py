import json
import os
import re
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from resume_screener.core import prompts
from resume_screener.database import Base, get_db, get_session_factory
from resume_screener.main import app
from resume_screener.models.job_description import JobDescription
from resume_screener.models.resume import Resume
from resume_screener.services.completion_provider import TextCompletionProvider, get_completion_provider
from resume_screener.services.file_store import FileStore, get_file_store
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "recruiter-1"


class ScriptedProvider(TextCompletionProvider):
    """
    Deterministic stand-in for the model API.

    Routes on the system prompt: document extraction echoes a fixed text, parsing
    returns a small resume record, and scoring counts which required skills appear
    in the resume text. Set `handler` to script anything else; a handler that
    returns None falls through to the default reply.
    """

    def __init__(self):
        self.prompts = []
        self.handler = None
        self._lock = threading.Lock()

    def send(self, prompt):
        with self._lock:
            self.prompts.append(prompt)
        if self.handler is not None:
            reply = self.handler(prompt)
            if reply is not None:
                return reply
        return default_reply(prompt)

    def calls_for(self, system_prompt):
        return [p for p in self.prompts if p.system == system_prompt]


def default_reply(prompt):
    if prompt.system == prompts.DOCUMENT_EXTRACTION_SYSTEM:
        return "Jane Doe\nSenior Engineer\n- React\n- AWS"
    if prompt.system == prompts.RESUME_PARSE_SYSTEM:
        return json.dumps({
            "personal_info": {"name": "Jane Doe", "email": "jane@example.com", "phone": None, "location": "Berlin"},
            "skills": ["React", "Node.js", "AWS"],
            "experience": [],
            "education": [{"degree": "BSc", "institution": "TU", "year": 2015}],
            "certifications": [],
            "projects": [],
        })
    if prompt.system == prompts.RESUME_ANALYSIS_SYSTEM:
        return json.dumps(fake_analysis(prompt.user))
    raise AssertionError(f"Unexpected prompt: {prompt.system}")


def fake_analysis(user_prompt):
    required_line = re.search(r"^Required Skills: (.*)$", user_prompt, re.MULTILINE).group(1)
    resume_text = user_prompt.split("RESUME CONTENT:\n", 1)[1].split("\n\nPlease provide", 1)[0]
    required = [] if required_line == prompts.NOT_SPECIFIED else [s.strip() for s in required_line.split(",")]
    matched = [s for s in required if s.lower() in resume_text.lower()]
    missing = [s for s in required if s not in matched]
    hard = 100.0 if not required else round(100.0 * len(matched) / len(required), 1)
    soft = 90.0 if matched else 30.0
    return {
        "relevance_score": round(0.4 * hard + 0.6 * soft, 1),
        "verdict": "Medium",
        "hard_match_score": hard,
        "soft_match_score": soft,
        "missing_skills": missing,
        "improvement_suggestions": [f"Add experience with {s}" for s in missing],
        "detailed_analysis": {
            "strengths": matched,
            "weaknesses": missing,
            "experience_match": "ok",
            "skills_match": "ok",
            "education_match": "ok",
        },
    }


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()

@pytest.fixture(scope="function")
def provider():
    return ScriptedProvider()

@pytest.fixture(scope="function")
def file_store(tmp_path):
    return FileStore(storage_dir=str(tmp_path / "uploads"))

@pytest.fixture(scope="function")
def headers():
    return {"X-User-Id": USER_ID}

@pytest.fixture(scope="function")
def make_job(db_session):
    """Insert a typed-in job description owned by the test user."""
    def _make_job(**overrides):
        fields = {
            "user_id": USER_ID,
            "title": "Senior Software Engineer",
            "company": "Acme",
            "location": "Remote",
            "experience_level": "Senior",
            "description": "Build web products end to end.",
            "requirements": "React, AWS",
            "required_skills": ["React", "AWS"],
            "preferred_skills": [],
        }
        fields.update(overrides)
        job = JobDescription(**fields)
        db_session.add(job)
        db_session.commit()
        return job
    return _make_job

@pytest.fixture(scope="function")
def make_resume(db_session, file_store):
    """Store a file and insert a resume row pointing at it."""
    def _make_resume(file_name="jane.txt", content=b"5 years React, Node.js, AWS", job=None, **overrides):
        file_url = file_store.save(USER_ID, file_name, content)
        resume = Resume(
            user_id=USER_ID,
            file_name=file_name,
            file_url=file_url,
            job_description_id=job.id if job else None,
            **overrides,
        )
        db_session.add(resume)
        db_session.commit()
        return resume
    return _make_resume

@pytest.fixture(scope="function")
def client(db_session, provider, file_store):
    """Get a TestClient wired to the test session, the scripted provider and a temp file store."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_provider] = lambda: provider
    app.dependency_overrides[get_file_store] = lambda: file_store
    app.dependency_overrides[get_session_factory] = lambda: (lambda: db_session)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
