from resume_screener.core import prompts
from resume_screener.core.exceptions import ExternalModelError
from resume_screener.models.analysis_result import AnalysisResult
from resume_screener.models.resume import Resume

MANUAL_JD = {
    "jobTitle": "Senior Software Engineer",
    "company": "Acme",
    "location": "Remote",
    "experience": "Senior",
    "description": "Build web products end to end.",
    "requirements": "React, AWS",
}


def fail_document_model(prompt):
    if prompt.system == prompts.DOCUMENT_EXTRACTION_SYSTEM:
        raise ExternalModelError("AI service returned error 503: overloaded", status=503)
    return None


# --- job descriptions ---

def test_create_job_description_from_fields(client, headers):
    response = client.post("/api/job-descriptions/", json=MANUAL_JD, headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Senior Software Engineer"
    assert data["required_skills"] == ["React", "AWS"]
    assert data["file_url"] is None


def test_job_description_rejects_fields_and_file_together(client, headers):
    body = dict(MANUAL_JD, fileName="jd.pdf", fileUrl="local://recruiter-1/jd.pdf")
    response = client.post("/api/job-descriptions/", json=body, headers=headers)

    assert response.status_code == 422
    assert response.json()["success"] is False
    assert "not both" in response.json()["error"]


def test_job_description_rejects_neither_source(client, headers):
    response = client.post("/api/job-descriptions/", json={"jobTitle": "Engineer"}, headers=headers)

    assert response.status_code == 422
    assert "required" in response.json()["error"]


def test_upload_job_description_file(client, headers):
    response = client.post(
        "/api/job-descriptions/upload",
        files={"file": ("backend-role.txt", b"Backend engineer, Python, Postgres", "text/plain")},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "backend-role"
    assert data["file_url"].startswith("local://")


def test_upload_job_description_rejects_bad_type(client, headers):
    response = client.post(
        "/api/job-descriptions/upload",
        files={"file": ("role.png", b"\x89PNG", "image/png")},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "UPLOAD_REJECTED"
    assert response.json()["details"]["errors"] == ["File type .png is not supported"]


def test_job_descriptions_are_scoped_to_owner(client, headers, make_job):
    job = make_job(user_id="someone-else")

    assert client.get(f"/api/job-descriptions/{job.id}", headers=headers).status_code == 404
    assert client.get("/api/job-descriptions/", headers=headers).json() == []


# --- resume upload ---

def test_upload_keeps_valid_files_and_reports_rejects(client, headers, make_job):
    job = make_job()
    response = client.post(
        "/api/resumes/upload",
        files=[
            ("files", ("jane.txt", b"React and AWS", "text/plain")),
            ("files", ("setup.exe", b"MZ", "application/octet-stream")),
        ],
        data={"jobDescriptionId": str(job.id)},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert [r["file_name"] for r in data["accepted"]] == ["jane.txt"]
    assert data["accepted"][0]["job_description_id"] == job.id
    assert data["accepted"][0]["extraction_status"] == "pending"
    assert data["errors"] == ["File type .exe is not supported"]


def test_upload_with_no_valid_files_is_rejected(client, headers):
    response = client.post(
        "/api/resumes/upload",
        files=[("files", ("photo.jpg", b"\xff\xd8", "image/jpeg"))],
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "UPLOAD_REJECTED"


# --- extract-text ---

def test_extract_text_round_trips_plain_text(client, headers, make_resume):
    content = "Jane Doe\n5 years React, Node.js, AWS\n"
    resume = make_resume(file_name="jane.txt", content=content.encode("utf-8"))

    response = client.post(
        "/api/extract-text",
        json={"fileUrl": resume.file_url, "fileName": "jane.txt", "resumeId": resume.id},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["extracted_text"] == content
    assert data["parsed_data"]["personal_info"]["name"] == "Jane Doe"

    stored = client.get(f"/api/resumes/{resume.id}", headers=headers).json()
    assert stored["extracted_text"] == content
    assert stored["extraction_status"] == "completed"


def test_extract_text_pdf_failure_is_recorded(client, headers, provider, make_resume, db_session):
    provider.handler = fail_document_model
    resume = make_resume(file_name="cv.pdf", content=b"%PDF-1.4 scanned")

    response = client.post(
        "/api/extract-text",
        json={"fileUrl": resume.file_url, "fileName": "cv.pdf", "resumeId": resume.id},
        headers=headers,
    )

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["code"] == "EXTRACTION_FAILED"

    stored = db_session.query(Resume).filter(Resume.id == resume.id).one()
    assert stored.extraction_status == "failed"
    assert stored.extracted_text is None
    assert "503" in stored.extraction_error


def test_extract_text_unknown_resume(client, headers):
    response = client.post(
        "/api/extract-text",
        json={"fileUrl": "local://recruiter-1/x.txt", "fileName": "x.txt", "resumeId": 999},
        headers=headers,
    )
    assert response.status_code == 500
    assert response.json()["code"] == "UPSTREAM_FETCH_FAILED"


# --- analyze-resume ---

def _extracted_resume(make_resume, job, file_name="jane.txt", text="5 years React, Node.js, AWS", **extra):
    return make_resume(
        file_name=file_name,
        content=text.encode("utf-8"),
        job=job,
        extracted_text=text,
        extraction_status="completed",
        **extra,
    )


def test_analyze_scores_matching_resume_high(client, headers, make_job, make_resume):
    job = make_job()
    resume = _extracted_resume(make_resume, job)

    response = client.post(
        "/api/analyze-resume",
        json={"resumeId": resume.id, "jobDescriptionId": job.id},
        headers=headers,
    )

    assert response.status_code == 200
    analysis = response.json()["analysis"]
    assert analysis["relevance_score"] == 94.0
    assert analysis["verdict"] == "High"
    assert "React" not in analysis["missing_skills"]
    assert "AWS" not in analysis["missing_skills"]


def test_analyze_is_append_only(client, headers, make_job, make_resume, db_session):
    job = make_job()
    resume = _extracted_resume(make_resume, job)
    body = {"resumeId": resume.id, "jobDescriptionId": job.id}

    first = client.post("/api/analyze-resume", json=body, headers=headers).json()["analysis"]
    second = client.post("/api/analyze-resume", json=body, headers=headers).json()["analysis"]

    assert first["id"] != second["id"]
    rows = db_session.query(AnalysisResult).filter(AnalysisResult.resume_id == resume.id).all()
    assert len(rows) == 2


def test_analyze_malformed_reply_writes_nothing(client, headers, provider, make_job, make_resume, db_session):
    job = make_job()
    resume = _extracted_resume(make_resume, job)
    provider.handler = lambda prompt: "Strong candidate, would hire."

    response = client.post(
        "/api/analyze-resume",
        json={"resumeId": resume.id, "jobDescriptionId": job.id},
        headers=headers,
    )

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "ANALYSIS_FAILED"
    assert body["details"]["cause"] == "MALFORMED_MODEL_OUTPUT"
    assert db_session.query(AnalysisResult).filter(AnalysisResult.resume_id == resume.id).count() == 0


def test_results_are_latest_per_resume_best_first(client, headers, make_job, make_resume):
    job = make_job()
    jane = _extracted_resume(
        make_resume, job, parsed_data={"personal_info": {"name": "Jane Doe", "email": "jane@example.com"}}
    )
    bob = _extracted_resume(make_resume, job, file_name="bob.txt", text="Java and Spring developer")

    for resume in (bob, jane, jane):
        client.post(
            "/api/analyze-resume",
            json={"resumeId": resume.id, "jobDescriptionId": job.id},
            headers=headers,
        )

    cards = client.get(f"/api/job-descriptions/{job.id}/results", headers=headers).json()

    assert [c["resume_id"] for c in cards] == [jane.id, bob.id]
    assert cards[0]["candidate_name"] == "Jane Doe"
    assert cards[0]["email"] == "jane@example.com"
    assert cards[0]["verdict"] == "High"
    assert cards[1]["candidate_name"] == "bob"
    assert cards[1]["verdict"] == "Low"
    assert cards[1]["missing_skills"] == ["React", "AWS"]
