"""
Centralized AI Prompt Repository
- One place for every instruction sent to the model
- Templates are filled with get_prompt() so the text stays deterministic
"""

# --- TEXT EXTRACTION ---
DOCUMENT_EXTRACTION_SYSTEM = (
    "Extract all text content from this document. Format it cleanly and preserve structure "
    "like sections, bullet points, and contact information."
)

DOCUMENT_EXTRACTION_USER = "Please extract all text from this document:"

# --- STRUCTURED PARSING ---
RESUME_PARSE_SYSTEM = "You are a resume parser. Respond only with valid JSON."

RESUME_PARSE_USER_TEMPLATE = """
Extract structured information from this resume text and return a JSON object with the following structure:
{{
  "personal_info": {{
    "name": "Full Name",
    "email": "email@example.com",
    "phone": "phone number",
    "location": "city, state/country"
  }},
  "skills": ["skill1", "skill2", "skill3"],
  "experience": [
    {{
      "title": "Job Title",
      "company": "Company Name",
      "duration": "Start - End dates",
      "description": "Job description"
    }}
  ],
  "education": [
    {{
      "degree": "Degree Type",
      "institution": "University/School Name",
      "year": "Graduation year",
      "gpa": "GPA if available"
    }}
  ],
  "certifications": ["certification1", "certification2"],
  "projects": [
    {{
      "name": "Project Name",
      "description": "Project description",
      "technologies": ["tech1", "tech2"]
    }}
  ]
}}

Resume text:
{resume_text}
"""

# --- RELEVANCE SCORING ---
RESUME_ANALYSIS_SYSTEM = "You are an expert recruiter. Respond only with valid JSON."

RESUME_ANALYSIS_USER_TEMPLATE = """
You are an expert recruiter and career advisor. Analyze the following resume against the job description and provide a detailed assessment.

JOB DESCRIPTION:
Title: {title}
Company: {company}
Experience Level: {experience_level}
Location: {location}
Required Skills: {required_skills}
Preferred Skills: {preferred_skills}
Description: {description}

RESUME CONTENT:
{resume_text}

Please provide a JSON response with the following structure:
{{
  "relevance_score": <number 0-100>,
  "verdict": "<High|Medium|Low>",
  "hard_match_score": <number 0-100>,
  "soft_match_score": <number 0-100>,
  "missing_skills": ["skill1", "skill2"],
  "improvement_suggestions": ["suggestion1", "suggestion2"],
  "detailed_analysis": {{
    "strengths": ["strength1", "strength2"],
    "weaknesses": ["weakness1", "weakness2"],
    "experience_match": "explanation",
    "skills_match": "explanation",
    "education_match": "explanation"
  }}
}}

Scoring criteria:
- Hard Match ({hard_weight}%): Direct keyword matching for skills, certifications, education, job titles
- Soft Match ({soft_weight}%): Semantic understanding, relevant experience, transferable skills
- Relevance Score: Weighted combination of hard and soft match
- Verdict: High ({high_threshold}-100), Medium ({medium_threshold}-{high_floor}), Low (0-{medium_floor})
"""

NOT_SPECIFIED = "Not specified"
NO_RESUME_TEXT = "No text content available"


# helper to build prompts
def get_prompt(template: str, **kwargs) -> str:
    return template.format(**kwargs)
