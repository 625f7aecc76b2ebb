"""
Schemas for everything that crosses the model boundary or the analysis endpoints.

ParsedResume and AnalysisPayload describe what the model must send back; replies that
do not validate against them are treated as malformed output.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Verdict(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# --- MODEL OUTPUT: STRUCTURED RESUME ---

class PersonalInfo(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class ExperienceEntry(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None


class EducationEntry(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    degree: Optional[str] = None
    institution: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[str] = None


class ProjectEntry(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)


class ParsedResume(BaseModel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    skills: List[str] = Field(default_factory=list)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)


# --- MODEL OUTPUT: RELEVANCE ANALYSIS ---

class DetailedAnalysis(BaseModel):
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    experience_match: Optional[str] = None
    skills_match: Optional[str] = None
    education_match: Optional[str] = None


class AnalysisPayload(BaseModel):
    relevance_score: float = Field(ge=0, le=100)
    verdict: Optional[Verdict] = None
    hard_match_score: float = Field(ge=0, le=100)
    soft_match_score: float = Field(ge=0, le=100)
    missing_skills: List[str] = Field(default_factory=list)
    improvement_suggestions: List[str] = Field(default_factory=list)
    detailed_analysis: DetailedAnalysis = Field(default_factory=DetailedAnalysis)


# --- API ---

class ExtractTextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(alias="fileUrl")
    file_name: str = Field(alias="fileName")
    resume_id: int = Field(alias="resumeId")


class ExtractTextResponse(BaseModel):
    success: bool = True
    extracted_text: str
    parsed_data: Dict[str, Any]


class AnalyzeResumeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resume_id: int = Field(alias="resumeId")
    job_description_id: int = Field(alias="jobDescriptionId")


class AnalysisResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_id: int
    job_description_id: int
    relevance_score: float
    verdict: Verdict
    hard_match_score: Optional[float] = None
    soft_match_score: Optional[float] = None
    missing_skills: List[str] = Field(default_factory=list)
    improvement_suggestions: List[str] = Field(default_factory=list)
    detailed_analysis: Optional[Dict[str, Any]] = None
    processed_at: Optional[datetime] = None


class AnalyzeResumeResponse(BaseModel):
    success: bool = True
    analysis: AnalysisResultResponse


class ScoreCard(BaseModel):
    """Read-only view of one candidate for the results page."""
    resume_id: int
    analysis_id: int
    candidate_name: str
    email: Optional[str] = None
    location: Optional[str] = None
    score: float
    verdict: Verdict
    hard_match_score: Optional[float] = None
    soft_match_score: Optional[float] = None
    missing_skills: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    processed_at: Optional[datetime] = None
