from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ProcessingStep(BaseModel):
    id: str
    label: str
    status: StepStatus = StepStatus.PENDING
    progress: Optional[int] = None
    error: Optional[str] = None


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ResumeOutcome(BaseModel):
    resume_id: int
    file_name: Optional[str] = None
    status: OutcomeStatus
    stage: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    analysis_id: Optional[int] = None
    relevance_score: Optional[float] = None
    verdict: Optional[str] = None


class BatchCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_description_id: int = Field(alias="jobDescriptionId")
    resume_ids: List[int] = Field(default_factory=list, alias="resumeIds")
    halt_on_error: Optional[bool] = Field(default=None, alias="haltOnError")


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_description_id: int
    status: str
    total_resumes: int
    processed_resumes: int
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BatchReport(BaseModel):
    success: bool
    batch: BatchResponse
    steps: List[ProcessingStep]
    outcomes: List[ResumeOutcome] = Field(default_factory=list)
