# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    profile, job_description, resume, analysis_result, batch_job
)

# Explicit class exports for cleaner imports
from .profile import Profile
from .job_description import JobDescription
from .resume import Resume, ExtractionStatus
from .analysis_result import AnalysisResult
from .batch_job import BatchJob, BatchStatus

__all__ = [
    "Profile",
    "JobDescription",
    "Resume",
    "ExtractionStatus",
    "AnalysisResult",
    "BatchJob",
    "BatchStatus",
]
