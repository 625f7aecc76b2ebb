import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from resume_screener.database import Base


class BatchStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BatchJob(Base):
    __tablename__ = "batch_jobs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    job_description_id = Column(Integer, ForeignKey("job_descriptions.id"), nullable=False)

    resume_ids = Column(JSON, default=list)
    # Advisory counters, bumped as results are written; not reconciled with analysis_results
    total_resumes = Column(Integer, default=0)
    processed_resumes = Column(Integer, default=0)
    status = Column(String(20), default=BatchStatus.PENDING.value, nullable=False)
    failed_stage = Column(String(50), nullable=True)
    error = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
