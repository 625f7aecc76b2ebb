from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from resume_screener.database import Base


class AnalysisResult(Base):
    """One scoring run of a resume against a job description. Rows are append-only."""
    __tablename__ = "analysis_results"

    id = Column(Integer, primary_key=True, index=True)
    resume_id = Column(Integer, ForeignKey("resumes.id"), nullable=False, index=True)
    job_description_id = Column(Integer, ForeignKey("job_descriptions.id"), nullable=False, index=True)

    relevance_score = Column(Float, nullable=False)
    verdict = Column(String(10), nullable=False)  # High, Medium, Low
    hard_match_score = Column(Float, nullable=True)
    soft_match_score = Column(Float, nullable=True)
    missing_skills = Column(JSON, default=list)
    improvement_suggestions = Column(JSON, default=list)
    detailed_analysis = Column(JSON, nullable=True)

    processed_at = Column(DateTime(timezone=True), server_default=func.now())

    resume = relationship("Resume", back_populates="analyses")
