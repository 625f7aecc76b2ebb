import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from resume_screener.database import Base


class ExtractionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    job_description_id = Column(Integer, ForeignKey("job_descriptions.id"), nullable=True, index=True)

    file_name = Column(String, nullable=False)
    file_url = Column(String, nullable=True)

    extracted_text = Column(Text, nullable=True)
    parsed_data = Column(JSON, nullable=True)
    extraction_status = Column(String(20), default=ExtractionStatus.PENDING.value, nullable=False)
    extraction_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    analyses = relationship("AnalysisResult", back_populates="resume", order_by="AnalysisResult.id")

    @property
    def candidate_name(self) -> str:
        info = (self.parsed_data or {}).get("personal_info") or {}
        return info.get("name") or self.file_name.rsplit(".", 1)[0]
