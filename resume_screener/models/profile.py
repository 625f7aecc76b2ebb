from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from resume_screener.database import Base


class Profile(Base):
    """Recruiter profile. Identity is issued by the upstream auth gateway."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    role = Column(String(50), default="recruiter")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Profile {self.user_id}>"
