from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ResumeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    file_url: Optional[str] = None
    job_description_id: Optional[int] = None
    extracted_text: Optional[str] = None
    parsed_data: Optional[Dict[str, Any]] = None
    extraction_status: str
    extraction_error: Optional[str] = None
    created_at: Optional[datetime] = None


class UploadReport(BaseModel):
    """Outcome of a multi-file upload: valid files are stored even when others are rejected."""
    success: bool
    accepted: List[ResumeResponse]
    errors: List[str]
