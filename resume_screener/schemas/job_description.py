import re
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_SKILL_SPLIT = re.compile(r"[,;\n]+")


def split_skills(value: Union[str, List[str], None]) -> List[str]:
    """Accept "React, AWS" or ["React", "AWS"]; drop blanks and bullet markers."""
    if value is None:
        return []
    items = _SKILL_SPLIT.split(value) if isinstance(value, str) else value
    cleaned = []
    for item in items:
        item = str(item).strip().lstrip("-*• ").strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class JobDescriptionCreate(BaseModel):
    """
    A job description is either typed in (title, company, description and
    requirements all present) or uploaded as a document. Exactly one of the two.
    """
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, alias="jobTitle")
    company: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = Field(default=None, alias="experience")
    salary: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    required_skills: List[str] = Field(default_factory=list, alias="requiredSkills")
    preferred_skills: List[str] = Field(default_factory=list, alias="preferredSkills")

    file_name: Optional[str] = Field(default=None, alias="fileName")
    file_url: Optional[str] = Field(default=None, alias="fileUrl")

    @field_validator("required_skills", "preferred_skills", mode="before")
    @classmethod
    def _normalize_skills(cls, value):
        return split_skills(value)

    @property
    def manual_complete(self) -> bool:
        return all(
            (v or "").strip()
            for v in (self.title, self.company, self.description, self.requirements)
        )

    @model_validator(mode="after")
    def _exactly_one_source(self):
        has_file = bool(self.file_url)
        if has_file and self.manual_complete:
            raise ValueError("Provide either the job description fields or a file, not both")
        if not has_file and not self.manual_complete:
            raise ValueError("Title, company, description and requirements are required when no file is uploaded")
        if not self.required_skills and self.requirements:
            self.required_skills = split_skills(self.requirements)
        return self


class JobDescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    company: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    required_skills: Optional[List[str]] = None
    preferred_skills: Optional[List[str]] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None
