import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip().lower() for item in os.getenv(name, default).split(",") if item.strip()]


class ServiceSettings(BaseModel):
    """Credentials for the external collaborators: file storage and the model API."""
    service_endpoint: Optional[str] = Field(default=os.getenv("SERVICE_ENDPOINT"))
    service_credential: Optional[str] = Field(default=os.getenv("SERVICE_CREDENTIAL"))
    model_api_key: Optional[str] = Field(default=os.getenv("MODEL_API_KEY", os.getenv("OPENAI_API_KEY")))


class AISettings(BaseModel):
    base_url: str = Field(default=os.getenv("AI_BASE_URL", "https://api.openai.com/v1"))
    model_name: str = Field(default=os.getenv("AI_MODEL_NAME", "gpt-4o-mini"))
    kill_switch: bool = Field(default=os.getenv("AI_KILL_SWITCH", "false").lower() == "true")
    request_timeout: float = Field(default=float(os.getenv("AI_REQUEST_TIMEOUT", "60")))
    max_retries: int = Field(default=int(os.getenv("AI_MAX_RETRIES", "2")))
    pdf_extraction_strategy: str = Field(default=os.getenv("PDF_EXTRACTION_STRATEGY", "model"))


class PipelineSettings(BaseModel):
    max_concurrency: int = Field(default=int(os.getenv("PIPELINE_MAX_CONCURRENCY", "4")))
    halt_on_error: bool = Field(default=os.getenv("PIPELINE_HALT_ON_ERROR", "true").lower() == "true")
    progress_increment: int = Field(default=int(os.getenv("PIPELINE_PROGRESS_INCREMENT", "20")))
    finished_runs_kept: int = Field(default=int(os.getenv("PIPELINE_FINISHED_RUNS_KEPT", "100")))


class UploadSettings(BaseModel):
    accepted_types: List[str] = Field(
        default_factory=lambda: _env_list("UPLOAD_ACCEPTED_TYPES", ".pdf,.doc,.docx,.txt")
    )
    max_size_mb: float = Field(default=float(os.getenv("UPLOAD_MAX_SIZE_MB", "10")))
    storage_dir: str = Field(default=os.getenv("UPLOAD_STORAGE_DIR", "uploads"))
    fetch_timeout: float = Field(default=float(os.getenv("FILE_FETCH_TIMEOUT", "30")))


class Config(BaseModel):
    app_name: str = "Resume Screener"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    user_id_header: str = "X-User-Id"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./screener.db")

    services: ServiceSettings = ServiceSettings()
    ai: AISettings = AISettings()
    pipeline: PipelineSettings = PipelineSettings()
    uploads: UploadSettings = UploadSettings()

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if not settings.services.model_api_key:
        raise RuntimeError(
            "FATAL: MODEL_API_KEY must be set for non-development environments."
        )
elif not settings.services.model_api_key:
    _logger.warning("MODEL_API_KEY is not set; model-backed stages will fail until it is configured.")
