from typing import Any, Dict, List, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class UpstreamFetchError(AppException):
    """A file or record the request depends on could not be retrieved."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="UPSTREAM_FETCH_FAILED",
            details=details
        )

class ExternalModelError(AppException):
    """The model API refused, timed out or returned a non-2xx status."""
    def __init__(self, message: str, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.upstream_status = status
        super().__init__(
            message=message,
            status_code=500,
            error_code="EXTERNAL_MODEL_FAILED",
            details=details
        )

    @property
    def is_transient(self) -> bool:
        # No status means the request never got an answer (reset, timeout).
        return self.upstream_status is None or self.upstream_status >= 500 or self.upstream_status == 429

class AIKillSwitchError(ExternalModelError):
    def __init__(self):
        super().__init__(message="AI services are currently offline for maintenance.", status=403)
        self.error_code = "AI_KILL_SWITCH_ACTIVE"

class MalformedModelOutputError(AppException):
    """The model answered, but not with JSON matching the expected schema."""
    def __init__(self, message: str, raw_output: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="MALFORMED_MODEL_OUTPUT",
            details={"raw_output": raw_output[:500]} if raw_output else None
        )

class ExtractionFailedError(AppException):
    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="EXTRACTION_FAILED",
            details={"file_name": file_name} if file_name else None
        )

class AnalysisFailedError(AppException):
    def __init__(self, message: str, cause: Optional[AppException] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="ANALYSIS_FAILED",
            details={"cause": cause.error_code} if cause else None
        )
        self.cause = cause

class UploadValidationError(AppException):
    def __init__(self, errors: List[str]):
        super().__init__(
            message="; ".join(errors) if errors else "No valid files were uploaded",
            status_code=422,
            error_code="UPLOAD_REJECTED",
            details={"errors": errors}
        )

class InvalidJobDescriptionError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=422,
            error_code="INVALID_JOB_DESCRIPTION"
        )

class BatchCancelledError(AppException):
    def __init__(self, message: str = "Batch run was cancelled"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="BATCH_CANCELLED"
        )
