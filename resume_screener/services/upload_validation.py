import os
from dataclasses import dataclass, field
from typing import Generic, Iterable, List, Optional, Tuple, TypeVar

from resume_screener.core.config import settings

T = TypeVar("T")


def validate_file(
    file_name: str,
    size_bytes: int,
    accepted_types: Optional[Iterable[str]] = None,
    max_size_mb: Optional[float] = None,
) -> Optional[str]:
    """Return a user-facing error message, or None when the file is acceptable."""
    accepted = [t.lower() for t in (accepted_types or settings.uploads.accepted_types)]
    max_mb = max_size_mb if max_size_mb is not None else settings.uploads.max_size_mb

    if size_bytes > max_mb * 1024 * 1024:
        return f"File {file_name} is too large (max {max_mb:g}MB)"

    file_ext = os.path.splitext(file_name)[1].lower()
    if file_ext not in accepted:
        return f"File type {file_ext or '(none)'} is not supported"
    return None


@dataclass
class ValidationReport(Generic[T]):
    accepted: List[T] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def validate_batch(
    files: Iterable[Tuple[str, int, T]],
    accepted_types: Optional[Iterable[str]] = None,
    max_size_mb: Optional[float] = None,
) -> ValidationReport[T]:
    """
    Split `(name, size, payload)` triples into accepted payloads and error messages.
    A rejected file never blocks the others.
    """
    report: ValidationReport[T] = ValidationReport()
    for name, size, payload in files:
        error = validate_file(name, size, accepted_types, max_size_mb)
        if error:
            report.errors.append(error)
        else:
            report.accepted.append(payload)
    return report
