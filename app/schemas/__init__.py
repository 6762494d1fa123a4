"""
Pydantic schemas for request/response validation
"""

from app.schemas.template import TemplateKind, CourseCategory, TemplateRecord
from app.schemas.certificate import (
    GenerationStatus,
    LogAction,
    CompletionClaim,
    CourseUnit,
    GenerationOverrides,
    GeneratedCertificateRecord,
    GenerationLogEntry,
    GenerationResult,
)

__all__ = [
    "TemplateKind",
    "CourseCategory",
    "TemplateRecord",
    "GenerationStatus",
    "LogAction",
    "CompletionClaim",
    "CourseUnit",
    "GenerationOverrides",
    "GeneratedCertificateRecord",
    "GenerationLogEntry",
    "GenerationResult",
]
