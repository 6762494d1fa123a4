"""
Certificate Generation Models
Claims going in, generated certificates and log entries coming out
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
import json

from app.schemas.template import CourseCategory


class GenerationStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class LogAction(str, Enum):
    GENERATED = "generated"
    PDF_CREATED = "pdf_created"
    REGISTRATION_ADDED = "registration_added"
    GENERATION_FAILED = "generation_failed"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _parse_json(value):
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return {"raw": value}
    return value


class CompletionClaim(BaseModel):
    """A student's claim for a course certificate, joined with course and account data"""
    model_config = {"from_attributes": True}

    id: int
    student_id: int
    course_id: int
    course_type: CourseCategory
    course_title: str
    student_name: str = ""
    full_name: Optional[str] = None
    certificate_name: Optional[str] = None
    selected_course_name: Optional[str] = None
    cpd_course_level: Optional[str] = None
    claimed_at: Optional[datetime] = None


class CourseUnit(BaseModel):
    """One row of a transcript"""
    unit_number: int
    title: str
    credits: int


class UnitOverride(BaseModel):
    name: str = Field(..., min_length=1)
    credits: Optional[int] = Field(default=None, ge=0)


class GenerationOverrides(BaseModel):
    """Operator edits applied on top of the resolved claim data"""
    student_name: Optional[str] = None
    course_name: Optional[str] = None
    units: Optional[List[UnitOverride]] = None


class GeneratedCertificateRecord(BaseModel):
    """Stored pipeline output"""
    model_config = {"from_attributes": True}

    id: int
    claim_id: int
    student_id: Optional[int] = None
    course_id: Optional[int] = None
    course_category: Optional[CourseCategory] = None
    certificate_docx_path: Optional[str] = None
    transcript_docx_path: Optional[str] = None
    certificate_pdf_url: Optional[str] = None
    transcript_pdf_url: Optional[str] = None
    registration_number: Optional[str] = None
    registration_added_at: Optional[datetime] = None
    registration_added_by: Optional[int] = None
    status: GenerationStatus
    error_message: Optional[str] = None
    field_snapshot: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("field_snapshot", mode="before")
    @classmethod
    def parse_snapshot(cls, v):
        return _parse_json(v)


class GeneratedCertificateListResponse(BaseModel):
    total: int
    certificates: List[GeneratedCertificateRecord]


class GenerationLogEntry(BaseModel):
    """Single generation log entry"""
    model_config = {"from_attributes": True}

    id: int
    generated_certificate_id: int
    action: str
    performed_by: Optional[int] = None
    details: Optional[dict] = None
    created_at: Optional[datetime] = None

    @field_validator("details", mode="before")
    @classmethod
    def parse_details(cls, v):
        return _parse_json(v)


class GenerationResult(BaseModel):
    """What a pipeline run hands back to its caller"""
    generated_certificate_id: int
    claim_id: int
    registration_number: str
    status: GenerationStatus
    certificate_docx_path: str
    transcript_docx_path: str
    certificate_pdf_url: Optional[str] = None
    transcript_pdf_url: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    registration_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    overrides: Optional[GenerationOverrides] = None

    @field_validator("registration_number", mode="before")
    @classmethod
    def strip_registration_number(cls, v):
        return _strip(v)


class AddRegistrationRequest(BaseModel):
    registration_number: str = Field(..., min_length=1, max_length=50)
    performed_by: Optional[int] = None

    @field_validator("registration_number", mode="before")
    @classmethod
    def strip_registration_number(cls, v):
        return _strip(v)


class QueuedGenerationResponse(BaseModel):
    claim_id: int
    status: GenerationStatus
    message: str


class NextRegistrationNumberResponse(BaseModel):
    registration_number: str


class BatchGenerateRequest(BaseModel):
    claim_ids: List[int] = Field(..., min_length=1)


class BatchItemResult(BaseModel):
    claim_id: int
    success: bool
    registration_number: Optional[str] = None
    status: Optional[GenerationStatus] = None
    error: Optional[str] = None


class BatchGenerateResponse(BaseModel):
    results: List[BatchItemResult]
