"""
Field Maps
Builds the placeholder values for certificate and transcript templates
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from app.config import settings
from app.schemas.certificate import CompletionClaim, CourseUnit, GenerationOverrides

# Transcript templates carry fixed UNIT_<n>_NAME / UNIT_<n>_CREDITS slots.
# Units beyond this count cannot be shown without changing the templates.
MAX_TRANSCRIPT_UNITS = 25


def ordinal_suffix(day: int) -> str:
    if 10 <= day % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_date(value: Optional[Union[date, datetime]]) -> str:
    """1st January 2026"""
    if not value:
        return ""
    return f"{value.day}{ordinal_suffix(value.day)} {value.strftime('%B')} {value.year}"


def first_non_empty(*values: Optional[str]) -> str:
    for value in values:
        if value and value.strip():
            return value
    return ""


def resolve_student_name(claim: CompletionClaim, overrides: Optional[GenerationOverrides] = None) -> str:
    return first_non_empty(
        overrides.student_name if overrides else None,
        claim.full_name,
        claim.student_name,
    )


def resolve_course_name(claim: CompletionClaim, overrides: Optional[GenerationOverrides] = None) -> str:
    return first_non_empty(
        overrides.course_name if overrides else None,
        claim.certificate_name,
        claim.selected_course_name,
        claim.course_title,
    )


def format_units(units: List[CourseUnit]) -> Dict[str, str]:
    """UNIT_1_NAME .. UNIT_25_CREDITS, unused slots empty"""
    fields = {}
    for num in range(1, MAX_TRANSCRIPT_UNITS + 1):
        fields[f"UNIT_{num}_NAME"] = ""
        fields[f"UNIT_{num}_CREDITS"] = ""

    for num, unit in enumerate(units[:MAX_TRANSCRIPT_UNITS], start=1):
        fields[f"UNIT_{num}_NAME"] = unit.title or f"Unit {num}"
        fields[f"UNIT_{num}_CREDITS"] = f"({unit.credits} CPD Credits)"

    return fields


def build_certificate_fields(
    claim: CompletionClaim,
    registration_number: str,
    overrides: Optional[GenerationOverrides] = None,
    issued_on: Optional[date] = None
) -> Dict[str, str]:
    issued = format_date(issued_on or date.today())
    return {
        "REGISTRATION_NO": registration_number,
        "STUDENT_NAME": resolve_student_name(claim, overrides),
        "COURSE_NAME": resolve_course_name(claim, overrides),
        "DATE_OF_ISSUANCE": issued,
        "COMPLETION_DATE": format_date(claim.claimed_at),
        # Older templates use {{ DATE }} / {{ Date }}
        "DATE": issued,
        "Date": issued,
    }


def build_transcript_fields(
    claim: CompletionClaim,
    registration_number: str,
    units: List[CourseUnit],
    overrides: Optional[GenerationOverrides] = None
) -> Dict[str, str]:
    return {
        "REGISTRATION_NO": registration_number,
        "STUDENT_NAME": resolve_student_name(claim, overrides),
        "COURSE_NAME": resolve_course_name(claim, overrides),
        "COURSE_LEVEL": claim.cpd_course_level or settings.DEFAULT_COURSE_LEVEL,
        "COMPLETION_DATE": format_date(claim.claimed_at),
        **format_units(units),
    }
