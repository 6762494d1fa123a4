"""
Certificate Template Request/Response Models
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class TemplateKind(str, Enum):
    """Which document a template produces"""
    CERTIFICATE = "certificate"
    TRANSCRIPT = "transcript"


class CourseCategory(str, Enum):
    """Closed set of course types used for template selection"""
    CPD = "cpd"
    QUALIFICATION = "qualification"


class TemplateRecord(BaseModel):
    """Active template row"""
    model_config = {"from_attributes": True}

    id: int
    template_type: TemplateKind
    course_type: CourseCategory
    template_name: str
    template_path: str
    is_active: bool = True
    created_at: Optional[datetime] = None
