"""
Certificate Template Model
One active .docx template per (template type, course type)
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Index, Text, func, text
from app.database import Base


class CertificateTemplate(Base):
    __tablename__ = "certificate_templates"

    id = Column(Integer, primary_key=True)

    # "certificate" or "transcript"
    template_type = Column(String(20), nullable=False)
    # "cpd" or "qualification"
    course_type = Column(String(20), nullable=False)

    template_name = Column(String(200), nullable=False)
    template_path = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_certificate_templates_active",
            "template_type",
            "course_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )
