"""
Generated Certificate Models
Pipeline output (one row per claim), its append-only log and the
registration number counter
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, func
from sqlalchemy.orm import relationship
from app.database import Base


class GeneratedCertificate(Base):
    __tablename__ = "generated_certificates"

    id = Column(Integer, primary_key=True)
    claim_id = Column(Integer, ForeignKey("certificate_claims.id", ondelete="CASCADE"), nullable=False, unique=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    course_category = Column(String(20), nullable=True)

    # Rendered .docx documents
    certificate_docx_path = Column(Text, nullable=True)
    transcript_docx_path = Column(Text, nullable=True)

    # Converted PDFs, null while conversion has not succeeded
    certificate_pdf_url = Column(Text, nullable=True)
    transcript_pdf_url = Column(Text, nullable=True)

    registration_number = Column(String(50), nullable=True, index=True)
    registration_added_at = Column(DateTime(timezone=True), nullable=True)
    registration_added_by = Column(Integer, nullable=True)

    # pending, ready, failed
    status = Column(String(20), nullable=False, default="pending")
    error_message = Column(Text, nullable=True)

    # Field maps used for rendering
    field_snapshot = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    claim = relationship("CertificateClaim", backref="generated_certificate")


class GenerationLog(Base):
    __tablename__ = "certificate_generation_log"

    id = Column(Integer, primary_key=True)
    generated_certificate_id = Column(
        Integer, ForeignKey("generated_certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action = Column(String(50), nullable=False, index=True)
    performed_by = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    generated_certificate = relationship("GeneratedCertificate", backref="log_entries")


class RegistrationCounter(Base):
    """Named monotonically increasing counter, bumped in a single UPDATE"""
    __tablename__ = "registration_counters"

    name = Column(String(50), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
