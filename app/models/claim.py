"""
Certificate Claim Model
Created by the claim/payment flow once a student asks for a certificate
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.database import Base


class CertificateClaim(Base):
    __tablename__ = "certificate_claims"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    course_type = Column(String(20), nullable=False, default="cpd")

    # Name as the student wants it printed
    full_name = Column(String(200), nullable=True)
    # Course name overrides, most specific first
    certificate_name = Column(String(255), nullable=True)
    selected_course_name = Column(String(255), nullable=True)
    cpd_course_level = Column(String(100), nullable=True)

    payment_status = Column(String(20), nullable=True)
    claimed_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("User")
    course = relationship("Course")
