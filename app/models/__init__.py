"""
Database Models
Import all models here for Alembic migrations
"""

from app.models.course import User, Course, CpdTopic, QualUnit, Unit
from app.models.claim import CertificateClaim
from app.models.template import CertificateTemplate
from app.models.generated_certificate import GeneratedCertificate, GenerationLog, RegistrationCounter

__all__ = [
    "User",
    "Course",
    "CpdTopic",
    "QualUnit",
    "Unit",
    "CertificateClaim",
    "CertificateTemplate",
    "GeneratedCertificate",
    "GenerationLog",
    "RegistrationCounter",
]
