"""
Shared fixtures: a throwaway SQLite database, .docx templates built with
python-docx, and converters that never shell out to LibreOffice.
"""

import os
import tempfile
from datetime import datetime
from io import BytesIO
from pathlib import Path

# Settings are read at import time, so point them at scratch locations first
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="coursecert_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["TEMPLATES_DIR"] = str(_TEST_ROOT / "templates")
os.environ["GENERATED_DIR"] = str(_TEST_ROOT / "generated")
os.environ["LOG_LEVEL"] = "DEBUG"
for _key in ("SUPABASE_URL", "SUPABASE_KEY", "LIBREOFFICE_PATH"):
    os.environ.pop(_key, None)

import pytest
from docx import Document
from sqlalchemy import insert

from app.config import settings
from app.database import create_schema, database, drop_schema, engine
from app.models import CertificateClaim, CertificateTemplate, Course, CpdTopic, QualUnit, Unit, User
from app.services.certificate_service import CertificateService
from app.services.pdf_converter import ConversionResult
from app.services.storage_service import StorageService
from app.services.template_service import TemplateService

CERTIFICATE_LINES = [
    "Registration No: {{ REGISTRATION_NO }}",
    "This is to certify that {{ STUDENT_NAME }}",
    "has completed {{ COURSE_NAME }}",
    "Issued on {{ DATE_OF_ISSUANCE }}",
]

TRANSCRIPT_LINES = [
    "Registration No: {{ REGISTRATION_NO }}",
    "Student: {{ STUDENT_NAME }}",
    "Course: {{ COURSE_NAME }} - {{ COURSE_LEVEL }}",
    "1. {{ UNIT_1_NAME }} {{ UNIT_1_CREDITS }}",
    "2. {{ UNIT_2_NAME }} {{ UNIT_2_CREDITS }}",
    "3. {{ UNIT_3_NAME }} {{ UNIT_3_CREDITS }}",
    "4. {{ UNIT_4_NAME }} {{ UNIT_4_CREDITS }}",
]


class FakeConverter:
    """Stands in for PdfConverter; succeeds unless given an error"""

    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    async def try_convert(self, docx_bytes):
        self.calls += 1
        if self.error:
            return ConversionResult(error=self.error)
        return ConversionResult(pdf_bytes=b"%PDF-1.4 test")


def make_docx(path, lines):
    doc = Document()
    for line in lines:
        doc.add_paragraph(line)
    doc.save(str(path))
    return path


def docx_text(source) -> str:
    """All paragraph text of a .docx given as a path or bytes"""
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)
    else:
        source = str(source)
    return "\n".join(p.text for p in Document(source).paragraphs)


def _insert(table, **values):
    with engine.begin() as conn:
        result = conn.execute(insert(table).values(**values))
        return result.inserted_primary_key[0]


def seed_course(title="Safeguarding Level 2", course_type="cpd", topics=()):
    course_id = _insert(Course.__table__, title=title, course_type=course_type)
    for position, topic in enumerate(topics, start=1):
        if course_type == "qualification":
            _insert(QualUnit.__table__, course_id=course_id, unit_number=position, title=topic)
        else:
            _insert(CpdTopic.__table__, course_id=course_id, topic_number=position, title=topic, order_index=position)
    return course_id


def seed_legacy_units(course_id, titles):
    for position, title in enumerate(titles, start=1):
        _insert(Unit.__table__, course_id=course_id, title=title, order_index=position)


def seed_claim(
    course_id=None,
    student_name="Ayesha Khan",
    course_type="cpd",
    claimed_at=datetime(2026, 1, 5, 10, 30),
    **claim_fields
):
    if course_id is None:
        course_id = seed_course(course_type=course_type)
    student_id = _insert(User.__table__, name=student_name, email="student@example.com")
    return _insert(
        CertificateClaim.__table__,
        student_id=student_id,
        course_id=course_id,
        course_type=course_type,
        claimed_at=claimed_at,
        payment_status="paid",
        **claim_fields
    )


def seed_template(template_type, course_type, template_path, is_active=True):
    return _insert(
        CertificateTemplate.__table__,
        template_type=template_type,
        course_type=course_type,
        template_name=f"{course_type} {template_type}",
        template_path=template_path,
        is_active=is_active,
    )


@pytest.fixture
async def db():
    create_schema()
    await database.connect()
    yield database
    await database.disconnect()
    drop_schema()


@pytest.fixture
def templates_dir():
    path = Path(settings.TEMPLATES_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def cpd_templates(db, templates_dir):
    """Active CPD certificate + transcript templates, files and rows"""
    make_docx(templates_dir / "cpd_certificate.docx", CERTIFICATE_LINES)
    make_docx(templates_dir / "cpd_transcript.docx", TRANSCRIPT_LINES)
    # Stored paths from the upload tool are Windows paths
    seed_template("certificate", "cpd", r"C:\uploads\templates\cpd_certificate.docx")
    seed_template("transcript", "cpd", "templates/active/cpd_transcript.docx")
    return templates_dir


@pytest.fixture
def storage(tmp_path):
    return StorageService(root=tmp_path / "generated", supabase_url="", supabase_key="")


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def service(db, templates_dir, storage, converter):
    return CertificateService(
        templates=TemplateService(templates_dir=templates_dir),
        converter=converter,
        storage=storage,
    )
