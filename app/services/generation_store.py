"""
Generation Store
Persists pipeline output keyed by claim id, plus the append-only generation log.

Every write to generated_certificates is a single
INSERT ... ON CONFLICT (claim_id) DO UPDATE statement, so a claim never gets
a second row and a write is never half applied.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from app.database import database, row_to_dict
from app.errors import GeneratedCertificateNotFoundError, PersistenceError
from app.logging_config import get_logger
from app.schemas.certificate import (
    CompletionClaim,
    GeneratedCertificateRecord,
    GenerationLogEntry,
    GenerationStatus,
    LogAction,
)

logger = get_logger(__name__)


def _dumps(payload: Optional[dict]) -> Optional[str]:
    return json.dumps(payload, default=str) if payload is not None else None


class GenerationStore:
    """Idempotent persistence for generated certificates"""

    @staticmethod
    async def upsert_generated(
        claim: CompletionClaim,
        certificate_docx_path: str,
        transcript_docx_path: str,
        certificate_pdf_url: Optional[str],
        transcript_pdf_url: Optional[str],
        registration_number: str,
        field_snapshot: Dict[str, Any],
        registration_added_by: Optional[int] = None,
        stamp_registration: bool = True,
        status: GenerationStatus = GenerationStatus.READY
    ) -> int:
        """
        Insert or overwrite the row for this claim, returns its id

        When stamp_registration is False the stored registration_added_at /
        registration_added_by are kept as they are.
        """
        try:
            generated_id = await database.fetch_val(
                """
                INSERT INTO generated_certificates (
                    claim_id, student_id, course_id, course_category,
                    certificate_docx_path, transcript_docx_path,
                    certificate_pdf_url, transcript_pdf_url,
                    registration_number, registration_added_at, registration_added_by,
                    status, error_message, field_snapshot
                ) VALUES (
                    :claim_id, :student_id, :course_id, :course_category,
                    :certificate_docx_path, :transcript_docx_path,
                    :certificate_pdf_url, :transcript_pdf_url,
                    :registration_number,
                    CASE WHEN :stamp_registration THEN CURRENT_TIMESTAMP END,
                    :registration_added_by,
                    :status, NULL, :field_snapshot
                )
                ON CONFLICT (claim_id) DO UPDATE SET
                    student_id = excluded.student_id,
                    course_id = excluded.course_id,
                    course_category = excluded.course_category,
                    certificate_docx_path = excluded.certificate_docx_path,
                    transcript_docx_path = excluded.transcript_docx_path,
                    certificate_pdf_url = excluded.certificate_pdf_url,
                    transcript_pdf_url = excluded.transcript_pdf_url,
                    registration_number = excluded.registration_number,
                    registration_added_at = COALESCE(
                        excluded.registration_added_at, generated_certificates.registration_added_at
                    ),
                    registration_added_by = COALESCE(
                        excluded.registration_added_by, generated_certificates.registration_added_by
                    ),
                    status = excluded.status,
                    error_message = NULL,
                    field_snapshot = excluded.field_snapshot,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING id
                """,
                {
                    "claim_id": claim.id,
                    "student_id": claim.student_id,
                    "course_id": claim.course_id,
                    "course_category": claim.course_type.value,
                    "certificate_docx_path": certificate_docx_path,
                    "transcript_docx_path": transcript_docx_path,
                    "certificate_pdf_url": certificate_pdf_url,
                    "transcript_pdf_url": transcript_pdf_url,
                    "registration_number": registration_number,
                    "stamp_registration": stamp_registration,
                    "registration_added_by": registration_added_by if stamp_registration else None,
                    "status": status.value,
                    "field_snapshot": _dumps(field_snapshot),
                }
            )
        except Exception as e:
            raise PersistenceError(f"Failed to save generated certificate for claim {claim.id}: {e}") from e

        return generated_id

    @staticmethod
    async def _upsert_status(
        claim_id: int,
        student_id: Optional[int],
        course_id: Optional[int],
        course_category: Optional[str],
        status: GenerationStatus,
        error_message: Optional[str]
    ) -> int:
        return await database.fetch_val(
            """
            INSERT INTO generated_certificates (
                claim_id, student_id, course_id, course_category, status, error_message
            ) VALUES (
                :claim_id, :student_id, :course_id, :course_category, :status, :error_message
            )
            ON CONFLICT (claim_id) DO UPDATE SET
                status = excluded.status,
                error_message = excluded.error_message,
                updated_at = CURRENT_TIMESTAMP
            RETURNING id
            """,
            {
                "claim_id": claim_id,
                "student_id": student_id,
                "course_id": course_id,
                "course_category": course_category,
                "status": status.value,
                "error_message": error_message,
            }
        )

    @staticmethod
    async def mark_failed(claim: CompletionClaim, error_message: str) -> int:
        """Record a fatal failure, keeping whatever the row already holds"""
        try:
            return await GenerationStore._upsert_status(
                claim.id, claim.student_id, claim.course_id, claim.course_type.value,
                GenerationStatus.FAILED, error_message
            )
        except Exception as e:
            raise PersistenceError(f"Failed to record failure for claim {claim.id}: {e}") from e

    @staticmethod
    async def mark_pending(claim: CompletionClaim) -> int:
        """Make a queued claim visible before its pipeline run starts"""
        try:
            return await GenerationStore._upsert_status(
                claim.id, claim.student_id, claim.course_id, claim.course_type.value,
                GenerationStatus.PENDING, None
            )
        except Exception as e:
            raise PersistenceError(f"Failed to queue claim {claim.id}: {e}") from e

    @staticmethod
    async def update_pdf_urls(
        generated_id: int,
        certificate_pdf_url: Optional[str],
        transcript_pdf_url: Optional[str]
    ) -> None:
        """Fill in converted documents, leaving existing URLs where nothing new was produced"""
        try:
            await database.execute(
                """
                UPDATE generated_certificates
                SET certificate_pdf_url = COALESCE(:certificate_pdf_url, certificate_pdf_url),
                    transcript_pdf_url = COALESCE(:transcript_pdf_url, transcript_pdf_url),
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
                """,
                {
                    "id": generated_id,
                    "certificate_pdf_url": certificate_pdf_url,
                    "transcript_pdf_url": transcript_pdf_url,
                }
            )
        except Exception as e:
            raise PersistenceError(f"Failed to update PDFs for certificate {generated_id}: {e}") from e

    @staticmethod
    async def get_optional_by_claim(claim_id: int) -> Optional[GeneratedCertificateRecord]:
        row = await database.fetch_one(
            "SELECT * FROM generated_certificates WHERE claim_id = :claim_id",
            {"claim_id": claim_id}
        )
        return GeneratedCertificateRecord(**row_to_dict(row)) if row else None

    @staticmethod
    async def get_by_claim(claim_id: int) -> GeneratedCertificateRecord:
        record = await GenerationStore.get_optional_by_claim(claim_id)
        if not record:
            raise GeneratedCertificateNotFoundError(claim_id=claim_id)
        return record

    @staticmethod
    async def get(generated_id: int) -> GeneratedCertificateRecord:
        row = await database.fetch_one(
            "SELECT * FROM generated_certificates WHERE id = :id",
            {"id": generated_id}
        )
        if not row:
            raise GeneratedCertificateNotFoundError(generated_id=generated_id)
        return GeneratedCertificateRecord(**row_to_dict(row))

    @staticmethod
    async def list_generated(
        status: Optional[GenerationStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[GeneratedCertificateRecord], int]:
        where_clause = "1=1"
        params: Dict[str, Any] = {}
        if status:
            where_clause += " AND status = :status"
            params["status"] = status.value

        total = await database.fetch_val(
            f"SELECT COUNT(*) FROM generated_certificates WHERE {where_clause}",
            params
        )

        rows = await database.fetch_all(
            f"""
            SELECT * FROM generated_certificates
            WHERE {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT :limit OFFSET :offset
            """,
            {**params, "limit": limit, "offset": offset}
        )

        return [GeneratedCertificateRecord(**row_to_dict(r)) for r in rows], total or 0

    @staticmethod
    async def registration_number_in_use(registration_number: str, exclude_id: Optional[int] = None) -> bool:
        query = "SELECT id FROM generated_certificates WHERE registration_number = :registration_number"
        params: Dict[str, Any] = {"registration_number": registration_number}
        if exclude_id is not None:
            query += " AND id != :exclude_id"
            params["exclude_id"] = exclude_id

        existing = await database.fetch_one(query, params)
        return existing is not None

    @staticmethod
    async def append_log(
        generated_id: int,
        action: LogAction,
        details: Optional[dict] = None,
        performed_by: Optional[int] = None
    ) -> None:
        """Add an audit entry. Entries are never updated or removed."""
        try:
            await database.execute(
                """
                INSERT INTO certificate_generation_log (generated_certificate_id, action, performed_by, details)
                VALUES (:generated_certificate_id, :action, :performed_by, :details)
                """,
                {
                    "generated_certificate_id": generated_id,
                    "action": action.value,
                    "performed_by": performed_by,
                    "details": _dumps(details),
                }
            )
        except Exception as e:
            raise PersistenceError(f"Failed to write generation log for certificate {generated_id}: {e}") from e

    @staticmethod
    async def get_log(generated_id: int) -> List[GenerationLogEntry]:
        rows = await database.fetch_all(
            """
            SELECT id, generated_certificate_id, action, performed_by, details, created_at
            FROM certificate_generation_log
            WHERE generated_certificate_id = :generated_certificate_id
            ORDER BY id ASC
            """,
            {"generated_certificate_id": generated_id}
        )
        return [GenerationLogEntry(**row_to_dict(r)) for r in rows]


generation_store = GenerationStore()
