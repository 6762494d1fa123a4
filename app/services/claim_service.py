"""
Claim Service
Loads completion claims together with their course and student account
"""

from app.database import database, row_to_dict
from app.errors import ClaimNotFoundError, PersistenceError
from app.schemas.certificate import CompletionClaim


class ClaimService:

    @staticmethod
    async def get_claim(claim_id: int) -> CompletionClaim:
        try:
            row = await database.fetch_one(
                """
                SELECT cc.id, cc.student_id, cc.course_id, cc.course_type,
                       cc.full_name, cc.certificate_name, cc.selected_course_name,
                       cc.cpd_course_level, cc.claimed_at,
                       c.title AS course_title, u.name AS student_name
                FROM certificate_claims cc
                JOIN courses c ON cc.course_id = c.id
                JOIN users u ON cc.student_id = u.id
                WHERE cc.id = :claim_id
                """,
                {"claim_id": claim_id}
            )
        except Exception as e:
            raise PersistenceError(f"Failed to load claim {claim_id}: {e}") from e

        if not row:
            raise ClaimNotFoundError(claim_id)

        return CompletionClaim(**row_to_dict(row))


claim_service = ClaimService()
