"""
Certificate Routes
Operator endpoints for generating certificates and correcting registration numbers
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, status

from app.errors import CertificatePipelineError
from app.logging_config import get_logger
from app.schemas.certificate import (
    AddRegistrationRequest,
    BatchGenerateRequest,
    BatchGenerateResponse,
    BatchItemResult,
    GenerateRequest,
    GeneratedCertificateListResponse,
    GeneratedCertificateRecord,
    GenerationLogEntry,
    GenerationResult,
    GenerationStatus,
    NextRegistrationNumberResponse,
    QueuedGenerationResponse,
)
from app.services.certificate_service import certificate_service
from app.services.claim_service import claim_service
from app.services.generation_store import generation_store
from app.services.registration_service import registration_service

logger = get_logger(__name__)

router = APIRouter()


async def _generate_in_background(claim_id: int, request: GenerateRequest) -> None:
    try:
        await certificate_service.generate(
            claim_id,
            registration_number=request.registration_number,
            overrides=request.overrides
        )
    except CertificatePipelineError as e:
        # Already recorded on the claim's row by the pipeline
        logger.error("Background generation failed for claim %s: %s", claim_id, e)


@router.post("/generate/{claim_id}")
async def generate_certificate(
    claim_id: int,
    background_tasks: BackgroundTasks,
    request: Optional[GenerateRequest] = None,
    immediate: bool = Query(default=False)
):
    """
    Generate certificate and transcript for a claim

    - **immediate=true**: run now and return the result
    - otherwise the claim is marked pending and generated in the background
    """
    request = request or GenerateRequest()

    if immediate:
        return await certificate_service.generate(
            claim_id,
            registration_number=request.registration_number,
            overrides=request.overrides
        )

    claim = await claim_service.get_claim(claim_id)
    await generation_store.mark_pending(claim)
    background_tasks.add_task(_generate_in_background, claim_id, request)

    return QueuedGenerationResponse(
        claim_id=claim_id,
        status=GenerationStatus.PENDING,
        message="Certificate generation scheduled"
    )


@router.post("/generate-batch", response_model=BatchGenerateResponse)
async def generate_batch(request: BatchGenerateRequest):
    """Generate several claims concurrently"""
    outcomes = await certificate_service.generate_many(request.claim_ids)
    return {
        "results": [
            BatchItemResult(
                claim_id=o.claim_id,
                success=o.success,
                registration_number=o.result.registration_number if o.result else None,
                status=o.result.status if o.result else GenerationStatus.FAILED,
                error=o.error
            )
            for o in outcomes
        ]
    }


@router.get("/generated", response_model=GeneratedCertificateListResponse)
async def list_generated_certificates(
    status_filter: Optional[GenerationStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0)
):
    """List generated certificates, newest first"""
    certificates, total = await generation_store.list_generated(status_filter, limit, offset)
    return {"total": total, "certificates": certificates}


@router.get("/generated/by-claim/{claim_id}", response_model=GeneratedCertificateRecord)
async def get_generated_by_claim(claim_id: int):
    return await generation_store.get_by_claim(claim_id)


@router.get("/generated/{generated_id}", response_model=GeneratedCertificateRecord)
async def get_generated_certificate(generated_id: int):
    return await generation_store.get(generated_id)


@router.get("/generated/{generated_id}/log", response_model=list[GenerationLogEntry])
async def get_generation_log(generated_id: int):
    """Audit trail of a generated certificate"""
    await generation_store.get(generated_id)
    return await generation_store.get_log(generated_id)


@router.post("/generated/{generated_id}/registration", response_model=GenerationResult)
async def add_registration_number(generated_id: int, request: AddRegistrationRequest):
    """
    Set an explicit registration number and rebuild both documents

    The number must not already belong to another certificate.
    """
    number = registration_service.accept(request.registration_number)
    if await generation_store.registration_number_in_use(number, exclude_id=generated_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Registration number already exists. Please use a unique number."
        )

    return await certificate_service.add_registration_number(
        generated_id,
        number,
        performed_by=request.performed_by
    )


@router.post("/generated/{generated_id}/convert", response_model=GeneratedCertificateRecord)
async def retry_pdf_conversion(generated_id: int):
    """Retry PDF conversion for documents that are still DOCX only"""
    return await certificate_service.retry_conversion(generated_id)


@router.get("/next-registration-number", response_model=NextRegistrationNumberResponse)
async def next_registration_number():
    """Allocate and return the next registration number"""
    return {"registration_number": await registration_service.allocate()}
