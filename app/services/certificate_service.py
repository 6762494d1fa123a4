"""
Certificate Service
Turns a paid completion claim into a numbered certificate + transcript pair.

Run order: claim -> units -> templates -> registration number -> render both
documents -> convert both to PDF (best effort) -> upsert the row -> log.
Template, render, allocation and persistence problems abort the run and mark
the claim failed; a failed PDF conversion only leaves that PDF empty.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from app.config import settings
from app.errors import CertificatePipelineError, CertificateStateError, PersistenceError
from app.logging_config import get_logger
from app.schemas.certificate import (
    CompletionClaim,
    CourseUnit,
    GeneratedCertificateRecord,
    GenerationOverrides,
    GenerationResult,
    GenerationStatus,
    LogAction,
)
from app.schemas.template import TemplateKind
from app.services.claim_service import ClaimService, claim_service
from app.services.curriculum_service import CurriculumService, curriculum_service
from app.services.field_maps import build_certificate_fields, build_transcript_fields
from app.services.generation_store import GenerationStore, generation_store
from app.services.pdf_converter import PdfConverter, pdf_converter
from app.services.registration_service import RegistrationService, registration_service
from app.services.storage_service import StorageService, storage_service
from app.services.template_renderer import TemplateRenderer, template_renderer
from app.services.template_service import TemplateService, template_service

logger = get_logger(__name__)


class PipelineStage(str, Enum):
    START = "start"
    CLAIM_LOADED = "claim_loaded"
    UNITS_RESOLVED = "units_resolved"
    TEMPLATES_LOADED = "templates_loaded"
    NUMBER_ALLOCATED = "number_allocated"
    RENDERED = "rendered"
    CONVERTED = "converted"
    PERSISTED = "persisted"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineRun:
    claim_id: int
    stage: PipelineStage = PipelineStage.START
    warnings: List[str] = field(default_factory=list)

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.debug("Claim %s: %s", self.claim_id, stage.value)


@dataclass
class RenderedPair:
    certificate_docx_path: str
    transcript_docx_path: str
    certificate_pdf_url: Optional[str]
    transcript_pdf_url: Optional[str]


@dataclass
class BatchOutcome:
    claim_id: int
    result: Optional[GenerationResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result is not None


def _file_token(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", value)


def _timestamp_token() -> str:
    return datetime.utcnow().strftime("%Y%m%d%H%M%S%f")


class CertificateService:
    """Generates and regenerates certificate/transcript pairs"""

    def __init__(
        self,
        claims: Optional[ClaimService] = None,
        curriculum: Optional[CurriculumService] = None,
        templates: Optional[TemplateService] = None,
        renderer: Optional[TemplateRenderer] = None,
        converter: Optional[PdfConverter] = None,
        registration: Optional[RegistrationService] = None,
        storage: Optional[StorageService] = None,
        store: Optional[GenerationStore] = None
    ):
        self.claims = claims or claim_service
        self.curriculum = curriculum or curriculum_service
        self.templates = templates or template_service
        self.renderer = renderer or template_renderer
        self.converter = converter or pdf_converter
        self.registration = registration or registration_service
        self.storage = storage or storage_service
        self.store = store or generation_store

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def generate(
        self,
        claim_id: int,
        registration_number: Optional[str] = None,
        overrides: Optional[GenerationOverrides] = None,
        performed_by: Optional[int] = None
    ) -> GenerationResult:
        """
        Generate (or regenerate) the documents for a claim

        Safe to repeat: the claim's row is updated in place. A claim that
        already has a registration number keeps it unless a new one is given.
        """
        logger.info("Starting certificate generation for claim %s", claim_id)
        run = PipelineRun(claim_id)
        explicit = self.registration.accept(registration_number) if registration_number is not None else None

        claim = await self.claims.get_claim(claim_id)
        run.advance(PipelineStage.CLAIM_LOADED)

        try:
            units = await self._resolve_units(claim, overrides)
            run.advance(PipelineStage.UNITS_RESOLVED)

            template_paths = await self._load_templates(claim)
            run.advance(PipelineStage.TEMPLATES_LOADED)

            existing = await self._existing_row(claim.id)
            number, stamp = self._choose_number(existing, explicit)
            if number is None:
                number = await self.registration.allocate()
            run.advance(PipelineStage.NUMBER_ALLOCATED)

            if stamp and performed_by is None:
                performed_by = settings.SYSTEM_ACTOR_ID

            generated_id, pair = await self._produce(
                run, claim, units, template_paths, number, overrides,
                stamp_registration=stamp, performed_by=performed_by
            )

            await self.store.append_log(
                generated_id,
                LogAction.GENERATED,
                {"claim_id": claim.id, "registration_number": number, "timestamp": datetime.utcnow()},
                performed_by=performed_by
            )
            await self._log_pdfs(generated_id, number, pair, performed_by)
        except Exception as e:
            await self._record_failure(run, claim, e)
            raise

        run.advance(PipelineStage.DONE)
        logger.info("Certificate generation completed for claim %s with registration number %s", claim.id, number)
        return self._result(generated_id, claim.id, number, pair, run.warnings)

    async def add_registration_number(
        self,
        generated_id: int,
        registration_number: str,
        performed_by: Optional[int] = None
    ) -> GenerationResult:
        """
        Put an operator-chosen registration number on an existing certificate
        and rebuild both documents with it
        """
        logger.info("Adding registration number %s to certificate %s", registration_number, generated_id)
        number = self.registration.accept(registration_number)
        record = await self.store.get(generated_id)
        run = PipelineRun(record.claim_id)

        claim = await self.claims.get_claim(record.claim_id)
        run.advance(PipelineStage.CLAIM_LOADED)

        try:
            overrides = self._stored_overrides(record)
            units = await self._resolve_units(claim, overrides)
            run.advance(PipelineStage.UNITS_RESOLVED)

            template_paths = await self._load_templates(claim)
            run.advance(PipelineStage.TEMPLATES_LOADED)

            run.advance(PipelineStage.NUMBER_ALLOCATED)

            generated_id, pair = await self._produce(
                run, claim, units, template_paths, number, overrides,
                stamp_registration=True, performed_by=performed_by
            )

            await self.store.append_log(
                generated_id,
                LogAction.REGISTRATION_ADDED,
                {
                    "registration_number": number,
                    "previous_registration_number": record.registration_number,
                },
                performed_by=performed_by
            )
            await self._log_pdfs(generated_id, number, pair, performed_by)
        except Exception as e:
            await self._record_failure(run, claim, e)
            raise

        run.advance(PipelineStage.DONE)
        logger.info("Registration number %s added to certificate %s", number, generated_id)
        return self._result(generated_id, claim.id, number, pair, run.warnings)

    async def retry_conversion(self, generated_id: int) -> GeneratedCertificateRecord:
        """Convert stored documents whose PDF is still missing"""
        record = await self.store.get(generated_id)
        if not record.certificate_docx_path or not record.transcript_docx_path:
            raise CertificateStateError(
                f"Certificate {generated_id} has no rendered documents; generate it first"
            )

        token = _file_token(record.registration_number or _timestamp_token())
        run = PipelineRun(record.claim_id)
        cert_url = transcript_url = None

        if not record.certificate_pdf_url:
            cert_url = await self._convert_and_store(
                run, self.storage.read(record.certificate_docx_path),
                f"cert_{record.claim_id}_{token}.pdf", TemplateKind.CERTIFICATE
            )
        if not record.transcript_pdf_url:
            transcript_url = await self._convert_and_store(
                run, self.storage.read(record.transcript_docx_path),
                f"trans_{record.claim_id}_{token}.pdf", TemplateKind.TRANSCRIPT
            )

        if cert_url or transcript_url:
            await self.store.update_pdf_urls(generated_id, cert_url, transcript_url)
            await self.store.append_log(
                generated_id,
                LogAction.PDF_CREATED,
                {
                    "registration_number": record.registration_number,
                    "certificate": bool(cert_url),
                    "transcript": bool(transcript_url),
                    "retry": True,
                }
            )

        return await self.store.get(generated_id)

    async def generate_many(
        self,
        claim_ids: Sequence[int],
        concurrency: Optional[int] = None
    ) -> List[BatchOutcome]:
        """Generate several claims at once, each in its own pipeline run"""
        semaphore = asyncio.Semaphore(concurrency or settings.GENERATION_CONCURRENCY)

        async def run_one(claim_id: int) -> BatchOutcome:
            async with semaphore:
                try:
                    return BatchOutcome(claim_id, result=await self.generate(claim_id))
                except Exception as e:
                    logger.error("Certificate generation failed for claim %s: %s", claim_id, e)
                    return BatchOutcome(claim_id, error=str(e))

        return list(await asyncio.gather(*(run_one(claim_id) for claim_id in claim_ids)))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_units(
        self,
        claim: CompletionClaim,
        overrides: Optional[GenerationOverrides]
    ) -> List[CourseUnit]:
        if overrides and overrides.units:
            logger.info("Using %d custom units from edited data", len(overrides.units))
            return self.curriculum.from_overrides(overrides.units)
        return await self.curriculum.resolve_units(claim.course_id, claim.course_type)

    async def _load_templates(self, claim: CompletionClaim) -> Tuple[Path, Path]:
        certificate = await self.templates.load(TemplateKind.CERTIFICATE, claim.course_type)
        transcript = await self.templates.load(TemplateKind.TRANSCRIPT, claim.course_type)
        return certificate, transcript

    async def _existing_row(self, claim_id: int) -> Optional[GeneratedCertificateRecord]:
        try:
            return await self.store.get_optional_by_claim(claim_id)
        except Exception as e:
            raise PersistenceError(f"Failed to read generated certificate for claim {claim_id}: {e}") from e

    def _choose_number(
        self,
        existing: Optional[GeneratedCertificateRecord],
        explicit: Optional[str]
    ) -> Tuple[Optional[str], bool]:
        """(number or None to allocate, whether to stamp registration_added_*)"""
        if explicit:
            return explicit, True
        if existing and existing.registration_number:
            logger.info("Reusing registration number %s", existing.registration_number)
            return existing.registration_number, False
        return None, True

    @staticmethod
    def _stored_overrides(record: GeneratedCertificateRecord) -> Optional[GenerationOverrides]:
        stored = (record.field_snapshot or {}).get("overrides")
        return GenerationOverrides(**stored) if stored else None

    async def _produce(
        self,
        run: PipelineRun,
        claim: CompletionClaim,
        units: List[CourseUnit],
        template_paths: Tuple[Path, Path],
        number: str,
        overrides: Optional[GenerationOverrides],
        stamp_registration: bool,
        performed_by: Optional[int]
    ) -> Tuple[int, RenderedPair]:
        """Render, convert and upsert; returns the row id and stored locations"""
        cert_template, transcript_template = template_paths

        cert_fields = build_certificate_fields(claim, number, overrides, issued_on=date.today())
        transcript_fields = build_transcript_fields(claim, number, units, overrides)

        cert_docx = self.renderer.render(cert_template, cert_fields)
        transcript_docx = self.renderer.render(transcript_template, transcript_fields)
        run.advance(PipelineStage.RENDERED)

        stamp = _timestamp_token()
        cert_docx_path = self.storage.save_docx(f"cert_{claim.id}_{stamp}.docx", cert_docx)
        transcript_docx_path = self.storage.save_docx(f"trans_{claim.id}_{stamp}.docx", transcript_docx)

        token = _file_token(number)
        cert_pdf_url = await self._convert_and_store(
            run, cert_docx, f"cert_{claim.id}_{token}.pdf", TemplateKind.CERTIFICATE
        )
        transcript_pdf_url = await self._convert_and_store(
            run, transcript_docx, f"trans_{claim.id}_{token}.pdf", TemplateKind.TRANSCRIPT
        )
        run.advance(PipelineStage.CONVERTED)

        snapshot = {
            "certificate": cert_fields,
            "transcript": transcript_fields,
            "registration_number": number,
            "units": [unit.model_dump() for unit in units],
            "overrides": overrides.model_dump() if overrides else None,
        }

        generated_id = await self.store.upsert_generated(
            claim,
            certificate_docx_path=cert_docx_path,
            transcript_docx_path=transcript_docx_path,
            certificate_pdf_url=cert_pdf_url,
            transcript_pdf_url=transcript_pdf_url,
            registration_number=number,
            field_snapshot=snapshot,
            registration_added_by=performed_by,
            stamp_registration=stamp_registration,
        )
        run.advance(PipelineStage.PERSISTED)

        return generated_id, RenderedPair(cert_docx_path, transcript_docx_path, cert_pdf_url, transcript_pdf_url)

    async def _convert_and_store(
        self,
        run: PipelineRun,
        docx_bytes: bytes,
        filename: str,
        kind: TemplateKind
    ) -> Optional[str]:
        """PDF location, or None with a warning when conversion or upload fails"""
        result = await self.converter.try_convert(docx_bytes)
        if not result.ok:
            message = f"{kind.value} PDF conversion failed: {result.error}"
            logger.warning("Claim %s: %s; continuing with DOCX only", run.claim_id, message)
            run.warnings.append(message)
            return None

        try:
            return await self.storage.save_pdf(filename, result.pdf_bytes)
        except PersistenceError as e:
            message = f"{kind.value} PDF could not be stored: {e.message}"
            logger.warning("Claim %s: %s", run.claim_id, message)
            run.warnings.append(message)
            return None

    async def _log_pdfs(
        self,
        generated_id: int,
        number: str,
        pair: RenderedPair,
        performed_by: Optional[int]
    ) -> None:
        if not (pair.certificate_pdf_url or pair.transcript_pdf_url):
            return
        await self.store.append_log(
            generated_id,
            LogAction.PDF_CREATED,
            {
                "registration_number": number,
                "certificate": bool(pair.certificate_pdf_url),
                "transcript": bool(pair.transcript_pdf_url),
                "status": GenerationStatus.READY.value,
            },
            performed_by=performed_by
        )

    async def _record_failure(self, run: PipelineRun, claim: CompletionClaim, error: Exception) -> None:
        failed_at = run.stage
        run.advance(PipelineStage.FAILED)
        logger.error(
            "Certificate generation failed for claim %s after stage '%s': %s",
            claim.id, failed_at.value, error, exc_info=not isinstance(error, CertificatePipelineError)
        )
        try:
            generated_id = await self.store.mark_failed(claim, str(error))
            await self.store.append_log(
                generated_id,
                LogAction.GENERATION_FAILED,
                {"stage": failed_at.value, "error": str(error)}
            )
        except PersistenceError:
            logger.exception("Could not record failure for claim %s", claim.id)

    @staticmethod
    def _result(
        generated_id: int,
        claim_id: int,
        number: str,
        pair: RenderedPair,
        warnings: List[str]
    ) -> GenerationResult:
        return GenerationResult(
            generated_certificate_id=generated_id,
            claim_id=claim_id,
            registration_number=number,
            status=GenerationStatus.READY,
            certificate_docx_path=pair.certificate_docx_path,
            transcript_docx_path=pair.transcript_docx_path,
            certificate_pdf_url=pair.certificate_pdf_url,
            transcript_pdf_url=pair.transcript_pdf_url,
            warnings=list(warnings),
        )


# Create singleton instance
certificate_service = CertificateService()
