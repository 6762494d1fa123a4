"""
Certificate Pipeline Errors
Every failure the pipeline can surface, tagged with whether it aborts a run
"""

from typing import Optional


class CertificatePipelineError(Exception):
    """Base class for pipeline failures"""

    fatal = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClaimNotFoundError(CertificatePipelineError):
    def __init__(self, claim_id: int):
        super().__init__(f"Claim {claim_id} not found")
        self.claim_id = claim_id


class GeneratedCertificateNotFoundError(CertificatePipelineError):
    def __init__(self, generated_id: Optional[int] = None, claim_id: Optional[int] = None):
        if generated_id is not None:
            message = f"Generated certificate {generated_id} not found"
        else:
            message = f"No generated certificate for claim {claim_id}"
        super().__init__(message)
        self.generated_id = generated_id
        self.claim_id = claim_id


class TemplateLookupError(CertificatePipelineError):
    """No usable active template for a (kind, category) pair"""

    def __init__(self, kind: str, category: str, detail: Optional[str] = None):
        message = detail or f"No active {kind} template found for {category} courses"
        super().__init__(message)
        self.kind = kind
        self.category = category


class TemplateRenderError(CertificatePipelineError):
    """Template could not be parsed or filled"""

    def __init__(self, template_path: str, diagnostic: str):
        super().__init__(f"Template filling failed for {template_path}: {diagnostic}")
        self.template_path = template_path
        self.diagnostic = diagnostic


class ConversionError(CertificatePipelineError):
    """The external converter was unavailable, timed out or produced nothing"""

    fatal = False


class AllocationError(CertificatePipelineError):
    """Registration number could not be allocated"""


class PersistenceError(CertificatePipelineError):
    """Store unreachable or write rejected"""


class CertificateStateError(CertificatePipelineError):
    """Operation does not apply to the certificate in its current state"""


class InvalidRegistrationNumberError(CertificatePipelineError):
    """Operator-supplied registration number is unusable"""
