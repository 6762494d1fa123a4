"""
FastAPI Application Entry Point
Main application setup and route registration
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import IS_SQLITE, connect_db, create_schema, disconnect_db
from app.errors import (
    AllocationError,
    CertificatePipelineError,
    CertificateStateError,
    ClaimNotFoundError,
    GeneratedCertificateNotFoundError,
    InvalidRegistrationNumberError,
    PersistenceError,
    TemplateLookupError,
    TemplateRenderError,
)
from app.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Certificate and transcript generation for completed courses",
    version="1.0.0",
    debug=settings.DEBUG
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = [
    (ClaimNotFoundError, status.HTTP_404_NOT_FOUND),
    (GeneratedCertificateNotFoundError, status.HTTP_404_NOT_FOUND),
    (CertificateStateError, status.HTTP_409_CONFLICT),
    (TemplateLookupError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TemplateRenderError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidRegistrationNumberError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AllocationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


@app.exception_handler(CertificatePipelineError)
async def pipeline_error_handler(request: Request, exc: CertificatePipelineError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.__class__.__name__}
    )


# Startup event
@app.on_event("startup")
async def startup():
    """Run on application startup"""
    if IS_SQLITE and settings.APP_ENV == "development":
        # Local SQLite has no migrations applied
        create_schema()
    await connect_db()
    logger.info("%s started in %s mode", settings.APP_NAME, settings.APP_ENV)


# Shutdown event
@app.on_event("shutdown")
async def shutdown():
    """Run on application shutdown"""
    await disconnect_db()


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0"
    }


# Import and include routers
from app.routes import certificates

app.include_router(certificates.router, prefix="/api/certificates", tags=["Certificates"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True  # Auto-reload on code changes
    )
