"""
Application Configuration
Loads settings from environment variables
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from .env file"""

    # Application
    APP_ENV: str = "development"
    APP_NAME: str = "CourseCert"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./coursecert.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"

    # Templates and generated documents
    TEMPLATES_DIR: str = "templates/active"
    GENERATED_DIR: str = "generated"

    # PDF conversion (LibreOffice)
    LIBREOFFICE_PATH: Optional[str] = None
    CONVERSION_TIMEOUT_SECONDS: float = 60

    # Registration numbers
    REGISTRATION_NUMBER_PREFIX: str = "REG-"
    REGISTRATION_NUMBER_WIDTH: int = 5
    REGISTRATION_NUMBER_START: int = 1

    # Transcript defaults
    DEFAULT_UNIT_CREDITS: int = 10
    DEFAULT_COURSE_LEVEL: str = "CPD Certificate"

    # User id recorded when the system allocates a number itself
    SYSTEM_ACTOR_ID: int = 1

    # Claims processed in parallel by a batch run
    GENERATION_CONCURRENCY: int = 5

    # Storage (Supabase) - optional remote home for distribution PDFs
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    STORAGE_BUCKET: str = "coursecert"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
