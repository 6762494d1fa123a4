"""
Storage Service
Writes generated documents to the `docx/` and `pdf/` output areas, with
Supabase Storage as an optional remote home for PDFs
"""

from pathlib import Path
from typing import Optional, Union

import httpx

from app.config import settings
from app.errors import PersistenceError
from app.logging_config import get_logger

logger = get_logger(__name__)

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_CONTENT_TYPE = "application/pdf"


class StorageService:
    """Durable storage for rendered and converted documents"""

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        bucket: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.root = Path(root or settings.GENERATED_DIR)
        self.supabase_url = supabase_url if supabase_url is not None else settings.SUPABASE_URL
        self.supabase_key = supabase_key if supabase_key is not None else settings.SUPABASE_KEY
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.transport = transport

    @property
    def docx_dir(self) -> Path:
        return self.root / "docx"

    @property
    def pdf_dir(self) -> Path:
        return self.root / "pdf"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def _write_local(self, directory: Path, filename: str, content: bytes) -> str:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / filename
            path.write_bytes(content)
        except OSError as e:
            raise PersistenceError(f"Could not write {filename}: {e}") from e
        return str(path)

    def save_docx(self, filename: str, content: bytes) -> str:
        """Store a rendered document, returns its path"""
        return self._write_local(self.docx_dir, filename, content)

    async def save_pdf(self, filename: str, content: bytes) -> str:
        """Store a converted document, returns its public URL or local path"""
        if self.remote_enabled:
            return await self.upload_bytes(f"pdf/{filename}", content, PDF_CONTENT_TYPE)
        return self._write_local(self.pdf_dir, filename, content)

    def read(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise PersistenceError(f"Stored file not found: {path}") from e

    async def upload_bytes(self, path: str, content: bytes, content_type: str) -> str:
        base = self.supabase_url.rstrip("/")
        url = f"{base}/storage/v1/object/{self.bucket}/{path}"

        headers = {
            "Authorization": f"Bearer {self.supabase_key}",
            "apikey": self.supabase_key,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true"
        }

        try:
            async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
                resp = await client.post(url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Storage upload failed: {e}") from e

        if resp.status_code not in (200, 201):
            raise PersistenceError(f"Storage upload failed: {resp.text}")

        return f"{base}/storage/v1/object/public/{self.bucket}/{path}"


# Create singleton instance
storage_service = StorageService()
