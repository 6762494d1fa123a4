"""
PDF Converter
Turns rendered .docx documents into PDFs with a headless LibreOffice.

Each call gets its own temporary directory holding the input file, the
output directory and a throwaway LibreOffice profile, so parallel
conversions never share files or lock each other's profile.
"""

import asyncio
import os
import platform
import shutil
import signal
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from app.config import settings
from app.errors import ConversionError
from app.logging_config import get_logger

logger = get_logger(__name__)

PLATFORM_PATHS = {
    "Windows": [
        r"C:\Program Files\LibreOffice\program\soffice.exe",
        r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
    ],
    "Darwin": ["/Applications/LibreOffice.app/Contents/MacOS/soffice"],
    "Linux": ["/usr/bin/soffice", "/usr/bin/libreoffice", "/snap/bin/libreoffice"],
}


def find_libreoffice(configured: Optional[str] = None) -> Optional[str]:
    """
    Locate the soffice binary

    Priority: explicit path / LIBREOFFICE_PATH, then the usual install
    locations for this OS, then PATH.
    """
    configured = configured or settings.LIBREOFFICE_PATH
    if configured:
        return configured

    for candidate in PLATFORM_PATHS.get(platform.system(), []):
        if os.path.exists(candidate):
            return candidate

    return shutil.which("soffice") or shutil.which("libreoffice")


@dataclass
class ConversionResult:
    """Outcome of one conversion; exactly one of pdf_bytes / error is set"""
    pdf_bytes: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.pdf_bytes is not None


class PdfConverter:
    """Runs `soffice --headless --convert-to pdf` once per document"""

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout if timeout is not None else settings.CONVERSION_TIMEOUT_SECONDS

    def build_command(self, binary: str, workdir: Path, input_path: Path, output_dir: Path) -> List[str]:
        return [
            binary,
            "--headless",
            "--invisible",
            "--nocrashreport",
            "--nodefault",
            "--nofirststartwizard",
            "--nolockcheck",
            "--nologo",
            "--norestore",
            f"-env:UserInstallation={(workdir / 'profile').as_uri()}",
            "--convert-to",
            "pdf:writer_pdf_Export",
            "--outdir",
            str(output_dir),
            str(input_path),
        ]

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        """Kill the converter and anything it spawned (soffice -> oosplash -> soffice.bin)"""
        if os.name == "posix":
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                # group already gone
                pass
        elif process.returncode is None:
            process.kill()

    async def convert(self, docx_bytes: bytes) -> bytes:
        """Convert or raise ConversionError"""
        binary = find_libreoffice(self.binary)
        if not binary:
            raise ConversionError(
                "LibreOffice is not available. Install LibreOffice or set LIBREOFFICE_PATH"
            )

        with tempfile.TemporaryDirectory(prefix="certconv_") as tmp:
            workdir = Path(tmp)
            input_path = workdir / "document.docx"
            output_dir = workdir / "out"
            stderr_path = workdir / "stderr.log"
            output_dir.mkdir()
            input_path.write_bytes(docx_bytes)

            command = self.build_command(binary, workdir, input_path, output_dir)
            logger.debug("Executing: %s", " ".join(command))

            # No pipes: one held open by a surviving grandchild blocks wait()
            with open(stderr_path, "wb") as stderr_file:
                try:
                    process = await asyncio.create_subprocess_exec(
                        *command,
                        stdin=asyncio.subprocess.DEVNULL,
                        stdout=asyncio.subprocess.DEVNULL,
                        stderr=stderr_file,
                        start_new_session=os.name == "posix",
                    )
                except OSError as e:
                    raise ConversionError(f"Failed to execute LibreOffice ({binary}): {e}") from e

                try:
                    await asyncio.wait_for(process.wait(), timeout=self.timeout)
                except asyncio.TimeoutError:
                    self._kill(process)
                    await process.wait()
                    raise ConversionError(f"LibreOffice conversion timed out after {self.timeout}s")
                finally:
                    # soffice is often a wrapper script; take its helpers down too
                    if os.name == "posix":
                        self._kill(process)

            if process.returncode != 0:
                detail = stderr_path.read_bytes().decode("utf-8", errors="replace").strip()[-500:]
                raise ConversionError(
                    f"LibreOffice conversion failed with code {process.returncode}. STDERR: {detail}"
                )

            pdf_path = output_dir / f"{input_path.stem}.pdf"
            if not pdf_path.is_file():
                raise ConversionError(f"PDF file not generated at expected path: {pdf_path.name}")

            pdf_bytes = pdf_path.read_bytes()

        logger.info("PDF conversion successful (%d bytes)", len(pdf_bytes))
        return pdf_bytes

    async def try_convert(self, docx_bytes: bytes) -> ConversionResult:
        """Convert without raising; failures come back as ConversionResult.error"""
        try:
            return ConversionResult(pdf_bytes=await self.convert(docx_bytes))
        except ConversionError as e:
            return ConversionResult(error=e.message)


# Create singleton instance
pdf_converter = PdfConverter()
