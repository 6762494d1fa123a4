import sys
import time
from pathlib import Path

import pytest

from app.errors import ConversionError
from app.services import pdf_converter as pdf_converter_module
from app.services.pdf_converter import PdfConverter, find_libreoffice

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="fake soffice is a shell script")

# Writes $outdir/<input stem>.pdf like soffice does and records the input path
FAKE_SOFFICE = """#!/bin/sh
out=""
input=""
while [ $# -gt 0 ]; do
  case "$1" in
    --outdir) out="$2"; shift ;;
  esac
  input="$1"
  shift
done
if [ -n "$FAKE_SOFFICE_LOG" ]; then
  dirname "$input" > "$FAKE_SOFFICE_LOG"
fi
name=$(basename "$input" .docx)
printf '%%PDF-1.4 fake' > "$out/$name.pdf"
"""


def write_script(path: Path, body: str) -> str:
    path.write_text(body)
    path.chmod(0o755)
    return str(path)


async def test_convert_returns_pdf_bytes(tmp_path, monkeypatch):
    log = tmp_path / "soffice.log"
    monkeypatch.setenv("FAKE_SOFFICE_LOG", str(log))
    converter = PdfConverter(binary=write_script(tmp_path / "soffice", FAKE_SOFFICE), timeout=10)

    pdf = await converter.convert(b"docx bytes")

    assert pdf == b"%PDF-1.4 fake"
    workdir = Path(log.read_text().strip())
    assert workdir.name.startswith("certconv_")
    assert not workdir.exists()


async def test_non_zero_exit_raises(tmp_path):
    script = write_script(tmp_path / "soffice", "#!/bin/sh\necho 'source file could not be loaded' >&2\nexit 3\n")
    converter = PdfConverter(binary=script, timeout=10)

    with pytest.raises(ConversionError) as exc_info:
        await converter.convert(b"docx bytes")

    assert "code 3" in exc_info.value.message
    assert "could not be loaded" in exc_info.value.message
    assert exc_info.value.fatal is False


async def test_missing_output_raises(tmp_path):
    converter = PdfConverter(binary=write_script(tmp_path / "soffice", "#!/bin/sh\nexit 0\n"), timeout=10)
    with pytest.raises(ConversionError, match="not generated"):
        await converter.convert(b"docx bytes")


async def test_hung_converter_is_killed(tmp_path):
    converter = PdfConverter(binary=write_script(tmp_path / "soffice", "#!/bin/sh\nexec sleep 5\n"), timeout=0.5)
    with pytest.raises(ConversionError, match="timed out"):
        await converter.convert(b"docx bytes")


# Not exec: the shell stays the parent of a long-running child, like the
# soffice -> oosplash -> soffice.bin chain
HANGING_WRAPPER = """#!/bin/sh
for arg in "$@"; do input="$arg"; done
if [ -n "$FAKE_SOFFICE_LOG" ]; then
  dirname "$input" > "$FAKE_SOFFICE_LOG"
fi
sleep 8
echo done
"""


async def test_hung_wrapper_child_is_killed_within_timeout(tmp_path, monkeypatch):
    log = tmp_path / "soffice.log"
    monkeypatch.setenv("FAKE_SOFFICE_LOG", str(log))
    converter = PdfConverter(binary=write_script(tmp_path / "soffice", HANGING_WRAPPER), timeout=0.5)

    started = time.monotonic()
    with pytest.raises(ConversionError, match="timed out"):
        await converter.convert(b"docx bytes")
    elapsed = time.monotonic() - started

    assert elapsed < 3
    workdir = Path(log.read_text().strip())
    assert workdir.name.startswith("certconv_")
    assert not workdir.exists()


async def test_unrunnable_binary_raises(tmp_path):
    converter = PdfConverter(binary=str(tmp_path / "no-such-soffice"), timeout=10)
    with pytest.raises(ConversionError, match="Failed to execute"):
        await converter.convert(b"docx bytes")


async def test_try_convert_reports_instead_of_raising(tmp_path):
    converter = PdfConverter(binary=write_script(tmp_path / "soffice", "#!/bin/sh\nexit 1\n"), timeout=10)
    result = await converter.try_convert(b"docx bytes")
    assert not result.ok
    assert result.pdf_bytes is None
    assert "code 1" in result.error


async def test_no_libreoffice_installed(monkeypatch):
    monkeypatch.setattr(pdf_converter_module, "PLATFORM_PATHS", {})
    monkeypatch.setattr(pdf_converter_module.shutil, "which", lambda name: None)

    assert find_libreoffice() is None
    with pytest.raises(ConversionError, match="not available"):
        await PdfConverter(timeout=10).convert(b"docx bytes")


def test_configured_path_takes_priority(monkeypatch):
    monkeypatch.setattr(pdf_converter_module.shutil, "which", lambda name: "/usr/local/bin/soffice")
    assert find_libreoffice("/opt/libreoffice/program/soffice") == "/opt/libreoffice/program/soffice"


def test_command_isolates_profile(tmp_path):
    converter = PdfConverter(binary="soffice", timeout=10)
    command = converter.build_command("soffice", tmp_path, tmp_path / "document.docx", tmp_path / "out")

    assert command[0] == "soffice"
    assert "--headless" in command
    assert f"-env:UserInstallation={(tmp_path / 'profile').as_uri()}" in command
    assert command[-1] == str(tmp_path / "document.docx")
    assert command[command.index("--outdir") + 1] == str(tmp_path / "out")
