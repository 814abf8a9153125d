"""
Shared test configuration and fixtures for quickconvert tests.

LibreOffice and Tesseract are replaced by a small fake ``soffice`` script and
an in-memory OCR engine, so the suite runs on hosts without either installed.
The fake converter reacts to markers in the input bytes:

- ``FAIL``: exits with status 1 and a message on stderr
- ``SLOW``: sleeps for five seconds before converting
- ``NOOUTPUT``: exits cleanly without writing anything
- ``NOPAGES``: renders no PNG when asked for ``png``
"""

import os
import sys
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Sequence

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from reportlab.pdfgen import canvas

from app import create_app
from quickconvert.config import Settings
from quickconvert.models import UploadedFile
from quickconvert.utils.external_converter import ConverterLocator, ExternalConverter
from quickconvert.utils.ocr import OcrError
from quickconvert.utils.temp_file_manager import TempFileManager


FAKE_SOFFICE = '''#!{python}
import sys
import time
from pathlib import Path

args = sys.argv[1:]
fmt = args[args.index("--convert-to") + 1]
outdir = Path(args[args.index("--outdir") + 1])
source = Path(args[-1])
data = source.read_bytes()

if b"FAIL" in data:
    sys.stderr.write("source file could not be loaded\\n")
    sys.exit(1)
if b"SLOW" in data:
    time.sleep(5)
if b"NOOUTPUT" in data:
    sys.exit(0)

ext = fmt.split(":")[0]
target = outdir / (source.stem + "." + ext)
if ext == "png":
    if b"NOPAGES" in data:
        sys.exit(0)
    target.write_bytes(Path({png!r}).read_bytes())
else:
    target.write_bytes(b"converted to " + ext.encode() + b"\\n" + data)
print("convert " + str(source) + " -> " + str(target))
'''


# ===== TEST DOUBLES =====

class FakeLocator(ConverterLocator):
    """Always points at the given executable."""

    def __init__(self, executable: str):
        self.executable = executable

    def locate(self) -> str:
        return self.executable


class FakeOcrEngine:
    """Records recognized paths; images starting with BROKEN fail."""

    def __init__(self):
        self.calls: List[str] = []

    def recognize(self, image_path: str) -> str:
        self.calls.append(image_path)
        with open(image_path, "rb") as fh:
            if fh.read(6) == b"BROKEN":
                raise OcrError("image is unreadable")
        return f"Recognized text from {Path(image_path).suffix}"

    def check_available(self) -> bool:
        return True


# ===== SAMPLE CONTENT =====

def _image_bytes(size, fmt: str) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


def _pdf_bytes(widths: Sequence[int], height: int = 300) -> bytes:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer)
    for number, width in enumerate(widths, start=1):
        pdf.setPageSize((width, height))
        pdf.drawString(20, height / 2, f"Page {number}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture(scope="session")
def jpeg_bytes() -> bytes:
    """An 800x600 JPEG."""
    return _image_bytes((800, 600), "JPEG")


@pytest.fixture(scope="session")
def png_bytes() -> bytes:
    return _image_bytes((320, 240), "PNG")


@pytest.fixture(scope="session")
def gif_bytes() -> bytes:
    return _image_bytes((64, 64), "GIF")


@pytest.fixture(scope="session")
def make_pdf() -> Callable[..., bytes]:
    """Factory building a PDF with one page per given width."""
    return _pdf_bytes


@pytest.fixture(scope="session")
def pdf_bytes() -> bytes:
    """A three page PDF."""
    return _pdf_bytes([200, 210, 220])


# ===== CONVERTER FIXTURES =====

@pytest.fixture(scope="session")
def fake_soffice(tmp_path_factory) -> str:
    """Path of an executable standing in for LibreOffice."""
    workdir = tmp_path_factory.mktemp("fake_soffice")
    rendered = workdir / "rendered.png"
    rendered.write_bytes(_image_bytes((100, 140), "PNG"))

    script = workdir / "soffice"
    script.write_text(FAKE_SOFFICE.format(python=sys.executable, png=str(rendered)))
    os.chmod(script, 0o755)
    return str(script)


@pytest.fixture
def converter(fake_soffice) -> ExternalConverter:
    return ExternalConverter(locator=FakeLocator(fake_soffice))


@pytest.fixture
def ocr_engine() -> FakeOcrEngine:
    return FakeOcrEngine()


@pytest.fixture
def store(tmp_path) -> TempFileManager:
    return TempFileManager(str(tmp_path / "store"))


@pytest.fixture
def stage_upload(store):
    """Write bytes into the store the way an upload would land there."""
    def stage(filename: str, content_type: str, data: bytes) -> UploadedFile:
        path = store.allocate("upload", Path(filename).suffix.lower())
        with open(path, "wb") as fh:
            fh.write(data)
        return UploadedFile(filename=filename, content_type=content_type, size=len(data), path=path)

    return stage


# ===== APPLICATION FIXTURES =====

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to the test's temp directory, with a generous rate limit."""
    return Settings(temp_dir=str(tmp_path / "app_store"), rate_limit_max=1000)


@pytest.fixture
def app_factory(tmp_path, converter, ocr_engine):
    """Build an application with overridden settings."""
    def factory(**overrides):
        values = {"temp_dir": str(tmp_path / "app_store"), "rate_limit_max": 1000}
        values.update(overrides)
        return create_app(Settings(**values), converter=converter, ocr_engine=ocr_engine)
    return factory


@pytest.fixture
def app(settings, converter, ocr_engine):
    return create_app(settings, converter=converter, ocr_engine=ocr_engine)


@pytest.fixture
def client(app):
    """FastAPI test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client
