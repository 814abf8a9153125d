"""
In-process PDF assembly helpers.

Page copying uses pypdf, image pages are drawn with reportlab, image sizes come
from Pillow. Everything here is blocking; callers run it in a worker thread.
"""

import zipfile
from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from .error_handling import ErrorCode, QuickConvertError
from .logging_config import get_logger

logger = get_logger()

# Only these image types can be embedded; anything else is skipped.
SUPPORTED_IMAGE_TYPES = {"image/jpeg", "image/png"}


class PdfProcessingError(QuickConvertError):
    """Raised for unreadable PDFs or images."""
    error_code = ErrorCode.INVALID_DOCUMENT


def _read_pdf(path: str, display_name: Optional[str] = None) -> PdfReader:
    name = display_name or Path(path).name
    try:
        reader = PdfReader(path)
        if reader.is_encrypted:
            reader.decrypt("")
        # Touch the page tree so structural errors surface here
        len(reader.pages)
    except Exception as exc:
        raise PdfProcessingError(f"Invalid or unreadable PDF: {name}") from exc
    return reader


def _write_pdf(writer: PdfWriter, output_path: str) -> None:
    with open(output_path, "wb") as fh:
        writer.write(fh)


def count_pages(path: str) -> int:
    return len(_read_pdf(path).pages)


def images_to_pdf(images: Iterable[Tuple[str, str]], output_path: str) -> int:
    """
    Build a PDF with one page per JPEG/PNG image.

    Each page is exactly the image's pixel size and the image is drawn at the
    origin filling it. Images of any other content type are skipped. A batch
    with no usable image gives a single blank default-size page.

    Args:
        images: (path, content_type) pairs in page order
        output_path: Where to write the PDF

    Returns:
        Number of images placed
    """
    pdf = canvas.Canvas(output_path)
    pages = 0

    for path, content_type in images:
        if content_type not in SUPPORTED_IMAGE_TYPES:
            logger.info(f"Skipping image {Path(path).name} with unsupported type {content_type}")
            continue

        try:
            with Image.open(path) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError) as exc:
            raise PdfProcessingError(f"Invalid or unreadable image: {Path(path).name}") from exc

        pdf.setPageSize((width, height))
        pdf.drawImage(path, 0, 0, width=width, height=height, mask="auto")
        pdf.showPage()
        pages += 1

    if pages == 0:
        # Nothing embeddable: still write a valid document with one blank page
        logger.info("No JPEG or PNG images in batch, writing a blank page")
        pdf.showPage()

    pdf.save()
    return pages


def merge_pdfs(paths: Sequence[str], output_path: str) -> int:
    """Concatenate the pages of every input, in input order. Returns the page count."""
    writer = PdfWriter()
    for path in paths:
        reader = _read_pdf(path)
        for page in reader.pages:
            writer.add_page(page)

    _write_pdf(writer, output_path)
    return len(writer.pages)


def split_pdf(path: str, archive_path: str) -> int:
    """
    Write each page as its own PDF into a zip archive.

    Entries are named ``page_1.pdf`` ... ``page_N.pdf``. Returns N.
    """
    reader = _read_pdf(path)

    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for number, page in enumerate(reader.pages, start=1):
            writer = PdfWriter()
            writer.add_page(page)
            buffer = BytesIO()
            writer.write(buffer)
            zf.writestr(f"page_{number}.pdf", buffer.getvalue())

    return len(reader.pages)


def compress_pdf(path: str, output_path: str) -> int:
    """
    Rebuild a PDF from its copied pages with recompressed content streams.

    The result is not guaranteed to be smaller, only to keep every page. No
    object streams are written and no blank page is added. Returns the page count.
    """
    reader = _read_pdf(path)
    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)

    for number, page in enumerate(writer.pages, start=1):
        try:
            page.compress_content_streams()
        except Exception as exc:
            # The page is kept as copied
            logger.debug(f"Could not recompress page {number} of {Path(path).name}: {exc}")

    _write_pdf(writer, output_path)
    return len(writer.pages)


def zip_files(paths: Iterable[str], archive_path: str) -> List[str]:
    """Store files in a zip archive under their base names. Returns the entry names."""
    names = []
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in paths:
            name = Path(path).name
            zf.write(path, name)
            names.append(name)
    return names
