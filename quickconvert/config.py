"""
Conversion configuration for the quickconvert service.

This module defines the supported conversion kinds, the upload allow-list for
each kind, artifact naming, and the runtime settings read from the environment.
"""

import os
import tempfile
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ConversionKind(str, Enum):
    """Conversion kinds accepted by POST /convert (the form's ``type`` field)."""
    PDF_TO_WORD = "pdf2word"
    WORD_TO_PDF = "word2pdf"
    IMAGE_TO_PDF = "img2pdf"
    PDF_TO_IMAGE = "pdf2img"
    EXCEL_TO_PDF = "excel2pdf"
    PDF_TO_EXCEL = "pdf2excel"
    MERGE_PDF = "mergepdf"
    SPLIT_PDF = "splitpdf"
    COMPRESS_PDF = "compresspdf"
    OCR = "ocr"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ConversionKind"]:
        """Return the kind for a form value, or None if it is not one we know."""
        if not value:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


PDF_TYPES = [".pdf", "application/pdf"]

# Allow-list per kind. Entries starting with "." match the lowercased file
# extension, anything else is a substring of the content type.
VALIDATION_RULES: Dict[ConversionKind, List[str]] = {
    ConversionKind.PDF_TO_WORD: PDF_TYPES,
    ConversionKind.WORD_TO_PDF: [
        ".doc",
        ".docx",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ],
    ConversionKind.IMAGE_TO_PDF: [".jpg", ".jpeg", ".png", ".gif", "image/"],
    ConversionKind.PDF_TO_IMAGE: PDF_TYPES,
    ConversionKind.EXCEL_TO_PDF: [
        ".xls",
        ".xlsx",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ],
    ConversionKind.PDF_TO_EXCEL: PDF_TYPES,
    ConversionKind.MERGE_PDF: PDF_TYPES,
    ConversionKind.SPLIT_PDF: PDF_TYPES,
    ConversionKind.COMPRESS_PDF: PDF_TYPES,
    ConversionKind.OCR: [".jpg", ".jpeg", ".png", ".pdf", "image/", "application/pdf"],
}

# (label shown to the user, artifact name prefix)
KIND_DETAILS: Dict[ConversionKind, Tuple[str, str]] = {
    ConversionKind.PDF_TO_WORD: ("PDF to Word", "converted"),
    ConversionKind.WORD_TO_PDF: ("Word to PDF", "converted"),
    ConversionKind.IMAGE_TO_PDF: ("Images to PDF", "converted_images"),
    ConversionKind.PDF_TO_IMAGE: ("PDF to Images", "pdf_images"),
    ConversionKind.EXCEL_TO_PDF: ("Excel to PDF", "converted_excel"),
    ConversionKind.PDF_TO_EXCEL: ("PDF to Excel", "converted"),
    ConversionKind.MERGE_PDF: ("PDF Merge", "merged_pdfs"),
    ConversionKind.SPLIT_PDF: ("PDF Split", "split_pages"),
    ConversionKind.COMPRESS_PDF: ("PDF Compression", "compressed"),
    ConversionKind.OCR: ("OCR (Image/PDF to Text)", "ocr"),
}


def get_kind_label(kind: ConversionKind) -> str:
    return KIND_DETAILS[kind][0]


def get_output_prefix(kind: ConversionKind) -> str:
    return KIND_DETAILS[kind][1]


def get_accept_attribute(kind: ConversionKind) -> str:
    """Extensions for the upload form's ``accept`` attribute."""
    return ",".join(entry for entry in VALIDATION_RULES[kind] if entry.startswith("."))


# Well-known LibreOffice install locations, tried in order before PATH lookup.
KNOWN_CONVERTER_PATHS = [
    "/usr/bin/soffice",
    "/usr/local/bin/soffice",
    "/usr/lib/libreoffice/program/soffice",
    "/opt/libreoffice/program/soffice",
    "/Applications/LibreOffice.app/Contents/MacOS/soffice",
    r"C:\Program Files\LibreOffice\program\soffice.exe",
    r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
]

CONVERTER_EXECUTABLE_NAMES = ["soffice", "libreoffice"]

KNOWN_TESSERACT_PATHS = ["/usr/bin/tesseract", "/usr/local/bin/tesseract", "/opt/homebrew/bin/tesseract"]

DEFAULT_TEMP_DIR = os.path.join(tempfile.gettempdir(), "quickconvert")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


class Settings:
    """Runtime settings for one application instance."""

    def __init__(
        self,
        port: int = 3001,
        temp_dir: str = DEFAULT_TEMP_DIR,
        max_file_size: int = 10 * 1024 * 1024,
        max_files: int = 10,
        rate_limit_max: int = 15,
        rate_limit_window: float = 60 * 60,
        download_cleanup_delay: float = 5.0,
        artifact_ttl: float = 60 * 60,
        sweep_interval: float = 10 * 60,
        converter_timeout: Optional[float] = None,
        ocr_language: str = "eng",
    ):
        self.port = port
        self.temp_dir = temp_dir
        self.max_file_size = max_file_size
        self.max_files = max_files
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window = rate_limit_window
        self.download_cleanup_delay = download_cleanup_delay
        self.artifact_ttl = artifact_ttl
        self.sweep_interval = sweep_interval
        self.converter_timeout = converter_timeout
        self.ocr_language = ocr_language

    @property
    def max_file_size_mb(self) -> int:
        return self.max_file_size // (1024 * 1024)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            port=_env_int("PORT", 3001),
            temp_dir=os.getenv("QUICKCONVERT_TEMP_DIR") or DEFAULT_TEMP_DIR,
            max_file_size=_env_int("MAX_FILE_SIZE_MB", 10) * 1024 * 1024,
            max_files=_env_int("MAX_FILES", 10),
            rate_limit_max=_env_int("RATE_LIMIT_MAX", 15),
            rate_limit_window=_env_float("RATE_LIMIT_WINDOW_SECONDS", 60 * 60),
            download_cleanup_delay=_env_float("DOWNLOAD_CLEANUP_DELAY_SECONDS", 5.0),
            artifact_ttl=_env_float("ARTIFACT_TTL_SECONDS", 60 * 60),
            sweep_interval=_env_float("SWEEP_INTERVAL_SECONDS", 10 * 60),
            converter_timeout=_env_float("CONVERTER_TIMEOUT", None),
            ocr_language=os.getenv("OCR_LANGUAGE", "eng"),
        )

    def __repr__(self):
        return f"Settings(port={self.port}, temp_dir={self.temp_dir!r})"
