"""
Unified MIME type detection utility.

Uploads normally arrive with a declared content type. When a client sends
nothing useful (empty or application/octet-stream) the type is detected from
the file content with python-magic, then from the extension.
"""

import mimetypes
from pathlib import Path
from typing import Optional

from .logging_config import get_logger

# Try to import python-magic for content-based detection
try:
    import magic
    MAGIC_AVAILABLE = True
except ImportError:
    magic = None
    MAGIC_AVAILABLE = False

logger = get_logger()

MIME_TYPE_MAPPINGS = {
    # Document formats
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",

    # Image formats
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",

    # Outputs
    "zip": "application/zip",
    "txt": "text/plain",
}

GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# Bytes read from the head of a file for content sniffing
SNIFF_BYTES = 2048


class MimeTypeDetector:
    """
    MIME type detector with multiple detection methods.

    Detection priority order:
    1. Content-based detection (python-magic)
    2. Extension-based detection (mimetypes module + custom mappings)
    3. application/octet-stream
    """

    def __init__(self):
        mimetypes.init()
        for ext, mime_type in MIME_TYPE_MAPPINGS.items():
            mimetypes.add_type(mime_type, f".{ext}")

    def detect_from_content(self, content: bytes) -> Optional[str]:
        """Detect MIME type from raw bytes using python-magic."""
        if not MAGIC_AVAILABLE or not content:
            return None

        try:
            detected_mime = magic.from_buffer(content, mime=True)
        except Exception as e:
            logger.debug(f"Content-based detection failed: {e}")
            return None

        if detected_mime and detected_mime not in GENERIC_CONTENT_TYPES:
            logger.debug(f"Content-based detection: {detected_mime}")
            return detected_mime
        return None

    def detect_from_extension(self, filename: Optional[str]) -> Optional[str]:
        """Detect MIME type from a filename's extension."""
        if not filename:
            return None

        extension = Path(filename).suffix[1:].lower()
        if not extension:
            return None

        mime_type = MIME_TYPE_MAPPINGS.get(extension)
        if not mime_type:
            mime_type, _ = mimetypes.guess_type(f"file.{extension}")

        if mime_type:
            logger.debug(f"Extension-based detection: {extension} -> {mime_type}")
        return mime_type

    def get_mime_type(self, content: Optional[bytes] = None, filename: Optional[str] = None) -> str:
        detected = None
        if content:
            detected = self.detect_from_content(content)
        if not detected:
            detected = self.detect_from_extension(filename)
        return detected or "application/octet-stream"

    def resolve_content_type(
        self,
        declared: Optional[str],
        filename: Optional[str] = None,
        file_path: Optional[str] = None
    ) -> str:
        """
        Return the declared content type unless it is missing or generic.

        Args:
            declared: Content type sent by the client
            filename: Original filename, used for extension lookup
            file_path: Path of the stored upload, sniffed when needed

        Returns:
            Lowercased content type without parameters
        """
        clean = (declared or "").split(";")[0].strip().lower()
        if clean not in GENERIC_CONTENT_TYPES:
            return clean

        content = None
        if file_path:
            try:
                with open(file_path, "rb") as f:
                    content = f.read(SNIFF_BYTES)
            except OSError as e:
                logger.debug(f"Could not read {file_path} for sniffing: {e}")

        return self.get_mime_type(content, filename)


_detector_instance = None


def get_mime_detector() -> MimeTypeDetector:
    """Get the shared MIME type detector instance."""
    global _detector_instance
    if _detector_instance is None:
        _detector_instance = MimeTypeDetector()
    return _detector_instance
