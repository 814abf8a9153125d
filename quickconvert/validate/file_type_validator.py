"""
Upload type validation against the per-kind allow-lists.

The check is deliberately shallow: it looks at the file extension and the
content type, never at the bytes. Malformed documents surface later as
conversion errors.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config import VALIDATION_RULES, ConversionKind
from ..models import UploadedFile
from ..utils.error_handling import ErrorCode, QuickConvertError
from ..utils.logging_config import get_logger

logger = get_logger()


class ValidationError(QuickConvertError):
    """Raised when an upload does not match the allow-list of its kind."""

    error_code = ErrorCode.INVALID_FILE_TYPE

    def __init__(self, message: str, kind: Optional[ConversionKind] = None, filename: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.filename = filename


def matches_allow_list(extension: str, content_type: str, allowed_types: Iterable[str]) -> bool:
    """
    Check one file against an allow-list.

    Args:
        extension: File extension including the dot (case is ignored)
        content_type: Declared content type
        allowed_types: Entries starting with "." are compared to the extension,
            any other entry must be a substring of the content type

    Returns:
        True if any entry matches
    """
    extension = (extension or "").lower()
    content_type = (content_type or "").lower()

    for allowed in allowed_types:
        if allowed.startswith("."):
            if extension == allowed:
                return True
        elif allowed in content_type:
            return True
    return False


class FileTypeValidator:
    """Validates batches of uploads for a conversion kind."""

    def __init__(self, rules: Optional[Dict[ConversionKind, List[str]]] = None):
        self._rules = dict(rules if rules is not None else VALIDATION_RULES)

    def allowed_types(self, kind: ConversionKind) -> List[str]:
        return list(self._rules.get(kind, []))

    def is_allowed(self, kind: ConversionKind, filename: str, content_type: str) -> bool:
        allowed = self._rules.get(kind)
        if allowed is None:
            return True
        return matches_allow_list(Path(filename or "").suffix, content_type, allowed)

    def validate(self, kind: ConversionKind, files: Iterable[UploadedFile]) -> None:
        """
        Validate every file in the batch.

        The caller owns cleanup: on failure the whole batch must be deleted,
        not only the offending file.

        Raises:
            ValidationError: On the first file that does not match
        """
        for uploaded in files:
            if not self.is_allowed(kind, uploaded.filename, uploaded.declared_type):
                logger.info(
                    f"Rejected {uploaded.filename!r} ({uploaded.declared_type}) for {kind.value}"
                )
                raise ValidationError(
                    f"Invalid file type for {kind.value}. Please upload the correct file format.",
                    kind=kind,
                    filename=uploaded.filename,
                )
