"""
Request and result objects passed between the routes, the temp store and the
conversion dispatcher.
"""

from enum import Enum
from typing import List, Optional

from .config import ConversionKind, get_kind_label


class ConversionState(str, Enum):
    """Lifecycle of one conversion request."""
    VALIDATING = "validating"
    CONVERTING = "converting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UploadedFile:
    """
    An upload written to the temp store, owned by a single request.

    ``declared_type`` is what the client sent and is what validation checks.
    ``content_type`` is the resolved type the recipes branch on; it differs
    only when the client declared nothing useful.
    """

    def __init__(self, filename: str, content_type: str, size: int, path: str,
                 declared_type: Optional[str] = None):
        self.filename = filename
        self.content_type = content_type
        self.declared_type = content_type if declared_type is None else declared_type
        self.size = size
        self.path = path

    def __repr__(self):
        return (f"UploadedFile(filename={self.filename!r}, content_type={self.content_type!r}, "
                f"size={self.size}, path={self.path!r})")


class ConversionRequest:
    """A conversion kind plus the uploads it consumes."""

    def __init__(self, kind: ConversionKind, files: List[UploadedFile]):
        if not files:
            raise ValueError("A conversion request needs at least one file")
        self.kind = kind
        self.files = files
        self.state = ConversionState.VALIDATING

    @property
    def primary(self) -> UploadedFile:
        return self.files[0]

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]

    def __repr__(self):
        return f"ConversionRequest(kind={self.kind.value}, files={len(self.files)}, state={self.state.value})"


class Artifact:
    """A converted file waiting in the temp store to be downloaded."""

    def __init__(self, name: str, path: str):
        self.name = name
        self.path = path

    @property
    def download_url(self) -> str:
        return f"/download/{self.name}"

    def __repr__(self):
        return f"Artifact(name={self.name!r})"


class ConversionResult:
    """Either a downloadable artifact or inline text."""

    def __init__(self, kind: ConversionKind, artifact: Optional[Artifact] = None, text: Optional[str] = None):
        if (artifact is None) == (text is None):
            raise ValueError("A conversion result carries exactly one of artifact or text")
        self.kind = kind
        self.artifact = artifact
        self.text = text

    @property
    def label(self) -> str:
        return get_kind_label(self.kind)

    @property
    def is_inline(self) -> bool:
        return self.text is not None

    def __repr__(self):
        return f"ConversionResult(kind={self.kind.value}, artifact={self.artifact!r}, inline={self.is_inline})"
