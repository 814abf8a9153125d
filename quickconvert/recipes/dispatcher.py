"""
Conversion dispatcher.

One recipe per conversion kind, registered in a table keyed by ConversionKind.
A recipe reads the request's uploads from the temp store and either leaves a
single artifact in the store or returns inline text. Inputs are always deleted
when the request finishes, whatever the outcome.
"""

import asyncio
import os
from contextlib import contextmanager
from typing import Awaitable, Callable, Dict, Optional

from ..config import ConversionKind, get_output_prefix
from ..models import Artifact, ConversionRequest, ConversionResult, ConversionState
from ..utils.error_handling import ErrorCode, QuickConvertError
from ..utils.external_converter import ExternalConverter
from ..utils.logging_config import get_logger, log_performance
from ..utils.ocr import TesseractOcrEngine
from ..utils import pdf_tools
from ..utils.temp_file_manager import TempFileManager
from ..validate import FileTypeValidator, get_validator

logger = get_logger()

PDF_IMPORT_FILTER = "writer_pdf_import"

PDF_TO_IMAGES_FAILED = "Failed to convert PDF to images. Please ensure the PDF is valid."
OCR_NO_TEXT = "Could not extract text from PDF. The PDF might be empty or contain only non-text content."
OCR_UNSUPPORTED = "Unsupported file type for OCR. Please upload an image (PNG, JPG) or PDF file."

Recipe = Callable[[ConversionRequest], Awaitable[ConversionResult]]


class ConversionDispatcher:
    """
    Runs one conversion request through validation and its kind's recipe.

    The dispatcher holds no per-request state; concurrent requests only share
    the temp store, whose names are unique.
    """

    def __init__(self, store: TempFileManager, converter: ExternalConverter,
                 ocr_engine: TesseractOcrEngine, validator: Optional[FileTypeValidator] = None):
        self.store = store
        self.converter = converter
        self.ocr_engine = ocr_engine
        self.validator = validator or get_validator()

        self._recipes = self._build_recipes()

        missing = [kind.value for kind in ConversionKind if kind not in self._recipes]
        if missing:
            raise RuntimeError(f"No recipe registered for: {', '.join(missing)}")

    def _build_recipes(self) -> Dict[ConversionKind, Recipe]:
        return {
            ConversionKind.PDF_TO_WORD: self._pdf_to_word,
            ConversionKind.WORD_TO_PDF: self._office_to_pdf,
            ConversionKind.EXCEL_TO_PDF: self._office_to_pdf,
            ConversionKind.PDF_TO_EXCEL: self._pdf_to_excel,
            ConversionKind.IMAGE_TO_PDF: self._images_to_pdf,
            ConversionKind.PDF_TO_IMAGE: self._pdf_to_images,
            ConversionKind.MERGE_PDF: self._merge_pdfs,
            ConversionKind.SPLIT_PDF: self._split_pdf,
            ConversionKind.COMPRESS_PDF: self._compress_pdf,
            ConversionKind.OCR: self._ocr,
        }

    def supported_kinds(self):
        return list(self._recipes)

    @log_performance(logger)
    async def dispatch(self, request: ConversionRequest) -> ConversionResult:
        """
        Validate the uploads and run the recipe for the request's kind.

        Returns:
            ConversionResult with an artifact in the store or inline text

        Raises:
            ValidationError: If any upload does not match the kind's allow-list
            QuickConvertError: For converter and library failures
        """
        with self.store.consuming(request.files):
            try:
                self.validator.validate(request.kind, request.files)
                self._transition(request, ConversionState.CONVERTING)
                result = await self._recipes[request.kind](request)
            except Exception as exc:
                self._transition(request, ConversionState.FAILED, reason=str(exc))
                raise

        self._transition(request, ConversionState.SUCCEEDED)
        return result

    def _transition(self, request: ConversionRequest, state: ConversionState, reason: Optional[str] = None):
        previous = request.state
        request.state = state
        message = f"{request.kind.value}: {previous.value} -> {state.value}"
        if reason:
            message += f" ({reason})"
        logger.info(message)

    @contextmanager
    def _artifact(self, kind: ConversionKind, extension: str):
        """Allocate the output for a recipe; it is removed again if the recipe fails."""
        path = self.store.allocate(get_output_prefix(kind), extension)
        with self.store.producing(path):
            yield Artifact(os.path.basename(path), path)

    # Office suite recipes

    async def _export(self, request: ConversionRequest, target_format: str,
                      infilter: Optional[str] = None) -> ConversionResult:
        with self._artifact(request.kind, target_format) as artifact:
            with self.store.scratch_dir("export") as workdir:
                produced = await self.converter.convert(request.primary.path, target_format, workdir,
                                                        infilter=infilter)
                os.replace(produced, artifact.path)
        return ConversionResult(request.kind, artifact=artifact)

    async def _pdf_to_word(self, request: ConversionRequest) -> ConversionResult:
        return await self._export(request, "docx", infilter=PDF_IMPORT_FILTER)

    async def _office_to_pdf(self, request: ConversionRequest) -> ConversionResult:
        return await self._export(request, "pdf")

    async def _pdf_to_excel(self, request: ConversionRequest) -> ConversionResult:
        return await self._export(request, "xlsx")

    async def _pdf_to_images(self, request: ConversionRequest) -> ConversionResult:
        with self._artifact(request.kind, "zip") as artifact:
            with self.store.scratch_dir("render") as workdir:
                pages = await self.converter.render_pages(request.primary.path, workdir)
                if not pages:
                    raise QuickConvertError(PDF_TO_IMAGES_FAILED, ErrorCode.NO_OUTPUT)
                await asyncio.to_thread(pdf_tools.zip_files, pages, artifact.path)
        logger.debug(f"Archived {len(pages)} rendered pages into {artifact.name}")
        return ConversionResult(request.kind, artifact=artifact)

    # In-process PDF recipes

    async def _images_to_pdf(self, request: ConversionRequest) -> ConversionResult:
        images = [(f.path, f.content_type) for f in request.files]
        with self._artifact(request.kind, "pdf") as artifact:
            await asyncio.to_thread(pdf_tools.images_to_pdf, images, artifact.path)
        return ConversionResult(request.kind, artifact=artifact)

    async def _merge_pdfs(self, request: ConversionRequest) -> ConversionResult:
        with self._artifact(request.kind, "pdf") as artifact:
            await asyncio.to_thread(pdf_tools.merge_pdfs, request.paths, artifact.path)
        return ConversionResult(request.kind, artifact=artifact)

    async def _split_pdf(self, request: ConversionRequest) -> ConversionResult:
        with self._artifact(request.kind, "zip") as artifact:
            await asyncio.to_thread(pdf_tools.split_pdf, request.primary.path, artifact.path)
        return ConversionResult(request.kind, artifact=artifact)

    async def _compress_pdf(self, request: ConversionRequest) -> ConversionResult:
        with self._artifact(request.kind, "pdf") as artifact:
            await asyncio.to_thread(pdf_tools.compress_pdf, request.primary.path, artifact.path)
        return ConversionResult(request.kind, artifact=artifact)

    # Text recognition

    async def _ocr(self, request: ConversionRequest) -> ConversionResult:
        """OCR never fails the request; problems are reported as the result text."""
        source = request.primary
        content_type = (source.content_type or "").lower()

        try:
            if content_type.startswith("image/"):
                text = await asyncio.to_thread(self.ocr_engine.recognize, source.path)
            elif content_type == "application/pdf":
                with self.store.scratch_dir("ocr") as workdir:
                    pages = await self.converter.render_pages(source.path, workdir)
                    if pages:
                        text = await asyncio.to_thread(self.ocr_engine.recognize, pages[0])
                    else:
                        text = OCR_NO_TEXT
            else:
                text = OCR_UNSUPPORTED
        except (QuickConvertError, OSError) as exc:
            logger.warning(f"OCR failed for {source.filename}: {exc}")
            text = f"Error during OCR processing: {exc}"

        return ConversionResult(request.kind, text=text)
