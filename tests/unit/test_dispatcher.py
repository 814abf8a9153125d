"""
Unit tests for the conversion dispatcher and its recipes.
"""

import os
import zipfile

import pytest
from PIL import Image
from pypdf import PdfReader, PdfWriter

from quickconvert.config import ConversionKind
from quickconvert.models import ConversionRequest, ConversionState
from quickconvert.recipes import ConversionDispatcher
from quickconvert.recipes.dispatcher import OCR_NO_TEXT, OCR_UNSUPPORTED, PDF_TO_IMAGES_FAILED
from quickconvert.utils.error_handling import ErrorCode, QuickConvertError
from quickconvert.utils.external_converter import ConverterProcessError, MissingOutputError
from quickconvert.utils.ocr import TesseractOcrEngine
from quickconvert.validate import ValidationError


@pytest.fixture
def dispatcher(store, converter, ocr_engine):
    return ConversionDispatcher(store, converter, ocr_engine)


def _assert_only_artifact(store, result):
    assert store.list_files() == [result.artifact.name]


class TestConstruction:

    def test_every_kind_has_a_recipe(self, dispatcher):
        assert set(dispatcher.supported_kinds()) == set(ConversionKind)

    def test_missing_recipe_fails_construction(self, store, converter, ocr_engine):
        class WithoutOcr(ConversionDispatcher):
            def _build_recipes(self):
                recipes = super()._build_recipes()
                del recipes[ConversionKind.OCR]
                return recipes

        with pytest.raises(RuntimeError, match="ocr"):
            WithoutOcr(store, converter, ocr_engine)


class TestOfficeRecipes:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,filename,content_type,prefix,extension", [
        (ConversionKind.PDF_TO_WORD, "scan.pdf", "application/pdf", "converted_", ".docx"),
        (ConversionKind.WORD_TO_PDF, "letter.docx",
         "application/vnd.openxmlformats-officedocument.wordprocessingml.document", "converted_", ".pdf"),
        (ConversionKind.EXCEL_TO_PDF, "sheet.xlsx",
         "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "converted_excel_", ".pdf"),
        (ConversionKind.PDF_TO_EXCEL, "table.pdf", "application/pdf", "converted_", ".xlsx"),
    ])
    async def test_produces_single_artifact(self, dispatcher, store, stage_upload,
                                            kind, filename, content_type, prefix, extension):
        request = ConversionRequest(kind, [stage_upload(filename, content_type, b"document body")])

        result = await dispatcher.dispatch(request)

        assert request.state is ConversionState.SUCCEEDED
        assert result.artifact.name.startswith(prefix)
        assert result.artifact.name.endswith(extension)
        assert result.artifact.download_url == f"/download/{result.artifact.name}"
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_only_first_file_converted_but_all_deleted(self, dispatcher, store, stage_upload):
        files = [
            stage_upload("one.docx", "application/msword", b"first"),
            stage_upload("two.docx", "application/msword", b"second"),
        ]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.WORD_TO_PDF, files))

        with open(result.artifact.path, "rb") as fh:
            assert fh.read().endswith(b"first")
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_converter_failure(self, dispatcher, store, stage_upload):
        request = ConversionRequest(ConversionKind.WORD_TO_PDF, [stage_upload("bad.doc", "application/msword", b"FAIL")])

        with pytest.raises(ConverterProcessError):
            await dispatcher.dispatch(request)

        assert request.state is ConversionState.FAILED
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_missing_output(self, dispatcher, store, stage_upload):
        request = ConversionRequest(
            ConversionKind.PDF_TO_EXCEL, [stage_upload("x.pdf", "application/pdf", b"NOOUTPUT")]
        )

        with pytest.raises(MissingOutputError):
            await dispatcher.dispatch(request)

        assert store.list_files() == []


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(ConversionKind))
    async def test_wrong_type_deletes_batch(self, dispatcher, store, stage_upload, kind):
        files = [stage_upload("notes.txt", "text/plain", b"plain text")]

        with pytest.raises(ValidationError):
            await dispatcher.dispatch(ConversionRequest(kind, files))

        assert store.list_files() == []


class TestPdfRecipes:

    @pytest.mark.asyncio
    async def test_images_to_pdf(self, dispatcher, store, stage_upload, jpeg_bytes, gif_bytes):
        files = [
            stage_upload("photo.jpg", "image/jpeg", jpeg_bytes),
            stage_upload("anim.gif", "image/gif", gif_bytes),
        ]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.IMAGE_TO_PDF, files))

        assert result.artifact.name.startswith("converted_images_")
        pages = PdfReader(result.artifact.path).pages
        assert len(pages) == 1
        assert round(float(pages[0].mediabox.width)) == 800
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_merge(self, dispatcher, store, stage_upload, make_pdf):
        files = [stage_upload(f"part{i}.pdf", "application/pdf", make_pdf([100 + i])) for i in range(3)]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.MERGE_PDF, files))

        assert result.artifact.name.startswith("merged_pdfs_")
        widths = [round(float(p.mediabox.width)) for p in PdfReader(result.artifact.path).pages]
        assert widths == [100, 101, 102]
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_split(self, dispatcher, store, stage_upload, pdf_bytes):
        files = [stage_upload("doc.pdf", "application/pdf", pdf_bytes)]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.SPLIT_PDF, files))

        assert result.artifact.name.startswith("split_pages_")
        with zipfile.ZipFile(result.artifact.path) as zf:
            assert zf.namelist() == ["page_1.pdf", "page_2.pdf", "page_3.pdf"]
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_compress(self, dispatcher, store, stage_upload, pdf_bytes):
        files = [stage_upload("doc.pdf", "application/pdf", pdf_bytes)]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.COMPRESS_PDF, files))

        assert result.artifact.name.startswith("compressed_")
        assert len(PdfReader(result.artifact.path).pages) == 3
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_malformed_pdf(self, dispatcher, store, stage_upload):
        files = [stage_upload("doc.pdf", "application/pdf", b"%PDF-garbage")]

        with pytest.raises(QuickConvertError) as exc_info:
            await dispatcher.dispatch(ConversionRequest(ConversionKind.COMPRESS_PDF, files))

        assert exc_info.value.error_code is ErrorCode.INVALID_DOCUMENT
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_images_to_pdf_without_usable_images(self, dispatcher, store, stage_upload, gif_bytes):
        files = [stage_upload("anim.gif", "image/gif", gif_bytes)]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.IMAGE_TO_PDF, files))

        assert len(PdfReader(result.artifact.path).pages) == 1
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [ConversionKind.MERGE_PDF, ConversionKind.SPLIT_PDF])
    async def test_failed_write_leaves_no_artifact(self, dispatcher, store, stage_upload, pdf_bytes,
                                                   monkeypatch, kind):
        def broken_write(self, stream):
            stream.write(b"%PDF-1.7 partial")
            raise OSError("No space left on device")

        monkeypatch.setattr(PdfWriter, "write", broken_write)
        request = ConversionRequest(kind, [stage_upload("doc.pdf", "application/pdf", pdf_bytes)])

        with pytest.raises(OSError):
            await dispatcher.dispatch(request)

        assert request.state is ConversionState.FAILED
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_pdf_to_images(self, dispatcher, store, stage_upload, pdf_bytes):
        upload = stage_upload("doc.pdf", "application/pdf", pdf_bytes)
        stem = os.path.splitext(os.path.basename(upload.path))[0]

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.PDF_TO_IMAGE, [upload]))

        assert result.artifact.name.startswith("pdf_images_")
        with zipfile.ZipFile(result.artifact.path) as zf:
            assert zf.namelist() == [f"{stem}.png"]
        _assert_only_artifact(store, result)

    @pytest.mark.asyncio
    async def test_pdf_to_images_without_pages(self, dispatcher, store, stage_upload):
        files = [stage_upload("blank.pdf", "application/pdf", b"%PDF-1.4 NOPAGES")]

        with pytest.raises(QuickConvertError) as exc_info:
            await dispatcher.dispatch(ConversionRequest(ConversionKind.PDF_TO_IMAGE, files))

        assert exc_info.value.message == PDF_TO_IMAGES_FAILED
        assert exc_info.value.status_code == 200
        assert store.list_files() == []


class TestOcr:

    @pytest.mark.asyncio
    async def test_image(self, dispatcher, store, stage_upload, ocr_engine, png_bytes):
        upload = stage_upload("scan.png", "image/png", png_bytes)

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.is_inline
        assert result.text == "Recognized text from .png"
        assert ocr_engine.calls == [upload.path]
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_pdf_uses_first_rendered_page(self, dispatcher, store, stage_upload, ocr_engine, pdf_bytes):
        upload = stage_upload("doc.pdf", "application/pdf", pdf_bytes)

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.text == "Recognized text from .png"
        assert len(ocr_engine.calls) == 1
        assert not os.path.exists(ocr_engine.calls[0])
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_pdf_without_pages(self, dispatcher, store, stage_upload, ocr_engine):
        upload = stage_upload("blank.pdf", "application/pdf", b"%PDF-1.4 NOPAGES")

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.text == OCR_NO_TEXT
        assert ocr_engine.calls == []
        assert store.list_files() == []

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, dispatcher, stage_upload):
        # Passes the allow-list by extension, but the content type is neither image nor PDF
        upload = stage_upload("scan.jpg", "application/octet-stream", b"data")

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.text == OCR_UNSUPPORTED

    @pytest.mark.asyncio
    async def test_engine_failure_is_reported_inline(self, dispatcher, stage_upload):
        upload = stage_upload("scan.png", "image/png", b"BROKEN image")

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.text == "Error during OCR processing: image is unreadable"

    @pytest.mark.asyncio
    async def test_renderer_failure_is_reported_inline(self, dispatcher, stage_upload):
        upload = stage_upload("doc.pdf", "application/pdf", b"%PDF-1.4 FAIL")

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.text.startswith("Error during OCR processing: ")

    @pytest.mark.asyncio
    async def test_decompression_bomb_is_reported_inline(self, store, converter, stage_upload, png_bytes,
                                                         monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        dispatcher = ConversionDispatcher(store, converter, TesseractOcrEngine())
        upload = stage_upload("huge.png", "image/png", png_bytes)

        result = await dispatcher.dispatch(ConversionRequest(ConversionKind.OCR, [upload]))

        assert result.is_inline
        assert result.text.startswith("Error during OCR processing: Could not read")
        assert store.list_files() == []
