"""
Routes for the web interface: the upload form, the conversion endpoint and
artifact downloads.

Shared objects (settings, temp store, dispatcher, tools) live on app.state and
are set up by ``app.create_app``.
"""

from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse
from starlette.background import BackgroundTask

from .config import ConversionKind
from .models import ConversionRequest, UploadedFile
from .pages import (
    render_home_page,
    render_ocr_page,
    render_privacy_page,
    render_success_page,
)
from .utils.error_handling import (
    ErrorCode,
    QuickConvertError,
    create_error_response,
    error_response_from_exception,
)
from .utils.logging_config import get_logger

logger = get_logger()

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    settings = request.app.state.settings
    return HTMLResponse(render_home_page(settings.max_file_size_mb, settings.max_files))


@router.get("/privacy", response_class=HTMLResponse)
async def privacy():
    return HTMLResponse(render_privacy_page())


@router.get("/ping")
async def ping(request: Request):
    """Liveness plus availability of the external tools."""
    state = request.app.state
    return {
        "success": True,
        "data": "PONG!",
        "converter": {"available": state.converter.check_available()},
        "ocr": {"available": state.ocr_engine.check_available()},
        "storage": state.store.get_stats(),
    }


async def _discard_uploads(uploads: List[UploadFile]):
    for upload in uploads:
        await upload.close()


@router.post("/convert", response_class=HTMLResponse)
async def convert(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    kind_value: str = Form("", alias="type"),
):
    """
    Convert the uploaded files with the recipe for the requested kind.

    Every upload saved to the temp store is deleted before this returns,
    whatever the outcome.
    """
    state = request.app.state
    settings = state.settings
    store = state.store

    # Browsers send an empty part when no file was picked
    uploads = [f for f in (files or []) if f.filename]

    if not uploads:
        await _discard_uploads(files or [])
        return create_error_response(ErrorCode.NO_FILES, "No file uploaded.")

    if len(uploads) > settings.max_files:
        await _discard_uploads(uploads)
        return create_error_response(
            ErrorCode.TOO_MANY_FILES,
            f"Too many files. You can upload up to {settings.max_files} files at once.",
            file_count=len(uploads),
        )

    saved: List[UploadedFile] = []
    try:
        for upload in uploads:
            saved.append(await store.save_upload(upload, settings.max_file_size))
    except QuickConvertError as e:
        store.delete_many(f.path for f in saved)
        await _discard_uploads(uploads)
        return error_response_from_exception(e, kind=kind_value)

    kind = ConversionKind.parse(kind_value)
    if kind is None:
        store.delete_many(f.path for f in saved)
        return create_error_response(
            ErrorCode.CONVERSION_NOT_SUPPORTED, "Conversion type not implemented.", kind=kind_value
        )

    conversion = ConversionRequest(kind, saved)
    try:
        result = await state.dispatcher.dispatch(conversion)
    except QuickConvertError as e:
        if e.status_code >= 500:
            return create_error_response(
                e.error_code, f"Error during conversion: {e.message}", status_code=e.status_code, kind=kind.value
            )
        return error_response_from_exception(e, kind=kind.value)
    except Exception as e:
        logger.exception(f"Unexpected error during {kind.value} conversion")
        return create_error_response(ErrorCode.INTERNAL_ERROR, f"Error during conversion: {e}", kind=kind.value)

    if result.is_inline:
        return HTMLResponse(render_ocr_page(result.text))

    logger.info(f"{kind.value} produced {result.artifact.name}")
    return HTMLResponse(
        render_success_page(result.artifact.name, result.artifact.download_url, result.label)
    )


@router.get("/download/{filename}")
async def download(request: Request, filename: str):
    """Stream an artifact as an attachment and delete it shortly afterwards."""
    state = request.app.state
    path = state.store.resolve(filename)
    if path is None:
        return create_error_response(ErrorCode.NOT_FOUND, "File not found or has expired.", filename=filename)

    return FileResponse(
        path,
        filename=filename,
        background=BackgroundTask(
            state.store.delete_after_delay, path, state.settings.download_cleanup_delay
        ),
    )
