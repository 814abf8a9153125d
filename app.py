from contextlib import asynccontextmanager
import asyncio
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

# Import the web interface routes
from quickconvert.router import router as convert_router

from quickconvert.config import Settings
from quickconvert.recipes import ConversionDispatcher
from quickconvert.utils.external_converter import ExternalConverter
from quickconvert.utils.ocr import TesseractOcrEngine
from quickconvert.utils.rate_limiter import RATE_LIMIT_MESSAGE, RateLimiter
from quickconvert.utils.temp_file_manager import TempFileManager

# Import centralized logging configuration
from quickconvert.utils.logging_config import get_logger, setup_logging


# Set up logging
logger = get_logger()


def create_app(settings: Optional[Settings] = None,
               converter: Optional[ExternalConverter] = None,
               ocr_engine: Optional[TesseractOcrEngine] = None) -> FastAPI:
    """
    Build an application with its own temp store and rate limiter.

    Args:
        settings: Runtime settings, read from the environment when omitted
        converter: External converter, LibreOffice discovered on this host by default
        ocr_engine: Text recognition engine, Tesseract by default
    """
    settings = settings or Settings.from_env()
    store = TempFileManager(settings.temp_dir)
    converter = converter or ExternalConverter(timeout=settings.converter_timeout)
    ocr_engine = ocr_engine or TesseractOcrEngine(settings.ocr_language)
    rate_limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.start()
        if not converter.check_available():
            logger.warning("LibreOffice was not found; office conversions will fail until it is installed")

        sweeper = asyncio.create_task(store.run_sweeper(settings.sweep_interval, settings.artifact_ttl))
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            store.shutdown()
            rate_limiter.reset()

    app = FastAPI(lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.converter = converter
    app.state.ocr_engine = ocr_engine
    app.state.rate_limiter = rate_limiter
    app.state.dispatcher = ConversionDispatcher(store, converter, ocr_engine)

    @app.middleware("http")
    async def limit_requests(request: Request, call_next):
        client = request.client.host if request.client else None
        decision = request.app.state.rate_limiter.hit(client)
        if not decision.allowed:
            return PlainTextResponse(
                RATE_LIMIT_MESSAGE,
                status_code=429,
                headers={"Retry-After": str(decision.retry_after)},
            )
        return await call_next(request)

    # Include the conversion routes
    app.include_router(convert_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
