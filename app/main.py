from dotenv import load_dotenv

# Load .env FIRST, before any module that reads settings at import time
load_dotenv()

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.exceptions import SplitError
from app.routes import audio
from app.services.ffmpeg_service import FFmpegService

logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: ensure storage dirs, start the cleanup loop when enabled."""
    settings = get_settings()
    settings.ensure_directories()

    cleanup_task = None
    if settings.cleanup_enabled:
        from app.services.cleanup_service import run_cleanup_loop
        cleanup_task = asyncio.create_task(run_cleanup_loop(settings))

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass


# ---------------------------------------------------------------------------
# Exception handlers: every error is rendered as {"error": message}
# ---------------------------------------------------------------------------

async def handle_split_error(request: Request, exc: SplitError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s %s", exc.code, request.url.path, exc.message, exc.details)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": str(exc.detail)}, status_code=exc.status_code, headers=getattr(exc, "headers", None)
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse({"error": message}, status_code=400)


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        {"error": "An unexpected error occurred while processing the request"}, status_code=500
    )


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()
    settings.ensure_directories()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Split MP3/WAV files into equal parts or fixed-length segments",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS: the configured base URL plus localhost for local dev
    cors_origins = [settings.APP_BASE_URL]
    if "localhost" not in settings.APP_BASE_URL and "127.0.0.1" not in settings.APP_BASE_URL:
        cors_origins += [f"http://localhost:{settings.PORT}", f"http://127.0.0.1:{settings.PORT}"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(SplitError, handle_split_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    if settings.STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

    # Produced parts: /downloads/{session_id}/{file_name}
    app.mount("/downloads", StaticFiles(directory=settings.DOWNLOAD_DIR), name="downloads")

    app.include_router(audio.router, tags=["audio"])

    @app.get("/")
    async def root():
        """Redirect to the upload form."""
        return RedirectResponse(url="/static/index.html")

    @app.get("/api")
    async def api_info():
        """API information and endpoint overview."""
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "endpoints": {
                "upload": "POST /upload  (multipart: audio, splitMethod, partsCount|segmentDuration)",
                "download": "GET /downloads/{session_id}/{file_name}",
                "health": "GET /health",
            },
        }

    @app.get("/health")
    async def health():
        """Health check: ffmpeg/ffprobe availability and free disk space."""
        tools = await asyncio.to_thread(FFmpegService.from_settings(settings).check_installed)

        disk = shutil.disk_usage(settings.DOWNLOAD_DIR)
        disk_free_pct = round((disk.free / disk.total) * 100, 1)

        overall = "healthy" if all(tools.values()) and disk_free_pct > 5 else "degraded"

        return {
            "status": overall,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "ffmpeg": "available" if tools["ffmpeg"] else "missing",
            "ffprobe": "available" if tools["ffprobe"] else "missing",
            "disk_free_pct": disk_free_pct,
        }

    return app


app = create_app()
