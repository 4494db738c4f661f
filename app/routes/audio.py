import asyncio
import logging
import shutil
import time
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi import APIRouter, File, Form, UploadFile

from app.core.config import get_settings
from app.core.exceptions import UploadValidationError
from app.models.schemas import ErrorResponse, SplitFile, SplitResponse
from app.models.split import SourceMedia, SplitFailed
from app.services.ffmpeg_service import FFmpegService
from app.services.segment_planner import parse_strategy
from app.services.split_service import SplitService

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".mp3", ".wav"}
ALLOWED_CONTENT_TYPES = {"audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav", "audio/wave"}
CHUNK_SIZE = 1024 * 1024


def stage_upload(source: BinaryIO, destination: Path, max_bytes: int, max_mb: int) -> int:
    """Copy the upload to ``destination`` in chunks; nothing is left on disk if it is too large."""
    written = 0
    try:
        with open(destination, "wb") as out:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadValidationError(
                        f"File is too large. Maximum size is {max_mb} MB",
                        details={"max_bytes": max_bytes},
                    )
                out.write(chunk)
    except Exception:
        destination.unlink(missing_ok=True)
        raise
    return written


def _validate_audio(file: Optional[UploadFile]) -> None:
    if file is None or not file.filename:
        raise UploadValidationError("No audio file was provided")

    suffix = Path(file.filename).suffix.lower()
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES and suffix not in ALLOWED_EXTENSIONS:
        raise UploadValidationError(
            "Unsupported file type. Please upload MP3 or WAV files only.",
            details={"filename": file.filename, "content_type": file.content_type},
        )


@router.post(
    "/upload",
    response_model=SplitResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_audio(
    audio: Optional[UploadFile] = File(default=None),
    splitMethod: Optional[str] = Form(default=None),
    partsCount: Optional[str] = Form(default=None),
    segmentDuration: Optional[str] = Form(default=None),
):
    """
    Split an uploaded MP3/WAV file into parts.

    **Form fields:**
    - **audio**: MP3 or WAV file
    - **splitMethod**: `equalParts` or `timeSegments`
    - **partsCount**: number of equal parts (>= 2), for `equalParts`
    - **segmentDuration**: seconds per part (>= 1), for `timeSegments`

    Parts that fail are left out; the request only fails when no part could be produced.
    """
    settings = get_settings()

    # Step 1: Validate the upload and split parameters before touching disk
    _validate_audio(audio)
    strategy = parse_strategy(splitMethod, partsCount, segmentDuration, max_parts=settings.MAX_PARTS)

    # Step 2: Stage the upload under a unique name, rejecting it once it passes the size limit
    settings.ensure_directories()
    original_name = Path(audio.filename).name
    input_path = settings.UPLOAD_DIR / f"{int(time.time() * 1000)}-{uuid.uuid4()}{Path(original_name).suffix}"
    size = await asyncio.to_thread(
        stage_upload, audio.file, input_path, settings.max_upload_bytes, settings.MAX_UPLOAD_MB
    )
    logger.info("Received %s (%d bytes) as %s", original_name, size, input_path.name)

    # Step 3: One download directory per session
    session_id = str(uuid.uuid4())
    session_dir = settings.DOWNLOAD_DIR / session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Session directory: %s", session_dir)

    service = SplitService(FFmpegService.from_settings(settings), max_parts=settings.MAX_PARTS)
    try:
        outcome = await service.split(
            SourceMedia.from_upload(input_path, original_name), strategy, session_dir
        )
    except Exception:
        shutil.rmtree(session_dir, ignore_errors=True)
        raise
    finally:
        if not settings.KEEP_UPLOADS:
            input_path.unlink(missing_ok=True)

    if isinstance(outcome, SplitFailed):
        shutil.rmtree(session_dir, ignore_errors=True)
        raise outcome.error

    return SplitResponse(
        files=[SplitFile(name=o.file_name, url=o.relative_url) for o in outcome.outputs]
    )
