"""
Cleanup service: deletes session download directories and staged uploads
older than SESSION_RETENTION_HOURS.
Runs as a background asyncio task started from the app lifespan, only when
retention is enabled.
"""
import asyncio
import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _is_expired(path: Path, cutoff: float) -> bool:
    try:
        return path.stat().st_mtime <= cutoff
    except FileNotFoundError:
        return False


def cleanup_old_files(settings: Optional[Settings] = None, now: Optional[float] = None) -> dict:
    """
    Delete expired session directories and staged uploads.
    Returns a summary dict with counts.
    """
    settings = settings or get_settings()
    now = time.time() if now is None else now
    cutoff = now - settings.SESSION_RETENTION_HOURS * 3600
    deleted = 0
    errors = 0

    for root in (settings.DOWNLOAD_DIR, settings.UPLOAD_DIR):
        if not root.exists():
            continue
        for entry in root.iterdir():
            if not _is_expired(entry, cutoff):
                continue
            try:
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink(missing_ok=True)
                deleted += 1
            except OSError as exc:
                logger.error("Failed to delete %s: %s", entry, exc)
                errors += 1

    if deleted or errors:
        logger.info("Cleanup run: %d expired, %d errors", deleted, errors)
    return {"deleted": deleted, "errors": errors, "checked_at": now}


async def run_cleanup_loop(settings: Optional[Settings] = None) -> None:
    """
    Infinite loop that calls cleanup_old_files() every CLEANUP_INTERVAL_SECONDS.
    Designed to be launched as an asyncio background task.
    """
    settings = settings or get_settings()
    interval = settings.CLEANUP_INTERVAL_SECONDS
    logger.info(
        "Cleanup loop started (retention=%sh, interval=%ds)",
        settings.SESSION_RETENTION_HOURS,
        interval,
    )
    while True:
        try:
            await asyncio.to_thread(cleanup_old_files, settings)
        except Exception as exc:
            logger.error("Unhandled error in cleanup loop: %s", exc)
        await asyncio.sleep(interval)
