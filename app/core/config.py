import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_TMP_ROOT = Path(tempfile.gettempdir())
_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "AudioSplit API"
    APP_VERSION: str = "1.0.0"
    APP_BASE_URL: str = "http://localhost:3000"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Storage
    UPLOAD_DIR: Path = Field(default=_TMP_ROOT / "uploads")
    DOWNLOAD_DIR: Path = Field(default=_TMP_ROOT / "downloads")
    STATIC_DIR: Path = Field(default=_PROJECT_ROOT / "static")
    MAX_UPLOAD_MB: int = Field(default=50, ge=1)
    KEEP_UPLOADS: bool = False
    MAX_PARTS: int = Field(default=1000, ge=2)

    # FFmpeg
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    PROBE_TIMEOUT_SECONDS: float = Field(default=30, gt=0)
    SEGMENT_TIMEOUT_SECONDS: float = Field(default=300, gt=0)

    # Cleanup (0 = session directories are never reclaimed)
    SESSION_RETENTION_HOURS: float = Field(default=0, ge=0)
    CLEANUP_INTERVAL_SECONDS: int = Field(default=3600, ge=1)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def cleanup_enabled(self) -> bool:
        return self.SESSION_RETENTION_HOURS > 0

    def ensure_directories(self) -> None:
        self.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
        self.DOWNLOAD_DIR.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
