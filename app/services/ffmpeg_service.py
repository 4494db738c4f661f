import json
import logging
import math
import subprocess
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from app.core.exceptions import ProbeError
from app.models.split import FailureCause, OutputDescriptor, Segment, SegmentResult

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 500


def _format_seconds(value: float) -> str:
    return f"{value:.6f}"


def _stderr_tail(stderr) -> str:
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return stderr.strip()[-STDERR_TAIL_CHARS:]


def part_file_name(base_name: str, segment: Segment, extension: str) -> str:
    return f"{base_name}_part{segment.part_number}{extension}"


class FFmpegService:
    """Audio probing and segment extraction using FFmpeg"""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        probe_timeout: Optional[float] = None,
        segment_timeout: Optional[float] = None,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.probe_timeout = probe_timeout
        self.segment_timeout = segment_timeout

    @classmethod
    def from_settings(cls, settings) -> "FFmpegService":
        return cls(
            ffmpeg_path=settings.FFMPEG_PATH,
            ffprobe_path=settings.FFPROBE_PATH,
            probe_timeout=settings.PROBE_TIMEOUT_SECONDS,
            segment_timeout=settings.SEGMENT_TIMEOUT_SECONDS,
        )

    def check_installed(self) -> Dict[str, bool]:
        """Check whether ffmpeg and ffprobe are installed and accessible"""
        status = {}
        for name, binary in (("ffmpeg", self.ffmpeg_path), ("ffprobe", self.ffprobe_path)):
            try:
                subprocess.run([binary, "-version"], capture_output=True, check=True)
                status[name] = True
            except (subprocess.CalledProcessError, OSError):
                status[name] = False
        return status

    def get_media_info(self, media_path: str) -> Dict:
        """
        Get container and stream metadata using ffprobe

        Args:
            media_path: Path to the audio file

        Returns:
            Dictionary containing the parsed ffprobe JSON

        Raises:
            ProbeError: If ffprobe fails, times out or prints invalid JSON
        """
        cmd = [
            self.ffprobe_path,
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            str(media_path),
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.probe_timeout,
            )
        except subprocess.CalledProcessError as e:
            detail = _stderr_tail(e.stderr) or f"exit code {e.returncode}"
            raise ProbeError(f"ffprobe failed: {detail}", path=str(media_path))
        except subprocess.TimeoutExpired:
            raise ProbeError(
                f"ffprobe timed out after {self.probe_timeout}s", path=str(media_path)
            )
        except FileNotFoundError:
            raise ProbeError(f"ffprobe not found: {self.ffprobe_path}", path=str(media_path))
        except OSError as e:
            raise ProbeError(f"ffprobe could not be started: {e}", path=str(media_path))

        try:
            return json.loads(result.stdout)
        except (TypeError, ValueError):
            raise ProbeError("ffprobe returned invalid JSON", path=str(media_path))

    def get_duration(self, media_path: str) -> float:
        """
        Get audio duration in seconds

        ffprobe prints the duration as a string; anything that does not parse
        to a positive finite number is rejected.

        Raises:
            ProbeError: If metadata is missing or has no usable duration
        """
        info = self.get_media_info(media_path)
        fmt = info.get("format") if isinstance(info, dict) else None
        if not isinstance(fmt, dict):
            raise ProbeError("No format information found in the file", path=str(media_path))

        raw = fmt.get("duration")
        if raw is None or isinstance(raw, bool):
            raise ProbeError("No duration information found in the file", path=str(media_path))

        try:
            duration = float(raw)
        except (TypeError, ValueError):
            raise ProbeError(f"Unreadable duration {raw!r}", path=str(media_path))

        if not math.isfinite(duration) or duration <= 0:
            raise ProbeError(f"Invalid duration {raw!r}", path=str(media_path))
        return duration

    def build_extract_command(self, source_path: str, output_path: Path, segment: Segment) -> List[str]:
        """Stream-copy the audio of one time range; -t stops at end of stream."""
        return [
            self.ffmpeg_path,
            '-hide_banner', '-loglevel', 'error',
            '-y',
            '-ss', _format_seconds(segment.start_time),
            '-t', _format_seconds(segment.length),
            '-i', str(source_path),
            '-vn',
            '-c:a', 'copy',
            str(output_path),
        ]

    def extract_segment(
        self,
        source_path: str,
        output_dir: Path,
        segment: Segment,
        base_name: str,
        extension: str,
    ) -> SegmentResult:
        """
        Extract one segment into ``output_dir``.

        Never raises for per-segment problems: a failed, timed-out, missing or
        empty output comes back as a failed SegmentResult with no file left
        behind. Blocks until ffmpeg exits.
        """
        output_dir = Path(output_dir)
        file_name = part_file_name(base_name, segment, extension)
        output_path = output_dir / file_name
        cmd = self.build_extract_command(source_path, output_path, segment)
        logger.debug("FFmpeg command for part %d: %s", segment.part_number, " ".join(cmd))

        try:
            subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.segment_timeout,
            )
        except subprocess.CalledProcessError as e:
            output_path.unlink(missing_ok=True)
            detail = _stderr_tail(e.stderr) or f"exit code {e.returncode}"
            logger.warning("Part %d failed: %s", segment.part_number, detail)
            return SegmentResult.failed(segment, FailureCause.TRANSCODE_ERROR, detail)
        except subprocess.TimeoutExpired:
            output_path.unlink(missing_ok=True)
            logger.warning(
                "Part %d timed out after %ss", segment.part_number, self.segment_timeout
            )
            return SegmentResult.failed(
                segment, FailureCause.TIMEOUT, f"timed out after {self.segment_timeout}s"
            )
        except FileNotFoundError:
            logger.warning("Part %d failed: ffmpeg not found at %s", segment.part_number, self.ffmpeg_path)
            return SegmentResult.failed(
                segment, FailureCause.TRANSCODE_ERROR, f"ffmpeg not found: {self.ffmpeg_path}"
            )
        except OSError as e:
            output_path.unlink(missing_ok=True)
            logger.warning("Part %d failed to start ffmpeg: %s", segment.part_number, e)
            return SegmentResult.failed(segment, FailureCause.TRANSCODE_ERROR, str(e))

        if not output_path.exists():
            logger.warning("Output file was not created: %s", output_path)
            return SegmentResult.failed(segment, FailureCause.NOT_PRODUCED, file_name)

        byte_size = output_path.stat().st_size
        if byte_size == 0:
            logger.warning("Output file is empty, removing: %s", output_path)
            output_path.unlink(missing_ok=True)
            return SegmentResult.failed(segment, FailureCause.EMPTY_OUTPUT, file_name)

        logger.info("Part %d complete (%d bytes)", segment.part_number, byte_size)
        return SegmentResult.success(
            segment,
            OutputDescriptor(
                file_name=file_name,
                relative_url=f"/downloads/{quote(output_dir.name)}/{quote(file_name)}",
                byte_size=byte_size,
            ),
        )
