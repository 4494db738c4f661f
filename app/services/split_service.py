"""
Split orchestration: probe, plan, fan out one ffmpeg extraction per segment,
then aggregate.

Every extraction runs in its own worker thread via asyncio.to_thread() and the
results are joined with asyncio.gather(). A failed segment never cancels its
siblings; the request succeeds if at least one part was produced.
"""
import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from app.core.exceptions import (
    AllSegmentsFailedError,
    InvalidStrategyError,
    NoSegmentsError,
    ProbeError,
    ProbeFailedError,
)
from app.models.split import (
    FailureCause,
    SegmentResult,
    SourceMedia,
    SplitCompleted,
    SplitFailed,
    SplitOutcome,
    SplitStrategy,
)
from app.services import segment_planner
from app.services.ffmpeg_service import FFmpegService

logger = logging.getLogger(__name__)


def _representative_failure(failed: List[SegmentResult]) -> Optional[str]:
    """Prefer the first hard transcode error; otherwise the first failure of any kind."""
    for result in failed:
        if result.failure.cause is FailureCause.TRANSCODE_ERROR:
            return result.failure.describe()
    return failed[0].failure.describe() if failed else None


def aggregate(source: SourceMedia, results: List[SegmentResult]) -> SplitOutcome:
    """Apply the success policy: any produced part wins, ordered by segment index."""
    ordered = sorted(results, key=lambda r: r.segment.index)
    outputs = [r.output for r in ordered if r.ok]
    failed = [r for r in ordered if not r.ok]

    if outputs:
        return SplitCompleted(outputs=outputs, source=source, failed_segments=failed)
    return SplitFailed(AllSegmentsFailedError(len(results), _representative_failure(failed)))


class SplitService:
    """Drives one split request from probe to aggregated outcome."""

    def __init__(self, ffmpeg: FFmpegService, max_parts: Optional[int] = None):
        self.ffmpeg = ffmpeg
        self.max_parts = max_parts

    async def split(self, source: SourceMedia, strategy: SplitStrategy, output_dir: Path) -> SplitOutcome:
        try:
            segment_planner.validate_strategy(strategy, self.max_parts)
        except InvalidStrategyError as exc:
            return SplitFailed(exc)

        try:
            duration = await asyncio.to_thread(self.ffmpeg.get_duration, str(source.path))
        except ProbeError as exc:
            logger.error("Probe failed for %s: %s", source.path, exc.message)
            return SplitFailed(ProbeFailedError(exc))

        probed = replace(source, duration_seconds=duration)
        logger.info("Duration of %s: %.3fs", source.path.name, duration)

        try:
            segments = segment_planner.plan(duration, strategy, max_parts=self.max_parts)
        except InvalidStrategyError as exc:
            return SplitFailed(exc)
        if not segments:
            return SplitFailed(NoSegmentsError(duration))

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Splitting %s into %d parts in %s", source.path.name, len(segments), output_dir)

        gathered = await asyncio.gather(
            *(
                asyncio.to_thread(
                    self.ffmpeg.extract_segment,
                    str(probed.path),
                    output_dir,
                    segment,
                    probed.display_name,
                    probed.extension,
                )
                for segment in segments
            ),
            return_exceptions=True,
        )

        # gather keeps input order, so each leftover exception maps back to its segment
        results = []
        for segment, result in zip(segments, gathered):
            if isinstance(result, Exception):
                logger.warning("Part %d raised %r", segment.part_number, result)
                result = SegmentResult.failed(segment, FailureCause.TRANSCODE_ERROR, repr(result))
            elif isinstance(result, BaseException):
                raise result
            results.append(result)

        outcome = aggregate(probed, results)
        if isinstance(outcome, SplitCompleted):
            logger.info(
                "Split %s into %d/%d parts", source.path.name, len(outcome.outputs), len(segments)
            )
        else:
            logger.error("All %d parts failed for %s: %s", len(segments), source.path.name, outcome.error.message)
        return outcome
