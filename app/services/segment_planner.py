"""
Segment planning: turn a probed duration and a split strategy into an ordered
list of (start, length) segments.

Planning is pure. The last FixedLength segment may overshoot the end of the
source; ffmpeg's ``-t`` stops at the end of the stream.
"""
import math
from typing import List, Optional

from app.core.exceptions import InvalidStrategyError
from app.models.schemas import SplitMethod
from app.models.split import EqualParts, FixedLength, Segment, SplitStrategy

MIN_PARTS = 2
MIN_SEGMENT_SECONDS = 1


def _too_many_parts(count: int, max_parts: int) -> InvalidStrategyError:
    return InvalidStrategyError(
        f"Number of parts cannot exceed {max_parts}",
        details={"parts": count, "max_parts": max_parts},
    )


def _parse_int(raw: Optional[str], field_name: str, message: str) -> int:
    if raw is None or not str(raw).strip():
        raise InvalidStrategyError(message, details={field_name: raw})
    try:
        return int(str(raw).strip())
    except ValueError:
        raise InvalidStrategyError(message, details={field_name: raw})


def parse_strategy(
    split_method: Optional[str],
    parts_count: Optional[str] = None,
    segment_duration: Optional[str] = None,
    max_parts: Optional[int] = None,
) -> SplitStrategy:
    """Build a strategy from the raw upload form fields and validate it."""
    if split_method == SplitMethod.EQUAL_PARTS.value:
        count = _parse_int(parts_count, "partsCount", "Number of parts must be at least 2")
        strategy: SplitStrategy = EqualParts(count=count)
    elif split_method == SplitMethod.TIME_SEGMENTS.value:
        seconds = _parse_int(
            segment_duration, "segmentDuration", "Segment duration must be at least 1 second"
        )
        strategy = FixedLength(seconds=seconds)
    else:
        raise InvalidStrategyError(
            "Invalid split method", details={"splitMethod": split_method}
        )

    validate_strategy(strategy, max_parts)
    return strategy


def validate_strategy(strategy: SplitStrategy, max_parts: Optional[int] = None) -> None:
    """Raise InvalidStrategyError unless the strategy can be planned."""
    if isinstance(strategy, EqualParts):
        count = strategy.count
        if isinstance(count, bool) or not isinstance(count, int) or count < MIN_PARTS:
            raise InvalidStrategyError(
                "Number of parts must be at least 2", details={"partsCount": count}
            )
        if max_parts is not None and count > max_parts:
            raise _too_many_parts(count, max_parts)
    elif isinstance(strategy, FixedLength):
        seconds = strategy.seconds
        if (
            isinstance(seconds, bool)
            or not isinstance(seconds, (int, float))
            or not math.isfinite(seconds)
            or seconds < MIN_SEGMENT_SECONDS
        ):
            raise InvalidStrategyError(
                "Segment duration must be at least 1 second",
                details={"segmentDuration": seconds},
            )
    else:
        raise InvalidStrategyError(
            "Invalid split method", details={"strategy": type(strategy).__name__}
        )


def plan(
    duration_seconds: float, strategy: SplitStrategy, max_parts: Optional[int] = None
) -> List[Segment]:
    """
    Compute the ordered segments for a source of ``duration_seconds``.

    EqualParts(count) yields ``count`` segments of ``duration / count``.
    FixedLength(seconds) yields ``ceil(duration / seconds)`` segments of
    ``seconds`` each. A non-positive duration yields an empty plan.
    Raises InvalidStrategyError when more than ``max_parts`` segments would be
    planned.
    """
    if duration_seconds <= 0:
        return []

    if isinstance(strategy, EqualParts):
        count = strategy.count
        length = duration_seconds / count
    else:
        length = float(strategy.seconds)
        count = math.ceil(duration_seconds / length)

    if max_parts is not None and count > max_parts:
        raise _too_many_parts(count, max_parts)

    return [Segment(index=i, start_time=i * length, length=length) for i in range(count)]
