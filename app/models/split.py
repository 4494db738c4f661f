"""Domain types for a split request: source, strategy, segments and outcomes."""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from app.core.exceptions import SplitError


@dataclass(frozen=True)
class SourceMedia:
    path: Path
    display_name: str
    extension: str
    duration_seconds: Optional[float] = None

    @classmethod
    def from_upload(cls, path: Path, original_filename: str) -> "SourceMedia":
        """Build from the staged file and the client's original filename."""
        name = Path(original_filename).name
        return cls(path=path, display_name=Path(name).stem, extension=Path(name).suffix)


@dataclass(frozen=True)
class EqualParts:
    count: int


@dataclass(frozen=True)
class FixedLength:
    seconds: float


SplitStrategy = Union[EqualParts, FixedLength]


@dataclass(frozen=True)
class Segment:
    index: int
    start_time: float
    length: float

    @property
    def part_number(self) -> int:
        return self.index + 1

    @property
    def end_time(self) -> float:
        return self.start_time + self.length


class FailureCause(str, enum.Enum):
    TRANSCODE_ERROR = "transcode_error"
    NOT_PRODUCED = "not_produced"
    EMPTY_OUTPUT = "empty_output"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SegmentFailure:
    cause: FailureCause
    detail: str = ""

    def describe(self) -> str:
        return f"{self.cause.value}: {self.detail}" if self.detail else self.cause.value


@dataclass(frozen=True)
class OutputDescriptor:
    file_name: str
    relative_url: str
    byte_size: int

    def __post_init__(self):
        if self.byte_size <= 0:
            raise ValueError(f"Output {self.file_name} is empty")


@dataclass(frozen=True)
class SegmentResult:
    segment: Segment
    output: Optional[OutputDescriptor] = None
    failure: Optional[SegmentFailure] = None

    def __post_init__(self):
        if (self.output is None) == (self.failure is None):
            raise ValueError("SegmentResult needs exactly one of output or failure")

    @classmethod
    def success(cls, segment: Segment, output: OutputDescriptor) -> "SegmentResult":
        return cls(segment=segment, output=output)

    @classmethod
    def failed(cls, segment: Segment, cause: FailureCause, detail: str = "") -> "SegmentResult":
        return cls(segment=segment, failure=SegmentFailure(cause=cause, detail=detail))

    @property
    def ok(self) -> bool:
        return self.output is not None


@dataclass(frozen=True)
class SplitCompleted:
    outputs: List[OutputDescriptor]
    source: SourceMedia
    failed_segments: List[SegmentResult] = field(default_factory=list)


@dataclass(frozen=True)
class SplitFailed:
    error: SplitError


SplitOutcome = Union[SplitCompleted, SplitFailed]
