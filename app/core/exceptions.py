"""Errors raised while accepting, probing and splitting an uploaded audio file."""

from typing import Any, Dict, Optional


class SplitError(Exception):
    """Base exception for split request failures, rendered as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str, *, code: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class UploadValidationError(SplitError):
    """Missing file, unsupported type or oversized upload."""

    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="upload.invalid", details=details)


class InvalidStrategyError(SplitError):
    """Raised when split parameters are missing or out of range."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        code: str = "split.invalid_strategy",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class NoSegmentsError(InvalidStrategyError):
    """The plan for the probed duration contains nothing to process."""

    def __init__(self, duration: float) -> None:
        super().__init__(
            "There are no parts to process",
            code="split.no_segments",
            details={"duration": duration},
        )


class ProbeError(SplitError):
    """ffprobe failed or returned metadata without a usable duration."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message, code="probe.error", details={"path": path})


class ProbeFailedError(SplitError):
    """The whole request failed because the source could not be probed."""

    def __init__(self, cause: ProbeError) -> None:
        super().__init__(
            "Could not read the audio file format",
            code="split.probe_failed",
            details={"cause": cause.message, **cause.details},
        )
        self.cause = cause


class AllSegmentsFailedError(SplitError):
    """Every segment failed to produce a usable output file."""

    def __init__(self, total: int, cause: Optional[str] = None) -> None:
        message = "Failed to create any valid split files"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(
            message,
            code="split.all_segments_failed",
            details={"segments": total, "cause": cause},
        )


__all__ = [
    "SplitError",
    "UploadValidationError",
    "InvalidStrategyError",
    "NoSegmentsError",
    "ProbeError",
    "ProbeFailedError",
    "AllSegmentsFailedError",
]
