from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class SplitMethod(str, Enum):
    """Split methods accepted by the upload form"""
    EQUAL_PARTS = "equalParts"
    TIME_SEGMENTS = "timeSegments"


class SplitFile(BaseModel):
    """A single produced part"""
    name: str = Field(description="Name of the part file")
    url: str = Field(description="Relative URL to download this part")


class SplitResponse(BaseModel):
    """Response after successfully splitting an audio file"""
    files: List[SplitFile] = Field(description="Produced parts, ordered by part number")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(description="Human-readable error message")
