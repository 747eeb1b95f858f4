"""
QuantumFlow — Conversion run state and output contracts.

Every conversion returns a ConversionResult with full traceability:
per-page geometry, step timings, and artifact metadata.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field

from quantumflow.models.image import ConversionSettings, ImageFormat, PageOrientation


class AssemblyState(str, enum.Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class StepTiming(BaseModel):
    step: str
    duration_ms: int
    status: str = "ok"  # ok | failed | cancelled
    detail: str = ""


class PageRecord(BaseModel):
    """Where one image ended up: page size, orientation, placed rectangle (points)."""

    index: int
    record_id: int
    name: str
    format: ImageFormat
    orientation: PageOrientation
    page_width: float
    page_height: float
    x: float
    y: float
    width: float
    height: float


class ArtifactMetadata(BaseModel):
    filename: str
    size_bytes: int
    pages: int = 0
    content_hash: str = ""  # SHA-256 of the PDF


class ProgressStatus(BaseModel):
    state: AssemblyState = AssemblyState.IDLE
    percent: float = 0.0
    message: str = ""


class ConversionResult(BaseModel):
    """Complete output contract for one conversion run."""

    job_id: str
    state: AssemblyState
    settings: ConversionSettings
    artifact: ArtifactMetadata | None = None
    pages: list[PageRecord] = Field(default_factory=list)
    timings: list[StepTiming] = Field(default_factory=list)
