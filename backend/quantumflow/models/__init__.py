"""QuantumFlow data models — typed contracts for the whole pipeline."""

from quantumflow.models.image import (
    ImageFormat,
    OrientationMode,
    PageOrientation,
    ImageRecord,
    ConversionSettings,
)
from quantumflow.models.job import (
    AssemblyState,
    StepTiming,
    PageRecord,
    ArtifactMetadata,
    ProgressStatus,
    ConversionResult,
)

__all__ = [
    "ImageFormat",
    "OrientationMode",
    "PageOrientation",
    "ImageRecord",
    "ConversionSettings",
    "AssemblyState",
    "StepTiming",
    "PageRecord",
    "ArtifactMetadata",
    "ProgressStatus",
    "ConversionResult",
]
