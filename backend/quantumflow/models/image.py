"""
QuantumFlow — Image records and conversion settings.

An ImageRecord is created once at admission and never changes afterwards;
reordering moves records inside their ImageSequence, it does not touch them.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, enum.Enum):
    """Encodings the PDF sink accepts as-is."""
    JPEG = "JPEG"
    PNG = "PNG"


class OrientationMode(str, enum.Enum):
    AUTO = "auto"
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class PageOrientation(str, enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class ImageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    name: str
    data: bytes = Field(repr=False, exclude=True)
    format: ImageFormat
    pixel_width: int = Field(gt=0)
    pixel_height: int = Field(gt=0)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def summary(self) -> dict[str, Any]:
        """JSON-safe view without the payload."""
        return {
            "id": self.id,
            "name": self.name,
            "format": self.format.value,
            "width": self.pixel_width,
            "height": self.pixel_height,
            "size_bytes": self.size_bytes,
        }


class ConversionSettings(BaseModel):
    """Snapshot of the user's choices, taken once per conversion run."""

    model_config = ConfigDict(frozen=True)

    quality: float = Field(default=0.8, ge=0.0, le=1.0)
    orientation_mode: OrientationMode = OrientationMode.AUTO
