"""
QuantumFlow — Admission step (raw upload → ImageRecord).

Each file is judged on its own: one unreadable upload never blocks the
others. Decoding runs in worker threads and the results are gathered
all-settled, then appended to the sequence in upload order.

Controls:
  - Type allowlist: image/jpeg, image/png, image/webp
  - Max single file: QF_MAX_FILE_MB (default 10 MB)
  - Max count per session: QF_MAX_IMAGES (default 20); surplus files are
    rejected, earlier files win
  - WEBP is re-encoded losslessly as PNG so the PDF sink only sees JPEG/PNG
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass, field
from typing import Any

from quantumflow.errors import (
    AdmissionError,
    CapacityExceededError,
    FileTooLargeError,
    SequenceLockedError,
    UnreadableImageError,
    UnsupportedFormatError,
)
from quantumflow.models.image import ImageFormat, ImageRecord
from quantumflow.pipeline.sequence import ImageSequence
from quantumflow.utils.logging import logger, step_timer

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}
GENERIC_CONTENT_TYPES = {"", "application/octet-stream"}
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024  # 10 MB

# Pillow format name → MIME type
_DETECTED_TYPES = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}


@dataclass
class Upload:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass
class DecodedImage:
    data: bytes
    format: ImageFormat
    width: int
    height: int


@dataclass
class AdmissionReport:
    accepted: list[ImageRecord] = field(default_factory=list)
    rejected: list[AdmissionError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": [r.summary() for r in self.accepted],
            "rejected": [{"filename": e.filename, **e.to_dict()} for e in self.rejected],
        }


def _normalise_content_type(content_type: str | None) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def load_image(
    filename: str,
    content: bytes,
    content_type: str | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> DecodedImage:
    """
    Decode one upload far enough to know its pixel size and sink format.

    Raises an AdmissionError subclass; never returns a record with
    non-positive dimensions.
    """
    from PIL import Image

    if len(content) > max_file_bytes:
        raise FileTooLargeError(
            filename, len(content) / (1024 * 1024), max_file_bytes / (1024 * 1024)
        )

    declared = _normalise_content_type(content_type)
    if declared not in GENERIC_CONTENT_TYPES and declared not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedFormatError(filename, declared)

    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            detected = img.format or ""
            width, height = img.size
            if detected == "WEBP":
                out = io.BytesIO()
                img.save(out, format="PNG")
                content = out.getvalue()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise UnreadableImageError(filename, str(exc)) from exc

    if detected not in _DETECTED_TYPES:
        raise UnsupportedFormatError(filename, detected.lower() or declared)
    if width <= 0 or height <= 0:
        raise UnreadableImageError(filename, f"invalid dimensions {width}x{height}")

    fmt = ImageFormat.JPEG if detected == "JPEG" else ImageFormat.PNG
    return DecodedImage(data=content, format=fmt, width=width, height=height)


async def admit_uploads(
    sequence: ImageSequence,
    uploads: list[Upload],
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> AdmissionReport:
    """Admit as many uploads as the sequence has room for; report the rest."""
    if sequence.is_frozen:
        raise SequenceLockedError()

    report = AdmissionReport()
    squeezed_out: list[Upload] = []
    capacity = sequence.remaining_capacity
    considered, overflow = uploads[:capacity], uploads[capacity:]

    with step_timer(f"Admit {len(uploads)} upload(s)"):
        results = await asyncio.gather(
            *(
                asyncio.to_thread(load_image, u.filename, u.content, u.content_type, max_file_bytes)
                for u in considered
            ),
            return_exceptions=True,
        )

        for upload, result in zip(considered, results):
            if isinstance(result, Exception) and not isinstance(result, AdmissionError):
                logger.error(
                    "  Unexpected decoder error for %s", upload.filename, exc_info=result
                )
                result = UnreadableImageError(upload.filename, str(result) or type(result).__name__)
            elif isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, AdmissionError):
                report.rejected.append(result)
                logger.warning("  Rejected %s: %s", upload.filename, result.code)
                continue
            # Another batch may have filled the sequence while this one was decoding.
            if sequence.remaining_capacity == 0:
                squeezed_out.append(upload)
                continue
            record = sequence.append(
                upload.filename, result.data, result.format, result.width, result.height
            )
            report.accepted.append(record)
            logger.info(
                "  Admitted #%d %s (%dx%d %s, %d bytes)",
                record.id, record.name, record.pixel_width, record.pixel_height,
                record.format.value, record.size_bytes,
            )

        overflow = squeezed_out + overflow
        for upload in overflow:
            report.rejected.append(CapacityExceededError(upload.filename, sequence.max_images))
        if overflow:
            logger.warning(
                "  Capacity reached: %d file(s) over the %d image limit",
                len(overflow), sequence.max_images,
            )

    return report
