"""
QuantumFlow — Structured error catalog.

Every error has a code, human message, suggested fix and the HTTP status
the API answers with. No raw exceptions leak to the client.
"""

from __future__ import annotations

from typing import Any


class QuantumFlowError(Exception):
    """Base error with structured code + suggestion."""

    http_status = 422

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


# ──────────────────────────────────────────────────────────
# Admission (upload → ImageRecord)
# ──────────────────────────────────────────────────────────

class AdmissionError(QuantumFlowError):
    """A single uploaded file was not accepted. Never aborts other files."""

    def __init__(self, code: str, filename: str, message: str, suggestion: str = ""):
        self.filename = filename
        super().__init__(code=code, message=message, suggestion=suggestion)


class UnreadableImageError(AdmissionError):
    def __init__(self, filename: str, reason: str = ""):
        super().__init__(
            code="IMAGE_UNREADABLE",
            filename=filename,
            message=f"Failed to load image: {filename}" + (f" ({reason})" if reason else ""),
            suggestion="Re-export the image or upload a different file.",
        )


class UnsupportedFormatError(AdmissionError):
    http_status = 415

    def __init__(self, filename: str, content_type: str):
        super().__init__(
            code="IMAGE_FORMAT_UNSUPPORTED",
            filename=filename,
            message=f"File type not allowed: {content_type or 'unknown'} ({filename})",
            suggestion="Allowed types: image/jpeg, image/png, image/webp.",
        )


class FileTooLargeError(AdmissionError):
    http_status = 413

    def __init__(self, filename: str, size_mb: float, limit_mb: float):
        super().__init__(
            code="IMAGE_TOO_LARGE",
            filename=filename,
            message=f"File exceeds {limit_mb:g}MB limit: {filename} ({size_mb:.1f}MB)",
            suggestion="Compress or resize the image before uploading.",
        )


class CapacityExceededError(AdmissionError):
    def __init__(self, filename: str, max_images: int):
        super().__init__(
            code="CAPACITY_EXCEEDED",
            filename=filename,
            message=f"Maximum of {max_images} images reached, {filename} was not added",
            suggestion="Clear some images to upload more.",
        )


# ──────────────────────────────────────────────────────────
# Layout and PDF sink
# ──────────────────────────────────────────────────────────

class LayoutError(QuantumFlowError):
    http_status = 500


class PageTooSmallError(LayoutError):
    def __init__(self, page_width: float, page_height: float, margin: float):
        super().__init__(
            code="LAYOUT_PAGE_TOO_SMALL",
            message=(
                f"Margin {margin:g}pt leaves no printable area on a "
                f"{page_width:g}x{page_height:g}pt page"
            ),
            suggestion="Lower QF_PAGE_MARGIN or choose a larger QF_PAPER_FORMAT.",
        )


class PlacementError(QuantumFlowError):
    def __init__(self, name: str, reason: str):
        super().__init__(
            code="PDF_PLACEMENT_FAILED",
            message=f"Could not place image {name} on its page",
            suggestion="The image data may be corrupt. Remove it and try again.",
            detail=reason[:500] if reason else None,
        )


class FinalizeError(QuantumFlowError):
    http_status = 500

    def __init__(self, reason: str):
        super().__init__(
            code="PDF_FINALIZE_FAILED",
            message="Could not write the final PDF document",
            suggestion="Retry the conversion.",
            detail=reason[:500] if reason else None,
        )


# ──────────────────────────────────────────────────────────
# Runs and sessions
# ──────────────────────────────────────────────────────────

class AssemblyBusyError(QuantumFlowError):
    http_status = 409

    def __init__(self):
        super().__init__(
            code="ASSEMBLY_BUSY",
            message="A conversion is already running",
            suggestion="Wait for the current conversion to finish.",
        )


class AssemblyCancelledError(QuantumFlowError):
    http_status = 409

    def __init__(self, pages_done: int, pages_total: int):
        super().__init__(
            code="ASSEMBLY_CANCELLED",
            message=f"Conversion cancelled after {pages_done}/{pages_total} pages",
        )


class SequenceLockedError(QuantumFlowError):
    http_status = 409

    def __init__(self):
        super().__init__(
            code="SEQUENCE_LOCKED",
            message="Images cannot be changed while a conversion is running",
            suggestion="Wait for the conversion to finish or cancel it.",
        )


class RecordNotFoundError(QuantumFlowError):
    http_status = 404

    def __init__(self, record_id: int):
        super().__init__(
            code="IMAGE_NOT_FOUND",
            message=f"No image with id {record_id}",
        )


class InvalidMoveError(QuantumFlowError):
    def __init__(self, old_index: int, new_index: int, length: int):
        super().__init__(
            code="INVALID_MOVE",
            message=f"Cannot move image {old_index} → {new_index} in a list of {length}",
            suggestion="Indexes are 0-based and must be inside the list.",
        )


class SessionNotFoundError(QuantumFlowError):
    http_status = 404

    def __init__(self, session_id: str):
        super().__init__(
            code="SESSION_NOT_FOUND",
            message=f"Unknown session: {session_id}",
            suggestion="Create a session with POST /v1/sessions.",
        )


class ConfirmationRequiredError(QuantumFlowError):
    def __init__(self, action: str):
        super().__init__(
            code="CONFIRMATION_REQUIRED",
            message=f"{action} needs explicit confirmation",
            suggestion="Repeat the request with confirm=true.",
        )
