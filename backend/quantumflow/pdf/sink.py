"""
QuantumFlow — PDF sink.

The assembler talks to the document writer only through PdfSink:
open → (add_page → place_image)* → finalize, or discard on failure.
PyMuPDFSink is the production writer.

JPEG payloads are re-encoded with Pillow at the run's quality; PNG goes in
unchanged (lossless, quality has no meaning there).
"""

from __future__ import annotations

import io
from typing import Protocol

from quantumflow.errors import FinalizeError, PlacementError
from quantumflow.models.image import ImageFormat, PageOrientation
from quantumflow.pdf.layout import Placement
from quantumflow.utils.logging import logger


class PdfSink(Protocol):
    @property
    def page_count(self) -> int: ...

    def open(self) -> None: ...

    def add_page(self, width: float, height: float, orientation: PageOrientation) -> None: ...

    def place_image(
        self,
        payload: bytes,
        fmt: ImageFormat,
        placement: Placement,
        quality: float,
        label: str = "image",
    ) -> None: ...

    def finalize(self) -> bytes: ...

    def discard(self) -> None: ...


def jpeg_quality(quality: float) -> int:
    """Map a 0..1 fidelity onto Pillow's 1..100 JPEG quality scale."""
    return min(100, max(1, round(quality * 100)))


def encode_for_pdf(payload: bytes, fmt: ImageFormat, quality: float) -> bytes:
    """Decode the payload fully (surfacing corrupt data) and return the bytes to embed."""
    from PIL import Image

    with Image.open(io.BytesIO(payload)) as img:
        img.load()
        if fmt != ImageFormat.JPEG:
            return payload
        out = io.BytesIO()
        if img.mode in ("RGB", "L", "CMYK"):
            img.save(out, format="JPEG", quality=jpeg_quality(quality))
        else:
            with img.convert("RGB") as rgb:
                rgb.save(out, format="JPEG", quality=jpeg_quality(quality))
        return out.getvalue()


def empty_pdf() -> bytes:
    """A valid PDF with zero pages. PyMuPDF refuses to save those, pypdf does not."""
    from pypdf import PdfWriter

    buf = io.BytesIO()
    PdfWriter().write(buf)
    return buf.getvalue()


class PyMuPDFSink:
    """Writes pages with pymupdf. One instance per conversion run."""

    def __init__(self, garbage: int = 3, deflate: bool = True):
        self.garbage = garbage
        self.deflate = deflate
        self._doc = None
        self._page = None

    @property
    def page_count(self) -> int:
        return len(self._doc) if self._doc is not None else 0

    def open(self) -> None:
        try:
            import fitz
        except ImportError:
            raise RuntimeError("pymupdf is required for image-to-PDF conversion. pip install pymupdf")

        # fitz.open() with no arguments starts without any page.
        self._doc = fitz.open()
        self._page = None

    def add_page(self, width: float, height: float, orientation: PageOrientation) -> None:
        self._page = self._doc.new_page(width=width, height=height)

    def place_image(
        self,
        payload: bytes,
        fmt: ImageFormat,
        placement: Placement,
        quality: float,
        label: str = "image",
    ) -> None:
        import fitz

        if self._page is None:
            raise PlacementError(label, "no page to place the image on")
        try:
            stream = encode_for_pdf(payload, fmt, quality)
            rect = fitz.Rect(placement.x, placement.y, placement.x1, placement.y1)
            self._page.insert_image(rect, stream=stream, keep_proportion=False)
        except Exception as exc:
            raise PlacementError(label, str(exc)) from exc
        logger.debug("  placed %s (%s, %d bytes embedded)", label, fmt.value, len(stream))

    def finalize(self) -> bytes:
        if self._doc is None:
            raise FinalizeError("document was never opened")
        try:
            if self.page_count == 0:
                pdf_bytes = empty_pdf()
            else:
                pdf_bytes = self._doc.tobytes(garbage=self.garbage, deflate=self.deflate)
        except Exception as exc:
            raise FinalizeError(str(exc)) from exc
        finally:
            self.discard()
        return pdf_bytes

    def discard(self) -> None:
        if self._doc is not None:
            self._doc.close()
        self._doc = None
        self._page = None
