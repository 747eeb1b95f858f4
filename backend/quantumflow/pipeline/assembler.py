"""
QuantumFlow — Document assembly driver.

Runs one conversion as a state machine:

  IDLE → RUNNING → COMPLETED | FAILED | CANCELLED

For every image, in sequence order: orientation → page size → add page →
fit and centre → place image → report progress → yield to the event loop.
The run is fail-fast: the first page or placement error stops it, the sink
is discarded and no bytes are handed out. A terminal state can start a new
run; a RUNNING assembler refuses a second one.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
import uuid
from typing import Callable, Iterable

from quantumflow.errors import AssemblyBusyError, AssemblyCancelledError
from quantumflow.models.image import ConversionSettings, ImageRecord
from quantumflow.models.job import (
    ArtifactMetadata,
    AssemblyState,
    ConversionResult,
    PageRecord,
    StepTiming,
)
from quantumflow.pdf.layout import compute_page_geometry
from quantumflow.pdf.sink import PdfSink, PyMuPDFSink
from quantumflow.utils.logging import tagged

ProgressCallback = Callable[[float, str], None]

# Progress bands (percent): opening and finalising keep some headroom so the
# page loop never shows 0 or 100.
PROGRESS_INIT = 5.0
PROGRESS_PAGES_END = 90.0
PROGRESS_FINALIZE = 95.0
PROGRESS_DONE = 100.0


def page_progress(index: int, total: int) -> float:
    """Percent complete after page ``index`` (0-based) of ``total``."""
    return PROGRESS_INIT + (index + 1) / total * (PROGRESS_PAGES_END - PROGRESS_INIT)


def output_filename(prefix: str, now: float | None = None) -> str:
    """Per-run download name, e.g. ``QuantumFlow_document_1760000000000.pdf``."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{prefix}_document_{millis}.pdf"


class DocumentAssembler:
    """
    Turns an ordered run of ImageRecords into one PDF, one page per image.

    The records are copied into a tuple when the run starts, so later changes
    to the caller's list cannot shift pages under a running loop.
    """

    def __init__(
        self,
        sink_factory: Callable[[], PdfSink] = PyMuPDFSink,
        paper: str = "A4",
        margin: float = 10.0,
        output_prefix: str = "QuantumFlow",
    ):
        self.sink_factory = sink_factory
        self.paper = paper
        self.margin = margin
        self.output_prefix = output_prefix
        self.state = AssemblyState.IDLE
        self.job_id: str | None = None
        self.timings: list[StepTiming] = []
        self.pdf_bytes: bytes = b""

    def _record_step(self, log, name: str, start: float, status: str = "ok", detail: str = ""):
        ms = int((time.perf_counter() - start) * 1000)
        self.timings.append(StepTiming(step=name, duration_ms=ms, status=status, detail=detail))
        symbol = "✓" if status == "ok" else "✗"
        log.info("  %s %s — %dms %s", symbol, name, ms, detail)

    @staticmethod
    def _report(on_progress: ProgressCallback | None, percent: float, message: str) -> None:
        if on_progress:
            on_progress(percent, message)

    async def assemble(
        self,
        records: Iterable[ImageRecord],
        settings: ConversionSettings,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ConversionResult:
        """Run one conversion. The PDF is left in ``self.pdf_bytes``."""
        if self.state == AssemblyState.RUNNING:
            raise AssemblyBusyError()

        snapshot = tuple(records)
        total = len(snapshot)
        self.job_id = uuid.uuid4().hex[:12]
        self.state = AssemblyState.RUNNING
        self.timings = []
        self.pdf_bytes = b""
        pages: list[PageRecord] = []
        log = tagged(self.job_id)

        log.info(
            "Assembly starting — %d image(s), %s, margin=%gpt, quality=%.2f, orientation=%s",
            total, self.paper, self.margin, settings.quality, settings.orientation_mode.value,
        )
        run_start = time.perf_counter()
        sink = self.sink_factory()
        step = "open"
        t = time.perf_counter()

        try:
            sink.open()
            self._record_step(log, "open", t)
            self._report(on_progress, PROGRESS_INIT, "Initializing PDF...")

            for i, record in enumerate(snapshot):
                step = f"page {i + 1}"
                t = time.perf_counter()
                geometry = compute_page_geometry(
                    record.pixel_width,
                    record.pixel_height,
                    settings.orientation_mode,
                    paper=self.paper,
                    margin=self.margin,
                )
                sink.add_page(geometry.page_width, geometry.page_height, geometry.orientation)
                sink.place_image(
                    record.data,
                    record.format,
                    geometry.placement,
                    settings.quality,
                    label=record.name,
                )
                placed = geometry.placement
                pages.append(
                    PageRecord(
                        index=i,
                        record_id=record.id,
                        name=record.name,
                        format=record.format,
                        orientation=geometry.orientation,
                        page_width=geometry.page_width,
                        page_height=geometry.page_height,
                        x=placed.x,
                        y=placed.y,
                        width=placed.width,
                        height=placed.height,
                    )
                )
                self._record_step(
                    log, step, t,
                    detail=f"{record.name} {geometry.orientation.value} {placed.width:.0f}x{placed.height:.0f}pt",
                )
                self._report(
                    on_progress, page_progress(i, total), f"Added image {i + 1} of {total}"
                )

                await asyncio.sleep(0)
                if cancel_event is not None and cancel_event.is_set():
                    raise AssemblyCancelledError(i + 1, total)

            step = "finalize"
            t = time.perf_counter()
            self._report(on_progress, PROGRESS_FINALIZE, "Finalizing and downloading...")
            pdf_bytes = sink.finalize()
            self._record_step(log, "finalize", t, detail=f"{len(pdf_bytes)} bytes")

        except AssemblyCancelledError as exc:
            sink.discard()
            self.state = AssemblyState.CANCELLED
            self._record_step(log, step, t, "cancelled", exc.message)
            self._report(on_progress, PROGRESS_DONE, "Conversion cancelled")
            raise
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled (client gone, shutdown).
            sink.discard()
            self.state = AssemblyState.CANCELLED
            self._record_step(log, step, t, "cancelled", "task cancelled")
            self._report(on_progress, PROGRESS_DONE, "Conversion cancelled")
            raise
        except Exception as exc:
            sink.discard()
            self.state = AssemblyState.FAILED
            self._record_step(log, step, t, "failed", str(exc))
            log.error("Assembly failed at %s — nothing was delivered", step)
            self._report(on_progress, PROGRESS_DONE, f"Conversion failed: {exc}")
            raise

        self.pdf_bytes = pdf_bytes
        self.state = AssemblyState.COMPLETED
        filename = output_filename(self.output_prefix)
        total_ms = int((time.perf_counter() - run_start) * 1000)
        log.info("Assembly complete — %s, %d pages, %d bytes, %dms", filename, total, len(pdf_bytes), total_ms)
        self._report(on_progress, PROGRESS_DONE, "Conversion complete")

        return ConversionResult(
            job_id=self.job_id,
            state=self.state,
            settings=settings,
            artifact=ArtifactMetadata(
                filename=filename,
                size_bytes=len(pdf_bytes),
                pages=total,
                content_hash=hashlib.sha256(pdf_bytes).hexdigest(),
            ),
            pages=pages,
            timings=self.timings,
        )
