"""
QuantumFlow — Conversion sessions.

A session is the single owner of one ImageSequence and the assembler that
converts it. Everything runs on one event loop, so the only rule needed is
one writer at a time: while a conversion runs the sequence is frozen and a
second convert is refused.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable

from quantumflow.errors import (
    AssemblyBusyError,
    ConfirmationRequiredError,
    SessionNotFoundError,
)
from quantumflow.models.image import ConversionSettings, ImageRecord
from quantumflow.models.job import AssemblyState, ConversionResult, ProgressStatus
from quantumflow.pipeline.admission import AdmissionReport, Upload, admit_uploads
from quantumflow.pipeline.assembler import DocumentAssembler
from quantumflow.pipeline.sequence import ImageSequence
from quantumflow.utils.logging import logger


class ConversionSession:
    def __init__(
        self,
        session_id: str,
        assembler: DocumentAssembler,
        max_images: int = 20,
        max_file_bytes: int = 10 * 1024 * 1024,
    ):
        self.session_id = session_id
        self.sequence = ImageSequence(max_images=max_images)
        self.assembler = assembler
        self.max_file_bytes = max_file_bytes
        self.status = ProgressStatus()
        self.last_result: ConversionResult | None = None
        self.created_at = time.time()
        self._cancel: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self.assembler.state == AssemblyState.RUNNING

    async def add_uploads(self, uploads: list[Upload]) -> AdmissionReport:
        return await admit_uploads(self.sequence, uploads, max_file_bytes=self.max_file_bytes)

    def remove(self, record_id: int) -> ImageRecord:
        record = self.sequence.remove(record_id)
        logger.info("[%s] Removed #%d %s", self.session_id, record.id, record.name)
        return record

    def move(self, old_index: int, new_index: int) -> None:
        self.sequence.move(old_index, new_index)
        logger.info("[%s] Moved image %d → %d", self.session_id, old_index, new_index)

    def clear(self, confirm: bool = False) -> int:
        if not confirm:
            raise ConfirmationRequiredError("Removing all images")
        removed = self.sequence.clear()
        self.status = ProgressStatus()
        logger.info("[%s] Cleared %d image(s)", self.session_id, removed)
        return removed

    def _on_progress(self, percent: float, message: str) -> None:
        self.status = ProgressStatus(state=self.assembler.state, percent=percent, message=message)

    async def convert(self, settings: ConversionSettings) -> tuple[ConversionResult, bytes]:
        """Convert the current sequence. Returns the result and the PDF bytes."""
        if self.is_running:
            raise AssemblyBusyError()

        self._cancel = asyncio.Event()
        try:
            with self.sequence.frozen() as snapshot:
                result = await self.assembler.assemble(
                    snapshot,
                    settings,
                    on_progress=self._on_progress,
                    cancel_event=self._cancel,
                )
        finally:
            self._cancel = None

        self.last_result = result
        return result, self.assembler.pdf_bytes

    def cancel(self) -> bool:
        """Ask a running conversion to stop at its next yield point."""
        if self._cancel is None or not self.is_running:
            return False
        self._cancel.set()
        logger.info("[%s] Cancellation requested", self.session_id)
        return True

    def summary(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "max_images": self.sequence.max_images,
            "remaining_capacity": self.sequence.remaining_capacity,
            "locked": self.sequence.is_frozen,
            "images": [r.summary() for r in self.sequence],
            "status": self.status.model_dump(),
            "last_job_id": self.last_result.job_id if self.last_result else None,
        }


class SessionRegistry:
    """In-memory sessions; nothing survives a restart."""

    def __init__(
        self,
        assembler_factory: Callable[[], DocumentAssembler] = DocumentAssembler,
        max_images: int = 20,
        max_file_bytes: int = 10 * 1024 * 1024,
    ):
        self.assembler_factory = assembler_factory
        self.max_images = max_images
        self.max_file_bytes = max_file_bytes
        self._sessions: dict[str, ConversionSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> ConversionSession:
        session_id = uuid.uuid4().hex[:12]
        session = ConversionSession(
            session_id,
            assembler=self.assembler_factory(),
            max_images=self.max_images,
            max_file_bytes=self.max_file_bytes,
        )
        self._sessions[session_id] = session
        logger.info("[%s] Session created", session_id)
        return session

    def get(self, session_id: str) -> ConversionSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def delete(self, session_id: str) -> None:
        session = self.get(session_id)
        if session.is_running:
            raise AssemblyBusyError()
        del self._sessions[session_id]
        logger.info("[%s] Session closed", session_id)
