"""Shared test configuration and fixtures for the QuantumFlow test suite."""

import io
import sys
from pathlib import Path

import pytest

# Add backend to Python path so imports work without an install
backend_dir = str(Path(__file__).parent.parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from quantumflow.errors import FinalizeError, PlacementError  # noqa: E402


def _make_image(width: int, height: int, fmt: str = "JPEG", color=(200, 40, 40)) -> bytes:
    from PIL import Image

    img = Image.new("RGB", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class RecordingSink:
    """In-memory PdfSink that records every instruction it receives."""

    instances: list["RecordingSink"] = []

    def __init__(self, fail_on_page: int | None = None, fail_finalize: bool = False):
        self.fail_on_page = fail_on_page
        self.fail_finalize = fail_finalize
        self.opened = False
        self.discarded = False
        self.pages: list[dict] = []
        RecordingSink.instances.append(self)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def open(self) -> None:
        self.opened = True

    def add_page(self, width, height, orientation) -> None:
        self.pages.append(
            {"width": width, "height": height, "orientation": orientation, "images": []}
        )

    def place_image(self, payload, fmt, placement, quality, label="image") -> None:
        if self.fail_on_page is not None and len(self.pages) - 1 == self.fail_on_page:
            raise PlacementError(label, "corrupt payload")
        self.pages[-1]["images"].append(
            {"label": label, "format": fmt, "placement": placement, "quality": quality}
        )

    def finalize(self) -> bytes:
        if self.fail_finalize:
            raise FinalizeError("disk full")
        return b"%PDF-fake " + str(len(self.pages)).encode()

    def discard(self) -> None:
        self.discarded = True


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def recording_sink():
    """Factory for RecordingSink; the created sinks are collected in ``.instances``."""
    RecordingSink.instances = []
    return RecordingSink


@pytest.fixture
def records(make_image):
    """Three records: landscape JPEG, portrait PNG, square JPEG."""
    from quantumflow.models.image import ImageFormat
    from quantumflow.pipeline.sequence import ImageSequence

    seq = ImageSequence()
    seq.append("wide.jpg", make_image(200, 100), ImageFormat.JPEG, 200, 100)
    seq.append("tall.png", make_image(100, 200, "PNG"), ImageFormat.PNG, 100, 200)
    seq.append("square.jpg", make_image(120, 120), ImageFormat.JPEG, 120, 120)
    return seq.snapshot()
