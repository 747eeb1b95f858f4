"""Unit tests for upload admission."""

import asyncio
import struct

import pytest

from quantumflow.pipeline import admission

from quantumflow.errors import (
    CapacityExceededError,
    FileTooLargeError,
    SequenceLockedError,
    UnreadableImageError,
    UnsupportedFormatError,
)
from quantumflow.models.image import ImageFormat
from quantumflow.pipeline.admission import Upload, admit_uploads, load_image
from quantumflow.pipeline.sequence import ImageSequence


class TestLoadImage:
    def test_jpeg(self, make_image):
        decoded = load_image("photo.jpg", make_image(64, 32), "image/jpeg")
        assert decoded.format == ImageFormat.JPEG
        assert (decoded.width, decoded.height) == (64, 32)

    def test_png(self, make_image):
        decoded = load_image("shot.png", make_image(10, 30, "PNG"), "image/png")
        assert decoded.format == ImageFormat.PNG
        assert (decoded.width, decoded.height) == (10, 30)

    def test_webp_becomes_png(self, make_image):
        decoded = load_image("pic.webp", make_image(40, 20, "WEBP"), "image/webp")
        assert decoded.format == ImageFormat.PNG
        assert decoded.data.startswith(b"\x89PNG")
        assert (decoded.width, decoded.height) == (40, 20)

    def test_missing_content_type_uses_detected_format(self, make_image):
        decoded = load_image("blob", make_image(5, 5, "PNG"), None)
        assert decoded.format == ImageFormat.PNG

    def test_format_tag_follows_content(self, make_image):
        decoded = load_image("misnamed.png", make_image(5, 5), "image/png")
        assert decoded.format == ImageFormat.JPEG

    def test_garbage_is_unreadable(self):
        with pytest.raises(UnreadableImageError) as exc:
            load_image("broken.jpg", b"not an image", "image/jpeg")
        assert exc.value.filename == "broken.jpg"

    def test_disallowed_content_type(self, make_image):
        with pytest.raises(UnsupportedFormatError):
            load_image("notes.txt", b"hello", "text/plain")

    def test_allowed_type_but_unsupported_content(self, make_image):
        with pytest.raises(UnsupportedFormatError):
            load_image("anim.gif", make_image(5, 5, "GIF"), "application/octet-stream")

    def test_too_large(self, make_image):
        with pytest.raises(FileTooLargeError):
            load_image("big.jpg", make_image(50, 50), "image/jpeg", max_file_bytes=10)


@pytest.mark.asyncio
class TestAdmitUploads:
    async def test_all_settled(self, make_image):
        seq = ImageSequence()
        report = await admit_uploads(seq, [
            Upload("one.jpg", make_image(20, 10), "image/jpeg"),
            Upload("bad.png", b"\x89PNG broken", "image/png"),
            Upload("two.png", make_image(10, 20, "PNG"), "image/png"),
        ])
        assert [r.name for r in report.accepted] == ["one.jpg", "two.png"]
        assert [e.filename for e in report.rejected] == ["bad.png"]
        assert [r.name for r in seq] == ["one.jpg", "two.png"]

    async def test_capacity(self, make_image):
        seq = ImageSequence(max_images=2)
        seq.append("existing.jpg", make_image(5, 5), ImageFormat.JPEG, 5, 5)
        report = await admit_uploads(seq, [
            Upload("a.jpg", make_image(5, 5), "image/jpeg"),
            Upload("b.jpg", make_image(5, 5), "image/jpeg"),
            Upload("c.jpg", make_image(5, 5), "image/jpeg"),
        ])
        assert [r.name for r in report.accepted] == ["a.jpg"]
        assert all(isinstance(e, CapacityExceededError) for e in report.rejected)
        assert len(seq) == 2

    async def test_overlapping_batches_respect_capacity(self, make_image):
        seq = ImageSequence(max_images=2)
        batch = [
            Upload("a.jpg", make_image(5, 5), "image/jpeg"),
            Upload("b.jpg", make_image(5, 5), "image/jpeg"),
        ]
        first, second = await asyncio.gather(admit_uploads(seq, batch), admit_uploads(seq, batch))

        assert len(seq) == 2
        assert len(first.accepted) + len(second.accepted) == 2
        squeezed = first.rejected + second.rejected
        assert len(squeezed) == 2
        assert all(isinstance(e, CapacityExceededError) for e in squeezed)

    async def test_unexpected_decoder_error_rejects_only_that_file(self, make_image, monkeypatch):
        real_load = admission.load_image

        def flaky_load(filename, *args, **kwargs):
            if filename == "odd.png":
                raise struct.error("unpack requires a buffer of 4 bytes")
            return real_load(filename, *args, **kwargs)

        monkeypatch.setattr(admission, "load_image", flaky_load)
        seq = ImageSequence()
        report = await admit_uploads(seq, [
            Upload("one.jpg", make_image(20, 10), "image/jpeg"),
            Upload("odd.png", make_image(10, 10, "PNG"), "image/png"),
            Upload("two.jpg", make_image(10, 20), "image/jpeg"),
        ])

        assert [r.name for r in seq] == ["one.jpg", "two.jpg"]
        assert len(report.rejected) == 1
        assert isinstance(report.rejected[0], UnreadableImageError)
        assert report.rejected[0].filename == "odd.png"

    async def test_frozen_sequence(self, make_image):
        seq = ImageSequence()
        seq.freeze()
        with pytest.raises(SequenceLockedError):
            await admit_uploads(seq, [Upload("a.jpg", make_image(5, 5), "image/jpeg")])

    async def test_report_to_dict(self, make_image):
        seq = ImageSequence()
        report = await admit_uploads(seq, [
            Upload("a.jpg", make_image(5, 5), "image/jpeg"),
            Upload("x.txt", b"hi", "text/plain"),
        ])
        d = report.to_dict()
        assert d["accepted"][0]["name"] == "a.jpg"
        assert "data" not in d["accepted"][0]
        assert d["rejected"][0]["error_code"] == "IMAGE_FORMAT_UNSUPPORTED"
        assert d["rejected"][0]["filename"] == "x.txt"
