"""Unit tests for Pydantic data models."""

import pytest
from pydantic import ValidationError

from quantumflow.models.image import (
    ConversionSettings, ImageFormat, ImageRecord, OrientationMode,
)
from quantumflow.models.job import (
    ArtifactMetadata, AssemblyState, ConversionResult, PageRecord,
    ProgressStatus, StepTiming,
)


def _record(**overrides):
    fields = dict(id=1, name="a.jpg", data=b"\xff\xd8", format=ImageFormat.JPEG, pixel_width=10, pixel_height=20)
    fields.update(overrides)
    return ImageRecord(**fields)


class TestImageRecord:
    def test_minimal_valid(self):
        r = _record()
        assert r.size_bytes == 2
        assert r.format == ImageFormat.JPEG

    @pytest.mark.parametrize("field", ["pixel_width", "pixel_height"])
    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_dimensions_rejected(self, field, value):
        with pytest.raises(ValidationError):
            _record(**{field: value})

    def test_frozen(self):
        r = _record()
        with pytest.raises(ValidationError):
            r.name = "b.jpg"

    def test_summary_and_dump_hide_payload(self):
        r = _record()
        assert "data" not in r.summary()
        assert "data" not in r.model_dump()
        assert r.summary()["width"] == 10


class TestConversionSettings:
    def test_defaults(self):
        s = ConversionSettings()
        assert s.quality == 0.8
        assert s.orientation_mode == OrientationMode.AUTO

    @pytest.mark.parametrize("quality", [-0.1, 1.01])
    def test_quality_bounds(self, quality):
        with pytest.raises(ValidationError):
            ConversionSettings(quality=quality)

    def test_orientation_from_string(self):
        assert ConversionSettings(orientation_mode="landscape").orientation_mode == OrientationMode.LANDSCAPE

    def test_unknown_orientation(self):
        with pytest.raises(ValidationError):
            ConversionSettings(orientation_mode="diagonal")

    def test_frozen(self):
        s = ConversionSettings()
        with pytest.raises(ValidationError):
            s.quality = 0.1


class TestConversionResult:
    def test_minimal(self):
        r = ConversionResult(job_id="abc123", state=AssemblyState.COMPLETED, settings=ConversionSettings())
        assert r.pages == []
        assert r.timings == []
        assert r.artifact is None

    def test_full_round_trip_json(self):
        r = ConversionResult(
            job_id="xyz789",
            state=AssemblyState.COMPLETED,
            settings=ConversionSettings(quality=0.5),
            artifact=ArtifactMetadata(filename="out.pdf", size_bytes=5000, pages=1, content_hash="h"),
            pages=[PageRecord(
                index=0, record_id=1, name="a.jpg", format=ImageFormat.JPEG, orientation="portrait",
                page_width=595.28, page_height=841.89, x=10, y=10, width=100, height=200,
            )],
            timings=[StepTiming(step="open", duration_ms=1)],
        )
        again = ConversionResult.model_validate_json(r.model_dump_json())
        assert again == r

    def test_states(self):
        assert AssemblyState.RUNNING == "RUNNING"
        assert AssemblyState.CANCELLED == "CANCELLED"

    def test_progress_defaults(self):
        p = ProgressStatus()
        assert p.state == AssemblyState.IDLE
        assert p.percent == 0.0
