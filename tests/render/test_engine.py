"""
Tests for the rasterization engine and its single fallback.
"""

import asyncio
import io
import logging
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from cardquill.config import ExportConfig
from cardquill.consistency import ConsistencyManager
from cardquill.exceptions import RasterizationFailed
from cardquill.markup import serialize_fragment
from cardquill.models import ExportAttempt, ExportJob
from cardquill.render.engine import (
    InvalidRenderResult,
    PillowBackend,
    RasterBackend,
    RasterizationEngine,
)
from cardquill.surface import create_preview_surface

SMALL_CARD = '<div style="width: 50px; height: 40px; background: red; font-size: 12px">Hi</div>'


def _png(width=4, height=4):
    output = io.BytesIO()
    Image.new("RGBA", (width, height), (255, 0, 0, 255)).save(output, format="PNG")
    return output.getvalue()


def _noisy_png(size=64):
    output = io.BytesIO()
    Image.effect_noise((size, size), 64).convert("RGBA").save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def job():
    return ExportJob(50, 40, "small.png")


@pytest.fixture
def export_surface(job):
    preview = create_preview_surface(SMALL_CARD, 50, 40)
    return ConsistencyManager().sync(preview, job)


def _mock_backend(*results):
    backend = Mock()
    backend.render = AsyncMock(side_effect=list(results))
    return backend


class TestModes:
    """Test cases for attempt planning."""

    def test_primary_then_fallback(self, job):
        engine = RasterizationEngine(backend=_mock_backend(), config=ExportConfig(image_timeout=3.0))

        primary, fallback = engine.modes(job)

        assert primary.attempt is ExportAttempt.PRIMARY
        assert primary.scale_factor == 2.0
        assert not primary.image_policy.allow_taint
        assert primary.image_policy.timeout == 3.0
        assert fallback.attempt is ExportAttempt.FALLBACK
        assert fallback.scale_factor == 1.0
        assert fallback.image_policy.allow_taint

    def test_pillow_backend_satisfies_protocol(self):
        assert isinstance(PillowBackend(), RasterBackend)


class TestPillowBackendRender:
    """Test cases for rendering through the default backend."""

    @pytest.mark.asyncio
    async def test_primary_render_at_device_scale(self, job, export_surface):
        engine = RasterizationEngine(config=ExportConfig(min_output_bytes=1))

        result = await engine.rasterize(export_surface, job)

        assert result.attempt is ExportAttempt.PRIMARY
        assert (result.width, result.height) == (100, 80)
        assert result.media_type == "image/png"
        with Image.open(io.BytesIO(result.data)) as image:
            assert image.convert("RGBA").getpixel((10, 70)) == (255, 0, 0, 255)

    @pytest.mark.asyncio
    async def test_surface_is_not_mutated(self, job, export_surface):
        engine = RasterizationEngine(config=ExportConfig(min_output_bytes=1))
        before = serialize_fragment(export_surface.root)
        style_before = export_surface.root.get("style")

        await engine.rasterize(export_surface, job)

        assert serialize_fragment(export_surface.root) == before
        assert export_surface.root.get("style") == style_before

    @pytest.mark.asyncio
    async def test_job_background_color(self, export_surface):
        engine = RasterizationEngine(config=ExportConfig(min_output_bytes=1))
        job = ExportJob(60, 40, "wide.png", scale_factor=1.0, background_color="#0000ff")

        result = await engine.rasterize(export_surface, job)

        with Image.open(io.BytesIO(result.data)) as image:
            assert image.convert("RGBA").getpixel((55, 20)) == (0, 0, 255, 255)


class TestFallback:
    """Test cases for the single fallback attempt."""

    @pytest.mark.asyncio
    async def test_fallback_after_primary_failure(self, job, export_surface, caplog):
        backend = _mock_backend(RuntimeError("canvas tainted"), _png())
        engine = RasterizationEngine(backend=backend, config=ExportConfig(min_output_bytes=1))

        with caplog.at_level(logging.WARNING, logger="cardquill"):
            result = await engine.rasterize(export_surface, job)

        assert result.attempt is ExportAttempt.FALLBACK
        assert backend.render.await_count == 2
        root, fallback_job, mode = backend.render.await_args_list[1].args
        assert root is export_surface.root
        assert fallback_job.attempt is ExportAttempt.FALLBACK
        assert fallback_job.scale_factor == 1.0
        assert mode.scale_factor == 1.0
        assert mode.image_policy.allow_taint
        assert "Primary render failed" in caplog.text

    @pytest.mark.asyncio
    async def test_no_fallback_after_primary_success(self, job, export_surface):
        backend = _mock_backend(_png())
        engine = RasterizationEngine(backend=backend, config=ExportConfig(min_output_bytes=1))

        result = await engine.rasterize(export_surface, job)

        assert result.attempt is ExportAttempt.PRIMARY
        assert backend.render.await_count == 1

    @pytest.mark.asyncio
    async def test_both_attempts_fail(self, job, export_surface, caplog):
        backend = _mock_backend(RuntimeError("first"), RuntimeError("second"), _png())
        engine = RasterizationEngine(backend=backend, config=ExportConfig(min_output_bytes=1))

        with caplog.at_level(logging.ERROR, logger="cardquill"):
            with pytest.raises(RasterizationFailed) as exc_info:
                await engine.rasterize(export_surface, job)

        assert backend.render.await_count == 2
        assert exc_info.value.attempts == ["primary: first", "fallback: second"]
        assert "Rasterization failed after fallback" in caplog.text

    @pytest.mark.asyncio
    async def test_undersized_output_triggers_fallback(self, job, export_surface):
        backend = _mock_backend(_png(1, 1), _noisy_png())
        engine = RasterizationEngine(backend=backend, config=ExportConfig(min_output_bytes=1000))

        result = await engine.rasterize(export_surface, job)

        assert result.attempt is ExportAttempt.FALLBACK
        assert (result.width, result.height) == (64, 64)

    @pytest.mark.asyncio
    async def test_non_image_output_triggers_fallback(self, job, export_surface):
        backend = _mock_backend(b"x" * 2000, _png())
        engine = RasterizationEngine(backend=backend, config=ExportConfig(min_output_bytes=1))

        result = await engine.rasterize(export_surface, job)

        assert result.attempt is ExportAttempt.FALLBACK


class TestValidate:
    """Test cases for output validation."""

    def test_validate(self):
        engine = RasterizationEngine(backend=_mock_backend(), config=ExportConfig(min_output_bytes=1))

        assert engine.validate(_png(3, 5)) == (3, 5)

    @pytest.mark.parametrize("data", [b"", None, b"\x89PNG garbage"])
    def test_invalid_output(self, data):
        engine = RasterizationEngine(backend=_mock_backend(), config=ExportConfig(min_output_bytes=1))

        with pytest.raises(InvalidRenderResult):
            engine.validate(data)

    def test_default_minimum_size(self):
        engine = RasterizationEngine(backend=_mock_backend())

        with pytest.raises(InvalidRenderResult):
            engine.validate(_png(1, 1))

    def test_default_minimum_is_raw_byte_count(self):
        engine = RasterizationEngine(backend=_mock_backend())
        data = _png(2, 3)

        assert engine.validate(data.ljust(750, b"\0")) == (2, 3)
        with pytest.raises(InvalidRenderResult):
            engine.validate(data.ljust(749, b"\0"))


class TestSerialization:
    """Test cases for per-surface export locks."""

    def test_lock_identity(self, export_surface):
        engine = RasterizationEngine(backend=_mock_backend())
        other = create_preview_surface("<p>x</p>", 10, 10)

        assert engine.lock_for(export_surface) is engine.lock_for(export_surface)
        assert engine.lock_for(export_surface) is not engine.lock_for(other)

    @pytest.mark.asyncio
    async def test_overlapping_rasterizations_are_serialized(self, job, export_surface):
        state = {"active": 0, "peak": 0}
        data = _png()

        class RecordingBackend:
            async def render(self, root, job, mode):
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
                await asyncio.sleep(0.02)
                state["active"] -= 1
                return data

        engine = RasterizationEngine(backend=RecordingBackend(), config=ExportConfig(min_output_bytes=1))

        results = await asyncio.gather(*(engine.rasterize(export_surface, job) for _ in range(3)))

        assert len(results) == 3
        assert state["peak"] == 1
