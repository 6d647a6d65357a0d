"""
Rasterization engine.

A rasterization runs in at most two attempts: the primary attempt at the
job's scale factor with CORS-respecting image loading, then a single
fallback at scale 1 with permissive image loading. A failed fallback is
terminal.
"""

from __future__ import annotations

import asyncio
import io
import logging
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Protocol, runtime_checkable

import httpx
from lxml import etree
from PIL import Image, UnidentifiedImageError

from ..config import ExportConfig
from ..exceptions import RasterizationFailed
from ..markup import clone_tree
from ..models import ExportAttempt, ExportJob, RasterResult
from ..styles.inline_style import InlineStyle
from .fonts import FontResolver
from .geometry import Size
from .images import ImageLoader, ImagePolicy
from .layout import BoxKind, LayoutEngine
from .painter import PillowPainter, encode_png

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderMode:
    """Parameters of one render attempt."""

    attempt: ExportAttempt
    scale_factor: float
    image_policy: ImagePolicy


@runtime_checkable
class RasterBackend(Protocol):
    """Turns a markup tree into encoded image bytes."""

    async def render(self, root: etree._Element, job: ExportJob, mode: RenderMode) -> bytes:
        ...


class InvalidRenderResult(Exception):
    """A backend returned output that cannot be a correct image."""


class PillowBackend:
    """
    Default backend: lays out the tree and paints it with Pillow.

    Args:
        config: Export settings (fonts, fallback font stack, background)
        font_resolver: Shared font lookup
        base_dir: Directory relative image paths resolve against
        transport: Optional httpx transport for remote images
    """

    def __init__(
        self,
        config: Optional[ExportConfig] = None,
        font_resolver: Optional[FontResolver] = None,
        base_dir: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ExportConfig()
        self.fonts = font_resolver or FontResolver(self.config.font_dirs)
        self.layout_engine = LayoutEngine(self.fonts)
        self.painter = PillowPainter(self.fonts)
        self.base_dir = base_dir
        self.transport = transport

    async def render(self, root: etree._Element, job: ExportJob, mode: RenderMode) -> bytes:
        clone = clone_tree(root)
        style = InlineStyle(clone)
        if not style.get("font-family"):
            style.set("font-family", self.config.fallback_font_stack)

        layout = self.layout_engine.layout(clone, job.target_width_px, job.target_height_px)
        sources = [box.image_src for box in layout.iter() if box.kind is BoxKind.IMAGE and box.image_src]
        loader = ImageLoader(mode.image_policy, base_dir=self.base_dir, transport=self.transport)
        images = await loader.load_all(sources)

        background = job.background_color or self.config.background_color
        size = Size(job.target_width_px, job.target_height_px)
        return await asyncio.to_thread(self._paint_and_encode, layout, size, mode.scale_factor, background, images)

    def _paint_and_encode(self, layout, size: Size, scale: float, background: str, images) -> bytes:
        return encode_png(self.painter.paint(layout, size, scale, background, images))


class RasterizationEngine:
    """
    Rasterize export surfaces with a single fallback.

    Rasterizations of the same surface are serialized; overlapping requests
    wait for the running one.

    Args:
        backend: Render backend (defaults to ``PillowBackend``)
        config: Export settings
    """

    def __init__(self, backend: Optional[RasterBackend] = None, config: Optional[ExportConfig] = None):
        self.config = config or ExportConfig()
        self.backend = backend or PillowBackend(self.config)
        self._locks: "weakref.WeakKeyDictionary[Any, asyncio.Lock]" = weakref.WeakKeyDictionary()

    def lock_for(self, key: Any) -> asyncio.Lock:
        """Per-object lock used to serialize exports."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def modes(self, job: ExportJob) -> List[RenderMode]:
        """The primary and fallback modes for a job, in order."""
        timeout = self.config.image_timeout
        return [
            RenderMode(ExportAttempt.PRIMARY, job.scale_factor, ImagePolicy.strict(timeout)),
            RenderMode(ExportAttempt.FALLBACK, self.config.fallback_scale_factor, ImagePolicy.permissive(timeout)),
        ]

    async def rasterize(self, surface, job: ExportJob) -> RasterResult:
        """
        Rasterize an export surface.

        Args:
            surface: Export surface (its root is never mutated)
            job: Export job

        Returns:
            Encoded result of the first successful attempt

        Raises:
            RasterizationFailed: If the primary and the fallback attempt both failed
        """
        async with self.lock_for(surface):
            failures: List[str] = []
            last_error: Optional[BaseException] = None
            for mode in self.modes(job):
                attempt_job = job.for_attempt(mode.attempt, mode.scale_factor)
                try:
                    data = await self.backend.render(surface.root, attempt_job, mode)
                    width, height = self.validate(data)
                except Exception as exc:
                    last_error = exc
                    failures.append(f"{mode.attempt.value}: {exc}")
                    if mode.attempt is ExportAttempt.PRIMARY:
                        logger.warning(f"Primary render failed ({exc}), retrying at scale {self.config.fallback_scale_factor}")
                    continue

                logger.debug(f"{mode.attempt.value} render produced {width}x{height} ({len(data)} bytes)")
                return RasterResult(data=data, width=width, height=height, attempt=mode.attempt)

            logger.error(f"Rasterization failed after fallback: {last_error}")
            raise RasterizationFailed(
                "Rasterization failed",
                attempts=failures,
                details=str(last_error) if last_error else None,
            ) from last_error

    def validate(self, data: bytes) -> tuple:
        """
        Reject empty or undersized output.

        Returns:
            ``(width, height)`` of the encoded image

        Raises:
            InvalidRenderResult: For missing, tiny or zero-sized images
        """
        if not data or len(data) < self.config.min_output_bytes:
            raise InvalidRenderResult(f"output too small ({len(data or b'')} bytes)")
        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidRenderResult(f"output is not an image: {exc}") from exc
        if width <= 0 or height <= 0:
            raise InvalidRenderResult(f"output has zero dimension ({width}x{height})")
        return width, height
