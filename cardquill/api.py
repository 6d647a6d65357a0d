"""
High-level API for CardQuill.

Main entry point for applications: load a generated fragment, edit its text
in place and export it as an image.

Example:
    >>> from cardquill import CardEditor, DownloadOptions
    >>>
    >>> editor = CardEditor('<h1 style="color: #333">Original Title</h1>', 900, 1200)
    >>> unit = editor.units[0]
    >>> editor.edit(unit.id, text="New Title", color="#ff0000")
    >>> outcome = await editor.export(DownloadOptions(900, 1200, "cover.png"))
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Union

from lxml import etree

from .config import CardQuillConfig, ExportConfig
from .consistency import ConsistencyManager
from .exceptions import RasterizationFailed
from .extractor import TextModelExtractor
from .models import CommitResult, EditSession, ExportJob, ExportOutcome, TextUnit
from .overlay import OverlaySession
from .render.download import DownloadSink, FileDownloadSink
from .render.engine import RasterizationEngine
from .surface import Surface, create_preview_surface

logger = logging.getLogger(__name__)

EXPORT_FAILED_MESSAGE = "export failed, please retry"
EXPORT_SUCCEEDED_MESSAGE = "export succeeded"

_LABEL_UNSAFE_RE = re.compile(r"[\s/\\]+")

__all__ = [
    "CardEditor",
    "DownloadOptions",
    "download_as_image",
    "generate_filename",
]


@dataclass(frozen=True)
class DownloadOptions:
    """
    Parameters of one image download.

    Attributes:
        width_px: Target width in CSS px
        height_px: Target height in CSS px
        filename: Name of the delivered file
        scale_factor: Device scale of the primary render
        background_color: Canvas color (None for the configured default)
    """

    width_px: int
    height_px: int
    filename: str
    scale_factor: float = 2.0
    background_color: Optional[str] = None

    def to_job(self) -> ExportJob:
        return ExportJob(
            target_width_px=int(self.width_px),
            target_height_px=int(self.height_px),
            filename=self.filename,
            scale_factor=self.scale_factor,
            background_color=self.background_color,
        )


def generate_filename(label: str, width: int, height: int, now: Optional[datetime] = None) -> str:
    """
    Build a download filename.

    Args:
        label: Size label (whitespace and slashes become ``_``)
        width: Width in px
        height: Height in px
        now: Timestamp to embed (defaults to the current time)

    Returns:
        ``{label}_{width}x{height}_{timestamp}.png`` with an ISO-8601
        timestamp stripped of colons

    Examples:
        >>> generate_filename("xiaohongshu cover", 900, 1200, datetime(2024, 5, 1, 9, 30, 15))
        'xiaohongshu_cover_900x1200_2024-05-01T093015.png'
    """
    now = now or datetime.now()
    safe_label = _LABEL_UNSAFE_RE.sub("_", label.strip()) or "card"
    timestamp = now.replace(microsecond=0).isoformat().replace(":", "")
    return f"{safe_label}_{width}x{height}_{timestamp}.png"


async def download_as_image(
    preview: Surface,
    options: DownloadOptions,
    engine: Optional[RasterizationEngine] = None,
    manager: Optional[ConsistencyManager] = None,
    sink: Optional[DownloadSink] = None,
    config: Optional[ExportConfig] = None,
    timeout: Optional[float] = None,
) -> ExportOutcome:
    """
    Export a preview surface as an image file.

    Prepares a clean export surface, rasterizes it (with a single fallback)
    and hands the encoded bytes to the download sink. Exports of the same
    preview through the same engine are queued. Nothing is delivered unless
    the encode succeeded.

    Args:
        preview: Preview surface (overlay must be detached)
        options: Download parameters
        engine: Rasterization engine (shared to serialize exports)
        manager: Consistency manager
        sink: Download sink (defaults to ``FileDownloadSink`` in the download dir)
        config: Export settings
        timeout: Seconds the caller is willing to wait; the export itself
            keeps running past it

    Returns:
        ExportOutcome with the generic failure message on any failure
    """
    config = config or ExportConfig()
    engine = engine or RasterizationEngine(config=config)
    manager = manager or ConsistencyManager(config)
    sink = sink or FileDownloadSink(config.download_dir)

    try:
        job = options.to_job()
    except ValueError as exc:
        logger.error(f"Invalid export request: {exc}")
        return ExportOutcome(success=False, message=EXPORT_FAILED_MESSAGE)

    export = _run_export(preview, job, engine, manager, sink)
    if timeout is None:
        return await export

    task = asyncio.ensure_future(export)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Stopped waiting for export of {job.filename} after {timeout}s")
        return ExportOutcome(success=False, message=EXPORT_FAILED_MESSAGE)


async def _run_export(
    preview: Surface,
    job: ExportJob,
    engine: RasterizationEngine,
    manager: ConsistencyManager,
    sink: DownloadSink,
) -> ExportOutcome:
    async with engine.lock_for(preview):
        preparation = manager.prepare_export(preview, job)
        try:
            result = await engine.rasterize(preparation.surface, job)
        except RasterizationFailed as exc:
            return ExportOutcome(
                success=False,
                message=EXPORT_FAILED_MESSAGE,
                degraded=preparation.degraded,
                attempts=exc.attempts,
            )

        try:
            path = await sink.deliver(result.data, job.filename)
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to deliver {job.filename}: {exc}")
            return ExportOutcome(
                success=False,
                message=EXPORT_FAILED_MESSAGE,
                attempt=result.attempt,
                degraded=preparation.degraded,
            )

    return ExportOutcome(
        success=True,
        message=EXPORT_SUCCEEDED_MESSAGE,
        path=path,
        attempt=result.attempt,
        degraded=preparation.degraded,
    )


class CardEditor:
    """
    One editable card: a preview surface, its text units and the overlay.

    Examples:
        >>> editor = CardEditor(html, 900, 1200)
        >>> result = editor.edit(editor.units[0].id, text="Hello")
        >>> result.success
        True
    """

    def __init__(
        self,
        markup: Union[str, etree._Element, None] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        config: Optional[CardQuillConfig] = None,
        engine: Optional[RasterizationEngine] = None,
        sink: Optional[DownloadSink] = None,
    ):
        self.config = config or CardQuillConfig()
        self.extractor = TextModelExtractor()
        self.overlay = OverlaySession(self.config.editor)
        self.manager = ConsistencyManager(self.config.export, self.config.editor)
        self.engine = engine or RasterizationEngine(config=self.config.export)
        self.sink = sink or FileDownloadSink(self.config.export.download_dir)
        self.preview: Optional[Surface] = None
        self._units: List[TextUnit] = []
        self.overlay.on_commit(self._on_commit)

        if markup is not None:
            self.load(markup, width, height)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def load(
        self,
        markup: Union[str, etree._Element, None],
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> List[TextUnit]:
        """
        Load a new fragment, replacing the current card.

        Returns:
            Extracted text units
        """
        self.overlay.detach()
        self.preview = create_preview_surface(markup, width, height, self.config.preview)
        return self._extract_and_attach()

    def replace_content(self, markup: Union[str, etree._Element, None]) -> List[TextUnit]:
        """Swap the fragment of the current card, keeping its dimensions."""
        if self.preview is None:
            return self.load(markup)
        self.overlay.detach()
        self.preview.replace_content(markup)
        return self._extract_and_attach()

    def _extract_and_attach(self) -> List[TextUnit]:
        self._units = self.extractor.extract(self.preview.root)
        if self._units:
            self.overlay.attach(self._units)
        logger.debug(f"Card loaded with {len(self._units)} text units")
        return list(self._units)

    @property
    def units(self) -> List[TextUnit]:
        return list(self._units)

    def unit(self, key: Union[int, str]) -> TextUnit:
        """
        Look up a unit by position or id.

        Raises:
            KeyError: If no unit matches
        """
        if isinstance(key, int):
            try:
                return self._units[key]
            except IndexError:
                raise KeyError(f"No text unit at index {key}") from None
        for unit in self._units:
            if unit.id == key:
                return unit
        raise KeyError(f"Unknown text unit: {key}")

    def html(self) -> str:
        """Current fragment markup without editing affordances."""
        if self.preview is None:
            return ""
        attached = self.overlay.is_attached
        self.overlay.detach()
        try:
            return self.preview.html()
        finally:
            if attached:
                self.overlay.attach(self._units)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def select(self, unit_id: str) -> EditSession:
        """Open an edit session on a unit."""
        return self.overlay.activate(unit_id)

    def commit(self, session: EditSession) -> CommitResult:
        return self.overlay.commit(session)

    def cancel(self, session: EditSession) -> None:
        self.overlay.cancel(session)

    def edit(
        self,
        unit_id: str,
        text: Optional[str] = None,
        font_size: Optional[Any] = None,
        color: Optional[str] = None,
        weight: Optional[str] = None,
        align: Optional[str] = None,
    ) -> CommitResult:
        """
        Select a unit, change its draft and commit it in one step.

        Fields left as None keep the unit's current value. A rejected draft
        leaves the session open, so the caller can correct and commit it.
        """
        session = self.select(unit_id)
        if text is not None:
            session.draft_text = text
        current = session.draft_style
        session.draft_style = current.coerce(
            font_size if font_size is not None else current.font_size_px,
            color if color is not None else current.color_hex,
            weight if weight is not None else current.weight,
            align if align is not None else current.align,
        )
        return self.commit(session)

    def reset(self, unit_id: Optional[str] = None) -> List[CommitResult]:
        """Restore one unit (or all units) to the extracted text and style."""
        targets = [unit_id] if unit_id is not None else [unit.id for unit in self._units]
        return [self.overlay.reset_unit(target) for target in targets]

    def hover(self, unit_id: str) -> None:
        self.overlay.hover(unit_id)

    def unhover(self, unit_id: str) -> None:
        self.overlay.unhover(unit_id)

    def refresh_bounds(self) -> List[TextUnit]:
        if self.preview is None:
            return []
        return self.extractor.refresh_bounds(self._units, self.preview)

    def unit_at(self, x: float, y: float) -> Optional[TextUnit]:
        """Unit under a point in preview display coordinates."""
        return self.overlay.unit_at(x, y)

    def _on_commit(self, unit: TextUnit) -> None:
        if self.preview is not None:
            self.preview.mark_dirty()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(self, options: DownloadOptions, timeout: Optional[float] = None) -> ExportOutcome:
        """
        Export the card.

        The overlay is detached for the duration of the export (cancelling
        any open edit session) and re-attached afterwards.
        """
        if self.preview is None:
            logger.error("Nothing to export: no fragment loaded")
            return ExportOutcome(success=False, message=EXPORT_FAILED_MESSAGE)

        attached = self.overlay.is_attached
        self.overlay.detach()
        try:
            return await download_as_image(
                self.preview,
                options,
                engine=self.engine,
                manager=self.manager,
                sink=self.sink,
                config=self.config.export,
                timeout=timeout,
            )
        finally:
            if attached:
                self.overlay.attach(self._units)

    def default_filename(self, label: str = "card") -> str:
        if self.preview is None:
            return generate_filename(label, 0, 0)
        return generate_filename(label, self.preview.width_px, self.preview.height_px)

