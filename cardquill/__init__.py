"""
CardQuill - in-place text editing and image export for generated HTML cards.

The package keeps three views of a generated card consistent: the text
model extracted from the markup, the scaled preview the user edits and the
full-resolution export surface that is rasterized to an image.

Quick Start:
    import asyncio
    from cardquill import CardEditor, DownloadOptions, generate_filename

    editor = CardEditor(html, 900, 1200)
    editor.edit(editor.units[0].id, text="Spring sale", color="#e11d48")
    filename = generate_filename("xiaohongshu_cover", 900, 1200)
    outcome = asyncio.run(editor.export(DownloadOptions(900, 1200, filename)))
"""

from .version import __version__, __version_info__

from .exceptions import (
    CardQuillError,
    ConsistencyCheckFailed,
    ImageLoadError,
    ParsingError,
    RasterizationFailed,
    StyleError,
)
from .config import (
    COVER_SIZES,
    CardQuillConfig,
    CoverSize,
    EditorConfig,
    ExportConfig,
    PreviewConfig,
    get_cover_size,
    preview_scale,
)
from .models import (
    CommitOutcome,
    CommitResult,
    EditSession,
    ExportAttempt,
    ExportJob,
    ExportOutcome,
    RasterResult,
    Rect,
    TextStyle,
    TextUnit,
)
from .markup import flatten_text, parse_fragment, serialize_fragment
from .surface import Surface, SurfaceKind, create_preview_surface
from .extractor import TextModelExtractor, extract_text_units
from .overlay import OverlayHandle, OverlaySession
from .consistency import ConsistencyManager, ExportPreparation
from .render.engine import PillowBackend, RasterBackend, RasterizationEngine
from .render.download import DownloadSink, FileDownloadSink
from .api import CardEditor, DownloadOptions, download_as_image, generate_filename
from .utils.logger import configure_logging, get_logger

__all__ = [
    "__version__",
    "__version_info__",
    # Exceptions
    "CardQuillError",
    "ConsistencyCheckFailed",
    "ImageLoadError",
    "ParsingError",
    "RasterizationFailed",
    "StyleError",
    # Configuration
    "COVER_SIZES",
    "CardQuillConfig",
    "CoverSize",
    "EditorConfig",
    "ExportConfig",
    "PreviewConfig",
    "get_cover_size",
    "preview_scale",
    # Model
    "CommitOutcome",
    "CommitResult",
    "EditSession",
    "ExportAttempt",
    "ExportJob",
    "ExportOutcome",
    "RasterResult",
    "Rect",
    "TextStyle",
    "TextUnit",
    # Markup and surfaces
    "flatten_text",
    "parse_fragment",
    "serialize_fragment",
    "Surface",
    "SurfaceKind",
    "create_preview_surface",
    # Components
    "TextModelExtractor",
    "extract_text_units",
    "OverlayHandle",
    "OverlaySession",
    "ConsistencyManager",
    "ExportPreparation",
    "PillowBackend",
    "RasterBackend",
    "RasterizationEngine",
    "DownloadSink",
    "FileDownloadSink",
    # High-level API
    "CardEditor",
    "DownloadOptions",
    "download_as_image",
    "generate_filename",
    # Logging
    "configure_logging",
    "get_logger",
]
