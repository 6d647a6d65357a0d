"""
Layout, painting and rasterization of export surfaces.
"""

from .alignment import TextAlignmentEngine
from .download import DownloadSink, FileDownloadSink
from .engine import InvalidRenderResult, PillowBackend, RasterBackend, RasterizationEngine, RenderMode
from .fonts import FontChoice, FontResolver
from .geometry import Edges, Rect, Size
from .images import ImageLoader, ImagePolicy
from .layout import BoxKind, LayoutBox, LayoutEngine, TextRun
from .painter import PillowPainter, encode_png

__all__ = [
    "BoxKind",
    "DownloadSink",
    "Edges",
    "FileDownloadSink",
    "FontChoice",
    "FontResolver",
    "ImageLoader",
    "ImagePolicy",
    "InvalidRenderResult",
    "LayoutBox",
    "LayoutEngine",
    "PillowBackend",
    "PillowPainter",
    "RasterBackend",
    "RasterizationEngine",
    "Rect",
    "RenderMode",
    "Size",
    "TextAlignmentEngine",
    "TextRun",
    "encode_png",
]
