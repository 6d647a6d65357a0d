"""
Font lookup for the Pillow renderer.

CSS font-family stacks are mapped onto TrueType files found in configured
directories and the usual system locations. Unknown families fall through
to generic sans fonts, then to Pillow's built-in font.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

FONT_CACHE_SIZE = 256

SEARCH_DIRECTORIES: List[Path] = [
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".fonts",
    Path.home() / ".local/share/fonts",
    Path("C:/Windows/Fonts"),
    Path("/System/Library/Fonts"),
    Path("/Library/Fonts"),
]

FONT_EXTENSIONS = ("*.ttf", "*.ttc", "*.otf")

_SANS = {
    "regular": ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf", "arial.ttf", "Helvetica.ttc"),
    "bold": ("DejaVuSans-Bold.ttf", "LiberationSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf"),
}
_CJK = {
    "regular": ("PingFang.ttc", "msyh.ttc", "NotoSansCJK-Regular.ttc", "wqy-microhei.ttc", "wqy-zenhei.ttc"),
    "bold": ("msyhbd.ttc", "NotoSansCJK-Bold.ttc"),
}

FONT_FILES: Dict[str, Dict[str, Sequence[str]]] = {
    "pingfang sc": _CJK,
    "microsoft yahei": _CJK,
    "noto sans sc": _CJK,
    "arial": {
        "regular": ("Arial.ttf", "arial.ttf", "LiberationSans-Regular.ttf"),
        "bold": ("Arial Bold.ttf", "arialbd.ttf", "LiberationSans-Bold.ttf"),
    },
    "helvetica": {
        "regular": ("Helvetica.ttc", "LiberationSans-Regular.ttf"),
        "bold": ("LiberationSans-Bold.ttf",),
    },
    "helvetica neue": {
        "regular": ("HelveticaNeue.ttc", "Helvetica.ttc", "LiberationSans-Regular.ttf"),
        "bold": ("LiberationSans-Bold.ttf",),
    },
    "sans-serif": _SANS,
    "serif": {
        "regular": ("DejaVuSerif.ttf", "LiberationSerif-Regular.ttf", "Times New Roman.ttf", "times.ttf"),
        "bold": ("DejaVuSerif-Bold.ttf", "LiberationSerif-Bold.ttf", "timesbd.ttf"),
    },
    "monospace": {
        "regular": ("DejaVuSansMono.ttf", "LiberationMono-Regular.ttf", "cour.ttf"),
        "bold": ("DejaVuSansMono-Bold.ttf", "LiberationMono-Bold.ttf", "courbd.ttf"),
    },
}


@lru_cache(maxsize=8)
def _build_font_index(directories: Tuple[Path, ...]) -> Dict[str, Path]:
    index: Dict[str, Path] = {}
    for root in directories:
        if not root.exists():
            continue
        try:
            for pattern in FONT_EXTENSIONS:
                for candidate in root.rglob(pattern):
                    index.setdefault(candidate.name.lower(), candidate)
        except OSError as exc:
            logger.debug(f"Could not scan font directory {root}: {exc}")
    return index


def split_family_stack(value: Optional[str]) -> List[str]:
    """Split a font-family value into lowercase family names."""
    if not value:
        return []
    return [part.strip().strip("'\"").lower() for part in value.split(",") if part.strip()]


@dataclass(frozen=True)
class FontChoice:
    """A loaded font plus whether bold has to be synthesized."""

    font: ImageFont.ImageFont
    path: Optional[Path]
    synthetic_bold: bool = False


class FontResolver:
    """
    Resolve CSS font stacks to Pillow fonts.

    Args:
        font_dirs: Extra directories searched before the system locations
        cache_size: Number of (file, size) fonts kept loaded
    """

    def __init__(self, font_dirs: Iterable[Path] = (), cache_size: int = FONT_CACHE_SIZE):
        self.directories: Tuple[Path, ...] = tuple(Path(d) for d in font_dirs) + tuple(SEARCH_DIRECTORIES)
        self._load = lru_cache(maxsize=cache_size)(self._load_uncached)

    def locate(self, family_stack: Optional[str], bold: bool = False) -> Tuple[Optional[Path], bool]:
        """
        Find a font file for a family stack.

        Returns:
            ``(path, synthetic_bold)``; ``path`` is None when nothing was found
        """
        index = _build_font_index(self.directories)
        families = split_family_stack(family_stack) + ["sans-serif"]
        for family in families:
            variants = FONT_FILES.get(family, {})
            names: List[str] = []
            if bold:
                names.extend(variants.get("bold", ()))
                names.extend(f"{family}-bold{ext[1:]}" for ext in FONT_EXTENSIONS)
            names.extend(variants.get("regular", ()))
            names.extend(f"{family}{ext[1:]}" for ext in FONT_EXTENSIONS)
            for name in names:
                path = index.get(name.lower())
                if path is not None:
                    is_bold_file = any(mark in name.lower() for mark in ("bold", "bd."))
                    return path, bold and not is_bold_file
        return None, bold

    def resolve(self, family_stack: Optional[str], size_px: float, bold: bool = False) -> FontChoice:
        """
        Load the font for a family stack at a pixel size.

        Args:
            family_stack: CSS font-family value
            size_px: Font size in device pixels
            bold: Whether a bold face is wanted

        Returns:
            FontChoice (falls back to Pillow's default font)
        """
        size = max(1, int(round(size_px)))
        path, synthetic = self.locate(family_stack, bold)
        return FontChoice(font=self._load(path, size), path=path, synthetic_bold=synthetic)

    def _load_uncached(self, path: Optional[Path], size: int) -> ImageFont.ImageFont:
        if path is not None:
            try:
                return ImageFont.truetype(str(path), size)
            except OSError as exc:
                logger.debug(f"Failed to load font {path}: {exc}")
        return ImageFont.load_default(size)

    def clear_cache(self) -> None:
        self._load.cache_clear()


def text_width(font: ImageFont.ImageFont, text: str) -> float:
    """Advance width of a string in pixels."""
    if not text:
        return 0.0
    return float(font.getlength(text))


def font_metrics(font: ImageFont.ImageFont, size: float) -> Tuple[float, float]:
    """Ascent and descent of a font; bitmap fonts are estimated from the size."""
    if hasattr(font, "getmetrics"):
        ascent, descent = font.getmetrics()
        return float(ascent), float(descent)
    return size * 0.8, size * 0.2
