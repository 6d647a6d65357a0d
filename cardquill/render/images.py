"""
Image loading for rasterization.

Images referenced by ``<img src>`` are loaded from ``data:`` URIs, local
files or http(s) URLs. A render attempt loads all of its images under one
shared deadline; loads still pending at the deadline are abandoned.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import unquote_to_bytes, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from ..exceptions import ImageLoadError

logger = logging.getLogger(__name__)

CORS_HEADER = "access-control-allow-origin"
FOREIGN_MEDIA_TYPES = ("image/svg+xml",)


@dataclass(frozen=True)
class ImagePolicy:
    """
    How a render attempt treats images.

    Attributes:
        use_cors: Include remote images only when the response allows cross-origin use
        allow_taint: Include remote images regardless of cross-origin headers
        timeout: Seconds shared by all image loads of one attempt
    """

    use_cors: bool = True
    allow_taint: bool = False
    timeout: float = 10.0

    @classmethod
    def strict(cls, timeout: float = 10.0) -> "ImagePolicy":
        return cls(use_cors=True, allow_taint=False, timeout=timeout)

    @classmethod
    def permissive(cls, timeout: float = 10.0) -> "ImagePolicy":
        return cls(use_cors=True, allow_taint=True, timeout=timeout)

    def accepts_remote(self, headers: httpx.Headers) -> bool:
        if self.allow_taint:
            return True
        return self.use_cors and CORS_HEADER in headers


def decode_image(data: bytes, source: str = "") -> Image.Image:
    """
    Decode raster image bytes into an RGBA image.

    Raises:
        ImageLoadError: If Pillow cannot decode the data
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError("Cannot decode image", details=f"{source[:80]}: {exc}") from exc


def decode_data_uri(uri: str) -> bytes:
    """
    Decode a ``data:`` URI payload.

    Raises:
        ImageLoadError: For malformed URIs and foreign (SVG) content
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        raise ImageLoadError("Malformed data URI", details=uri[:80])
    media = header[len("data:"):]
    media_type = media.split(";", 1)[0].strip().lower()
    if media_type in FOREIGN_MEDIA_TYPES:
        raise ImageLoadError("Foreign content is not rendered", details=media_type)
    if media.lower().endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except ValueError as exc:
            raise ImageLoadError("Invalid base64 payload", details=str(exc)) from exc
    return unquote_to_bytes(payload)


class ImageLoader:
    """
    Load images for one render attempt.

    Args:
        policy: Cross-origin and timeout policy of the attempt
        base_dir: Directory relative file references resolve against
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        policy: Optional[ImagePolicy] = None,
        base_dir: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.policy = policy or ImagePolicy()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.transport = transport

    async def load_all(self, sources: Iterable[str]) -> Dict[str, Image.Image]:
        """
        Load every distinct source under the policy's shared deadline.

        Failed, rejected and timed-out loads are logged and left out of the
        result; they never fail the render.

        Returns:
            Mapping of source to decoded image
        """
        unique = list(dict.fromkeys(s.strip() for s in sources if s and s.strip()))
        if not unique:
            return {}

        async with httpx.AsyncClient(
            timeout=self.policy.timeout,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            tasks = {asyncio.create_task(self.load(src, client)): src for src in unique}
            done, pending = await asyncio.wait(tasks, timeout=self.policy.timeout)
            for task in pending:
                task.cancel()
                logger.warning(f"Image load timed out: {tasks[task][:80]}")
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        images: Dict[str, Image.Image] = {}
        for task in done:
            src = tasks[task]
            exc = task.exception()
            if exc is not None:
                logger.debug(f"Skipping image {src[:80]}: {exc}")
                continue
            image = task.result()
            if image is not None:
                images[src] = image
        logger.debug(f"Loaded {len(images)}/{len(unique)} images")
        return images

    async def load(self, src: str, client: httpx.AsyncClient) -> Optional[Image.Image]:
        """
        Load one image.

        Returns:
            Decoded image, or None when the policy excludes it

        Raises:
            ImageLoadError: When the image cannot be fetched or decoded
        """
        if src.startswith("data:"):
            return decode_image(decode_data_uri(src), src)

        parsed = urlparse(src)
        if parsed.scheme in ("http", "https"):
            return await self._load_remote(src, client)
        if parsed.scheme == "file":
            return await self._load_file(Path(parsed.path))
        if parsed.scheme:
            raise ImageLoadError("Unsupported image scheme", details=parsed.scheme)
        return await self._load_file(self.base_dir / src)

    async def _load_remote(self, src: str, client: httpx.AsyncClient) -> Optional[Image.Image]:
        try:
            response = await client.get(src)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageLoadError("Failed to fetch image", details=f"{src}: {exc}") from exc

        if not self.policy.accepts_remote(response.headers):
            logger.debug(f"Excluding cross-origin image without CORS headers: {src}")
            return None
        media_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        if media_type in FOREIGN_MEDIA_TYPES:
            raise ImageLoadError("Foreign content is not rendered", details=src)
        return decode_image(response.content, src)

    async def _load_file(self, path: Path) -> Image.Image:
        if path.suffix.lower() == ".svg":
            raise ImageLoadError("Foreign content is not rendered", details=str(path))
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ImageLoadError("Failed to read image file", details=f"{path}: {exc}") from exc
        return decode_image(data, str(path))
