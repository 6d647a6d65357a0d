"""
Delivery of rasterized images.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class DownloadSink(Protocol):
    """Receives encoded image bytes under a caller-chosen filename."""

    async def deliver(self, data: bytes, filename: str) -> Path:
        ...


class FileDownloadSink:
    """
    Write downloads into a directory.

    Files are written to a temporary name in the target directory and then
    renamed, so a partially written file is never visible. Existing files
    with the same name are replaced.

    Args:
        directory: Download directory (created on first delivery)
    """

    def __init__(self, directory: Union[str, Path] = "."):
        self.directory = Path(directory)

    async def deliver(self, data: bytes, filename: str) -> Path:
        return await asyncio.to_thread(self._write, data, filename)

    def _write(self, data: bytes, filename: str) -> Path:
        name = Path(filename).name
        if not name:
            raise ValueError(f"Invalid download filename: {filename!r}")
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / name

        fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=".part", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(f"Saved {target} ({len(data)} bytes)")
        return target
