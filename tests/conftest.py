"""
Pytest configuration for CardQuill
"""

import io
import logging
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

from cardquill.config import CardQuillConfig, ExportConfig


CARD_HTML = """
<div class="card" style="width: 900px; height: 1200px; padding: 40px; box-sizing: border-box;
     background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);">
  <h1 style="font-size: 48px; color: #ffffff; text-align: center; font-weight: 700;">Original Title</h1>
  <p style="font-size: 24px; color: rgb(240, 240, 240);">Original body copy.</p>
</div>
"""

STYLED_HTML = """
<style>
  .card { font-family: Georgia, serif; }
  .card .title { color: hsl(0, 100%, 50%); font-size: 2em; }
  p.note { text-align: justify; font-weight: 600; }
  a:hover { color: blue; }
</style>
<div class="card" style="font-size: 20px">
  <span class="title">Sheet styled</span>
  <p class="note">Justified note</p>
  <p>Plain <b>bold</b> tail</p>
</div>
"""


@pytest.fixture(autouse=True)
def configure_logging():
    """Configure logging for tests to avoid handler leaks between tests."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))

    root_logger.addHandler(console_handler)
    root_logger.setLevel(logging.WARNING)

    yield

    root_logger.handlers.clear()
    package_logger = logging.getLogger("cardquill")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def card_html():
    """Two-unit card: a centered white title and a light body line."""
    return CARD_HTML


@pytest.fixture
def styled_html():
    """Fragment whose styles come from a ``<style>`` sheet."""
    return STYLED_HTML


@pytest.fixture
def export_config(temp_dir):
    """Export settings writing into the temp dir and accepting tiny images."""
    return ExportConfig(min_output_bytes=1, download_dir=temp_dir, image_timeout=2.0)


@pytest.fixture
def card_config(export_config):
    return CardQuillConfig(export=export_config)


def make_png(width=4, height=4, color=(255, 0, 0, 255)) -> bytes:
    """Encode a solid-color PNG."""
    output = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as end-to-end tests"
    )
    logging.raiseExceptions = False
