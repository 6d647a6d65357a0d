#!/usr/bin/env python3
"""
Example of the high-level CardEditor API.

Loads a generated card, edits its title and exports it as a PNG.
"""

import asyncio
from pathlib import Path

from cardquill import CardEditor, DownloadOptions
from cardquill.config import CardQuillConfig, ExportConfig, get_cover_size

CARD = """
<div style="width: 900px; height: 1200px; background: #1f2937; padding: 40px; box-sizing: border-box">
  <h1 style="font-size: 48px; color: #ffffff; text-align: center; font-weight: bold">Spring Reading List</h1>
  <p style="font-size: 24px; color: #f0f0f0">Five books worth carrying around this season.</p>
</div>
"""


async def main():
    size = get_cover_size("xiaohongshu")
    config = CardQuillConfig(export=ExportConfig(download_dir=Path("output")))

    print("📄 Loading card...")
    editor = CardEditor(CARD, size.width, size.height, config=config)
    for index, unit in enumerate(editor.units):
        print(f"   [{index}] {unit.text!r} {unit.style}")

    print("✏️  Editing title...")
    result = editor.edit(editor.units[0].id, text="Summer Reading List", color="#fde68a")
    print(f"   {result.outcome.value}: {result.reason or 'ok'}")

    print("🖼️  Exporting...")
    outcome = await editor.export(DownloadOptions(size.width, size.height, editor.default_filename(size.label)))
    if outcome.success:
        print(f"   ✅ Saved: {outcome.path}")
    else:
        print(f"   ⚠️  {outcome.message}")


if __name__ == "__main__":
    asyncio.run(main())
