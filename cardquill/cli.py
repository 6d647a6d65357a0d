"""
Command-line interface for CardQuill.

Usage:
    cardquill units card.html --json
    cardquill edit card.html --unit 0 --text "New title" -o edited.html
    cardquill render card.html --size xiaohongshu -o exports/
    cardquill sizes
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cardquill",
        description="CardQuill - edit generated HTML cards and export them as images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cardquill units card.html
  cardquill edit card.html --unit 0 --text "Spring sale" --color "#e11d48" -o out.html
  cardquill render card.html --size xiaohongshu -o exports/
  cardquill render card.html --width 1080 --height 1920 --scale 1
  cardquill sizes
        """,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: CARDQUILL_LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Units command
    units_parser = subparsers.add_parser("units", help="List the editable text units of a fragment")
    units_parser.add_argument("input", help="Input HTML fragment")
    units_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON"
    )

    # Edit command
    edit_parser = subparsers.add_parser("edit", help="Commit one text edit")
    edit_parser.add_argument("input", help="Input HTML fragment")
    edit_parser.add_argument("--unit", type=int, required=True, help="Index of the text unit")
    edit_parser.add_argument("--text", help="New text")
    edit_parser.add_argument("--font-size", type=int, help="Font size in px")
    edit_parser.add_argument("--color", help="Text color (#rrggbb or any CSS color)")
    edit_parser.add_argument("--weight", choices=["normal", "bold"], help="Font weight")
    edit_parser.add_argument("--align", choices=["left", "center", "right"], help="Text alignment")
    edit_parser.add_argument(
        "-o", "--output",
        help="Output file path (default: print to stdout)"
    )

    # Render command
    render_parser = subparsers.add_parser("render", help="Export a fragment as PNG")
    render_parser.add_argument("input", help="Input HTML fragment")
    size_group = render_parser.add_mutually_exclusive_group()
    size_group.add_argument("--size", help="Cover size preset (see 'cardquill sizes')")
    size_group.add_argument("--width", type=int, help="Width in px (requires --height)")
    render_parser.add_argument("--height", type=int, help="Height in px")
    render_parser.add_argument("--label", help="Filename label (default: preset label or 'card')")
    render_parser.add_argument(
        "--scale",
        type=float,
        default=None,
        help="Primary render scale (default: 2)"
    )
    render_parser.add_argument(
        "-o", "--output",
        help="Output directory (default: CARDQUILL_DOWNLOAD_DIR or current directory)"
    )

    # Sizes command
    subparsers.add_parser("sizes", help="List cover size presets")

    # Version command
    subparsers.add_parser("version", help="Show version information")

    return parser


def _read_fragment(path_arg: str):
    input_path = Path(path_arg)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return None
    return input_path.read_text(encoding="utf-8")


def cmd_units(args, config):
    """Handle units command."""
    from .api import CardEditor

    markup = _read_fragment(args.input)
    if markup is None:
        return 1

    editor = CardEditor(markup, config=config)
    units = editor.units
    if args.json:
        print(json.dumps([unit.to_dict() for unit in units], indent=2, ensure_ascii=False))
        return 0

    if not units:
        print("No editable text found")
        return 0
    print(f"📝 {len(units)} text units:")
    for index, unit in enumerate(units):
        style = unit.style
        print(
            f"  [{index}] <{unit.node.tag}> {unit.text!r} "
            f"({style.font_size_px}px {style.color_hex} {style.weight} {style.align})"
        )
    return 0


def cmd_edit(args, config):
    """Handle edit command."""
    from .api import CardEditor

    markup = _read_fragment(args.input)
    if markup is None:
        return 1

    editor = CardEditor(markup, config=config)
    try:
        unit = editor.unit(args.unit)
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 2

    result = editor.edit(
        unit.id,
        text=args.text,
        font_size=args.font_size,
        color=args.color,
        weight=args.weight,
        align=args.align,
    )
    if not result.success:
        print(f"Error: {result.reason}", file=sys.stderr)
        return 2

    html = editor.html()
    if args.output:
        output_path = Path(args.output)
        output_path.write_text(html, encoding="utf-8")
        print(f"✅ Saved: {output_path}")
    else:
        print(html)
    return 0


def cmd_render(args, config):
    """Handle render command."""
    from .api import CardEditor, DownloadOptions, generate_filename
    from .config import get_cover_size

    markup = _read_fragment(args.input)
    if markup is None:
        return 1

    if args.size:
        try:
            preset = get_cover_size(args.size)
        except KeyError as exc:
            print(f"Error: {exc.args[0]}", file=sys.stderr)
            return 2
        width, height, label = preset.width, preset.height, preset.label
    elif args.width and args.height:
        width, height, label = args.width, args.height, "card"
    else:
        print("Error: use --size PRESET or --width W --height H", file=sys.stderr)
        return 2
    label = args.label or label

    export_config = config.export
    if args.output:
        export_config = replace(export_config, download_dir=Path(args.output))
    if args.scale is not None:
        export_config = replace(export_config, scale_factor=args.scale)
    config = replace(config, export=export_config)

    editor = CardEditor(markup, width, height, config=config)
    filename = generate_filename(label, width, height)
    options = DownloadOptions(width, height, filename, scale_factor=export_config.scale_factor)

    print(f"🖼️  Rendering {width}x{height} at scale {export_config.scale_factor:g}...")
    outcome = asyncio.run(editor.export(options))
    if not outcome.success:
        print(f"Error: {outcome.message}", file=sys.stderr)
        return 1

    print(f"✅ Saved: {outcome.path}")
    if outcome.attempt is not None and outcome.attempt.value == "fallback":
        print("   Rendered with the fallback mode (scale 1)")
    if outcome.degraded:
        print("   Exported raw preview content (surfaces could not be reconciled)")
    return 0


def cmd_sizes(args=None):
    """Handle sizes command."""
    from .config import COVER_SIZES

    for preset in COVER_SIZES.values():
        print(f"  {preset.key:<12} {preset.size:<10} {preset.ratio:<7} {preset.description}")
    return 0


def cmd_version(args=None):
    """Handle version command."""
    from .version import __version__
    print(f"CardQuill v{__version__}")
    print("In-place text editing and image export for generated HTML cards")
    return 0


def main(argv=None):
    """Main entry point for CLI."""
    from .config import CardQuillConfig
    from .utils.logger import configure_logging

    parser = create_parser()
    args = parser.parse_args(argv)

    config = CardQuillConfig.from_env()
    configure_logging(args.log_level or config.log_level)

    if args.command == "units":
        return cmd_units(args, config)
    elif args.command == "edit":
        return cmd_edit(args, config)
    elif args.command == "render":
        return cmd_render(args, config)
    elif args.command == "sizes":
        return cmd_sizes(args)
    elif args.command == "version":
        return cmd_version(args)

    # No command specified, show help
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main() or 0)
