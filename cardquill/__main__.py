"""
Entry point for running cardquill as a module.

Usage:
    python -m cardquill render card.html --size xiaohongshu
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main() or 0)
